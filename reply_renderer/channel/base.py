"""Channel abstraction: platform payload shaping + delivery."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from reply_renderer.models import OutboundMessage


class Channel(ABC):
    """Abstract channel bound to one platform name."""

    platform: str

    @abstractmethod
    def process_outgoing(self, message: Any) -> Any:
        """Turn a rendered message into this channel's payload."""
        ...

    @abstractmethod
    async def send(self, msg: OutboundMessage) -> None:
        """Deliver one processed message; raise DeliveryError on failure."""
        ...
