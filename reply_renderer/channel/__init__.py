"""Channel layer: platform -> outgoing processor registry, adapters and routing."""
from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Mapping, Optional

from reply_renderer.channel.base import Channel
from reply_renderer.channel.pushplus import PushPlusChannel
from reply_renderer.errors import ConflictError, NotFoundError, ValidationError
from reply_renderer.models import OutboundMessage

logger = logging.getLogger(__name__)

ProcessOutgoing = Callable[[Any], Any]

_CHANNELS: dict[str, type[Channel]] = {
    "pushplus": PushPlusChannel,
}


def get_channel(channel_type: str) -> type[Channel]:
    """Return channel class for given type."""
    if channel_type not in _CHANNELS:
        raise ValueError(f"Unknown channel type: {channel_type}")
    return _CHANNELS[channel_type]


class ChannelRegistry:
    """At most one outgoing processor per platform, kept for the process lifetime."""

    def __init__(self) -> None:
        self._processors: dict[str, ProcessOutgoing] = {}

    def register_channel(self, platform: str, process_outgoing: ProcessOutgoing) -> None:
        if not isinstance(platform, str):
            raise ValidationError(f"[Renderers] Platform must be a string, got: {platform!r}.")
        if platform in self._processors:
            raise ConflictError(f"[Renderers] Platform should only be registered once, platform: {platform}.")
        if not callable(process_outgoing):
            raise ValidationError(f"[Renderers] process_outgoing must be a function, platform: {platform}.")

        logger.info("[Renderers] Enabled for %s.", platform)
        self._processors[platform] = process_outgoing

    def get(self, platform: Optional[str]) -> Optional[ProcessOutgoing]:
        if platform is None:
            return None
        return self._processors.get(platform)

    def __contains__(self, platform: object) -> bool:
        return platform in self._processors

    @property
    def processors(self) -> Mapping[str, ProcessOutgoing]:
        """Read-only view handed to the rendering engine."""
        return dict(self._processors)

    def platforms(self) -> list[str]:
        return sorted(self._processors)


class OutgoingRouter:
    """send_outgoing collaborator: routes each message to its platform's channel.

    With dry_run=True messages are logged and never sent.
    """

    def __init__(self, channels: Optional[Mapping[str, Channel]] = None, dry_run: bool = False) -> None:
        self._channels: dict[str, Channel] = dict(channels or {})
        self.dry_run = dry_run

    def add(self, channel: Channel) -> None:
        self._channels[channel.platform] = channel

    async def __call__(self, msg: OutboundMessage) -> None:
        if self.dry_run:
            preview = str(msg.payload)[:200].replace("\n", " ")
            logger.info("Dry-run: would send via platform='%s' payload=%r", msg.platform, preview)
            return
        channel = self._channels.get(msg.platform)
        if channel is None:
            raise NotFoundError(f"No channel configured for platform '{msg.platform}'")
        result = channel.send(msg)
        if inspect.isawaitable(result):
            await result


__all__ = [
    "Channel",
    "ChannelRegistry",
    "OutgoingRouter",
    "PushPlusChannel",
    "get_channel",
]
