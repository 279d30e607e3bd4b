"""Core data models: references, messages, events and content entities."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Literal, Mapping, Optional, Union

from reply_renderer.errors import RendererNameError, ValidationError

logger = logging.getLogger(__name__)

RENDERER_SIGIL = "#"
CONTENT_SIGIL = "!"

# Context -> rendered message data (single item or list)
RenderFn = Callable[[dict], Any]


def strip_sigil(name: Any) -> str:
    """Return `name` without a leading '#'; non-strings raise RendererNameError."""
    if not isinstance(name, str):
        raise RendererNameError(f"Renderer name must be a string, received {name!r}")
    if name.startswith(RENDERER_SIGIL):
        return name[1:]
    return name


class ReferenceKind(str, Enum):
    DIRECT = "direct"
    INDIRECT = "indirect"


@dataclass(frozen=True)
class RendererReference:
    """A renderer name (DIRECT) or a content item id (INDIRECT)."""

    kind: ReferenceKind
    name: str

    @classmethod
    def direct(cls, name: str) -> "RendererReference":
        return cls(ReferenceKind.DIRECT, strip_sigil(name))

    @classmethod
    def indirect(cls, item_id: str) -> "RendererReference":
        return cls(ReferenceKind.INDIRECT, item_id)

    @classmethod
    def parse(cls, raw: Union[str, "RendererReference"]) -> "RendererReference":
        """Parse '#name', 'name', '!item' or '#!item'."""
        if isinstance(raw, RendererReference):
            return raw
        name = strip_sigil(raw)
        if name.startswith(CONTENT_SIGIL):
            return cls.indirect(name[1:])
        return cls(ReferenceKind.DIRECT, name)

    @property
    def is_indirect(self) -> bool:
        return self.kind is ReferenceKind.INDIRECT

    def __str__(self) -> str:
        if self.is_indirect:
            return f"{CONTENT_SIGIL}{self.name}"
        return f"{RENDERER_SIGIL}{self.name}"


@dataclass(frozen=True)
class OutboundMessage:
    """Channel payload produced by the engine; opaque to the dispatch loop."""

    payload: Any
    platform: Optional[str] = None


@dataclass(frozen=True)
class Pause:
    """Control instruction: suspend the dispatch loop for duration_ms."""

    duration_ms: float

    @property
    def seconds(self) -> float:
        return self.duration_ms / 1000.0


Message = Union[OutboundMessage, Pause]


def to_message(raw: Any, platform: Optional[str] = None) -> Optional[Message]:
    """Convert one engine element into a Message.

    Mappings flagged with a truthy `__internal` are control instructions;
    only `{"type": "wait", "wait": <ms>}` is known. Unknown control
    instructions return None so callers can drop them.
    """
    if isinstance(raw, (OutboundMessage, Pause)):
        return raw
    if isinstance(raw, Mapping) and raw.get("__internal"):
        if raw.get("type") != "wait":
            logger.warning("Ignoring unknown control instruction type=%r", raw.get("type"))
            return None
        wait = raw.get("wait")
        if isinstance(wait, bool) or not isinstance(wait, (int, float)) or wait < 0:
            raise ValidationError(f"wait instruction needs a non-negative duration in ms, got {wait!r}")
        return Pause(duration_ms=float(wait))
    return OutboundMessage(payload=raw, platform=platform)


@dataclass
class IncomingEvent:
    """An event received from a platform; `reply` is attached by the reply hook."""

    platform: str
    user: Any = None
    type: str = "message"
    text: str = ""
    raw: Any = None
    reply: Optional[Callable[..., Awaitable[None]]] = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class ContentItem:
    id: str
    category_id: str
    data: dict = field(default_factory=dict)


@dataclass(frozen=True)
class ContentCategory:
    id: str
    renderer: Any = None


@dataclass(frozen=True)
class MiddlewareDescriptor:
    """Registration record handed to the host middleware pipeline."""

    name: str
    type: Literal["incoming", "outgoing"]
    order: int
    description: str
    handler: Callable[..., Any]
    module: str = "reply_renderer"
