"""Invocation engine boundary.

An engine takes a render function, its context and the registered channel
processors, and returns the finite, ordered list of messages to dispatch.
`default_engine` is the built-in implementation; any callable with the same
keyword signature can replace it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol, Sequence

from reply_renderer.errors import NotFoundError
from reply_renderer.models import IncomingEvent, Message, OutboundMessage, RenderFn, to_message

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineOptions:
    current_platform: Optional[str] = None
    throw_if_no_platform: bool = True


class RenderEngine(Protocol):
    def __call__(
        self,
        *,
        render_fn: RenderFn,
        renderer_name: str,
        context: dict,
        options: EngineOptions,
        processors: Mapping[str, Any],
        incoming_event: Optional[IncomingEvent] = None,
    ) -> Sequence[Any]:
        """Return Message values or raw elements (payloads and `__internal` mappings)."""
        ...


def default_engine(
    *,
    render_fn: RenderFn,
    renderer_name: str,
    context: dict,
    options: EngineOptions,
    processors: Mapping[str, Any],
    incoming_event: Optional[IncomingEvent] = None,
) -> list[Message]:
    """Render, then shape every non-control element with the platform's processor.

    Mapping elements are laid over `context["channel_defaults"]` (per-user
    channel settings such as a PushPlus topic) before processing.
    """
    platform = options.current_platform
    processor = processors.get(platform) if platform is not None else None
    if processor is None and options.throw_if_no_platform:
        raise NotFoundError(f"[Renderer] No channel registered for platform '{platform}' (#{renderer_name})")

    defaults = context.get("channel_defaults") or {}
    rendered = render_fn(context)
    if rendered is None:
        rendered = []
    elif not isinstance(rendered, (list, tuple)):
        rendered = [rendered]

    messages: list[Message] = []
    for element in rendered:
        message = to_message(element, platform=platform)
        if message is None:
            continue
        if isinstance(message, OutboundMessage) and defaults and isinstance(message.payload, Mapping):
            message = OutboundMessage(payload={**defaults, **message.payload}, platform=platform)
        if isinstance(message, OutboundMessage) and processor is not None:
            message = OutboundMessage(payload=processor(message.payload), platform=platform)
        messages.append(message)

    logger.debug("Renderer #%s produced %d message(s) for %s", renderer_name, len(messages), platform)
    return messages
