"""Render context: item data < event metadata < caller data (later wins)."""
from __future__ import annotations

from typing import Any, Mapping, Optional

from reply_renderer.models import IncomingEvent


def build_render_context(
    event: Optional[IncomingEvent],
    initial_data: Optional[Mapping[str, Any]] = None,
    additional_data: Optional[Mapping[str, Any]] = None,
) -> dict[str, Any]:
    context: dict[str, Any] = dict(initial_data or {})
    context["user"] = event.user if event is not None else None
    context["original_event"] = event
    context.update(additional_data or {})
    return context
