"""Resolve renderer references into ordered messages and dispatch them to channels."""
from reply_renderer.channel import Channel, ChannelRegistry, OutgoingRouter, PushPlusChannel
from reply_renderer.content import InMemoryContentStore, resolve_content
from reply_renderer.context import build_render_context
from reply_renderer.dispatch import dispatch
from reply_renderer.engine import EngineOptions, default_engine
from reply_renderer.errors import (
    ConflictError,
    DeliveryError,
    NotFoundError,
    RendererError,
    RendererNameError,
    ValidationError,
)
from reply_renderer.models import (
    ContentCategory,
    ContentItem,
    IncomingEvent,
    OutboundMessage,
    Pause,
    RendererReference,
)
from reply_renderer.proactive import InMemoryUserStorage, Proactive
from reply_renderer.registry import RendererRegistry
from reply_renderer.service import RenderingService

__all__ = [
    "Channel",
    "ChannelRegistry",
    "ConflictError",
    "ContentCategory",
    "ContentItem",
    "DeliveryError",
    "EngineOptions",
    "IncomingEvent",
    "InMemoryContentStore",
    "InMemoryUserStorage",
    "NotFoundError",
    "OutboundMessage",
    "OutgoingRouter",
    "Pause",
    "Proactive",
    "PushPlusChannel",
    "RendererError",
    "RendererNameError",
    "RendererReference",
    "RendererRegistry",
    "RenderingService",
    "ValidationError",
    "build_render_context",
    "default_engine",
    "dispatch",
    "resolve_content",
]
