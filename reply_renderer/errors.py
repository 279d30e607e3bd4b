"""Error taxonomy for registry, resolution and dispatch failures."""
from __future__ import annotations


class RendererError(Exception):
    """Base class for every error raised by reply_renderer."""


class ValidationError(RendererError, ValueError):
    """Malformed argument or malformed stored configuration."""


class RendererNameError(ValidationError, TypeError):
    """A renderer name or reference was not a string."""


class ConflictError(RendererError, ValueError):
    """Something that may only be registered once was registered again."""


class NotFoundError(RendererError, LookupError):
    """Unknown renderer, content item, content category or user."""


class DeliveryError(RendererError):
    """An outbound channel failed to deliver a message."""
