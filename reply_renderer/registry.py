"""Renderer registry: name -> render function.

Names are stored without the leading '#', so 'greet' and '#greet' are the
same renderer. Re-registering a name replaces the previous function.
Mutating the registry while sends are in flight is not guarded; register
renderers at startup or on hot-reload.
"""
from __future__ import annotations

import logging
from typing import Optional

from reply_renderer.errors import NotFoundError, ValidationError
from reply_renderer.models import RenderFn, strip_sigil

logger = logging.getLogger(__name__)


class RendererRegistry:
    def __init__(self) -> None:
        self._renderers: dict[str, RenderFn] = {}

    def register(self, name: str, render_fn: RenderFn) -> None:
        key = strip_sigil(name)
        if not key:
            raise ValidationError("Renderer name must not be empty")
        if not callable(render_fn):
            raise ValidationError(f"Renderer #{key} must be callable, received {render_fn!r}")
        if key in self._renderers:
            logger.debug("Replacing renderer #%s", key)
        self._renderers[key] = render_fn

    def unregister(self, name: str) -> None:
        key = strip_sigil(name)
        if key not in self._renderers:
            raise NotFoundError(f'Unknown renderer "{key}"')
        del self._renderers[key]

    def is_registered(self, name: str) -> bool:
        return strip_sigil(name) in self._renderers

    def get(self, name: str) -> Optional[RenderFn]:
        """Return the render function for name, or None."""
        return self._renderers.get(strip_sigil(name))

    def get_exact(self, name: str) -> Optional[RenderFn]:
        """Look up an already stripped name; a remaining '#' is part of the name."""
        return self._renderers.get(name)

    def names(self) -> list[str]:
        return sorted(self._renderers)
