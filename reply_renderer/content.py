"""Content resolution: '!item' -> renderer name + item data.

A content item belongs to a category whose `renderer` field ('#name')
formats it. Resolution is one level deep: the resolved renderer name is
never itself treated as a content reference.
"""
from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol

from reply_renderer.errors import NotFoundError, ValidationError
from reply_renderer.models import RENDERER_SIGIL, ContentCategory, ContentItem

logger = logging.getLogger(__name__)


class ContentStore(Protocol):
    """Lookup service for stored content items and their categories."""

    async def get_item(self, item_id: str) -> Optional[ContentItem]:
        ...

    def get_category_schema(self, category_id: str) -> Optional[ContentCategory]:
        ...


@dataclass(frozen=True)
class ResolvedContent:
    renderer_name: str
    initial_data: dict


async def resolve_content(store: ContentStore, item_id: str) -> ResolvedContent:
    """Resolve a content item id to its category's renderer and the item's data."""
    item = store.get_item(item_id)
    if inspect.isawaitable(item):
        item = await item
    if item is None:
        raise NotFoundError(f'Could not find content item with ID "{item_id}" in the Content Manager')

    category = store.get_category_schema(item.category_id)
    if category is None:
        raise NotFoundError(
            f'Could not find category "{item.category_id}" in the Content Manager'
            f' for item with ID "{item_id}"'
        )

    renderer = category.renderer
    if not isinstance(renderer, str) or not renderer.startswith(RENDERER_SIGIL) or len(renderer) <= 1:
        raise ValidationError(
            f"Invalid renderer {renderer!r} in category '{item.category_id}' of Content Manager."
            f" A renderer must start with '{RENDERER_SIGIL}'"
        )

    logger.debug("Resolved content item %s to renderer %s", item_id, renderer)
    return ResolvedContent(renderer_name=renderer[1:], initial_data=dict(item.data or {}))


class InMemoryContentStore:
    """ContentStore backed by dicts; built from the `content:` config section."""

    def __init__(
        self,
        items: Optional[Mapping[str, ContentItem]] = None,
        categories: Optional[Mapping[str, ContentCategory]] = None,
    ) -> None:
        self._items: dict[str, ContentItem] = dict(items or {})
        self._categories: dict[str, ContentCategory] = dict(categories or {})

    @classmethod
    def from_config(cls, section: Optional[Mapping[str, Any]]) -> "InMemoryContentStore":
        section = section or {}
        categories = {
            cid: ContentCategory(id=cid, renderer=(cfg or {}).get("renderer"))
            for cid, cfg in (section.get("categories") or {}).items()
        }
        items = {}
        for iid, cfg in (section.get("items") or {}).items():
            cfg = cfg or {}
            items[iid] = ContentItem(id=iid, category_id=cfg.get("category"), data=dict(cfg.get("data") or {}))
        return cls(items=items, categories=categories)

    def add_category(self, category: ContentCategory) -> None:
        self._categories[category.id] = category

    def add_item(self, item: ContentItem) -> None:
        self._items[item.id] = item

    async def get_item(self, item_id: str) -> Optional[ContentItem]:
        return self._items.get(item_id)

    def get_category_schema(self, category_id: str) -> Optional[ContentCategory]:
        return self._categories.get(category_id)
