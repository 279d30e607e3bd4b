"""Proactive sends: render and dispatch outside of an incoming event."""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol, Union

from reply_renderer.errors import NotFoundError, ValidationError
from reply_renderer.models import IncomingEvent

logger = logging.getLogger(__name__)

SendContent = Callable[..., Awaitable[int]]


class UserStorage(Protocol):
    def get_user(self, user_id: str) -> Optional[dict]:
        ...


class InMemoryUserStorage:
    """UserStorage backed by the `users:` config section (id -> user mapping)."""

    def __init__(self, users: Optional[Mapping[str, Mapping[str, Any]]] = None) -> None:
        self._users = {uid: dict(u or {}, id=uid) for uid, u in (users or {}).items()}

    def get_user(self, user_id: str) -> Optional[dict]:
        return self._users.get(user_id)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._users


class Proactive:
    def __init__(self, send_content: SendContent, storage: Optional[UserStorage] = None) -> None:
        self._send_content = send_content
        self.storage = storage

    async def send_to_platform(
        self,
        platform: str,
        reference: Any,
        additional_data: Optional[Mapping[str, Any]] = None,
        user: Any = None,
    ) -> int:
        # synthesized so renderers always see user/original_event
        event = IncomingEvent(platform=platform, user=user, type="proactive")
        return await self._send_content(event, reference, additional_data)

    async def send_to_user(
        self,
        user: Union[str, Mapping[str, Any]],
        reference: Any,
        additional_data: Optional[Mapping[str, Any]] = None,
    ) -> int:
        if isinstance(user, str):
            user_id = user
            user = self.storage.get_user(user_id) if self.storage is not None else None
            if user is None:
                raise NotFoundError(f'Unknown user "{user_id}"')
        platform = user.get("platform")
        if not platform:
            raise ValidationError(f"User {user.get('id', user)!r} has no platform")
        data = {"channel_defaults": dict(user.get("channel") or {})}
        data.update(additional_data or {})
        logger.info("Proactive send %s to user %s via %s", reference, user.get("id"), platform)
        return await self.send_to_platform(platform, reference, data, user=dict(user))
