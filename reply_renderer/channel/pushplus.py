"""PushPlus channel: shapes rendered messages into PushPlus payloads and posts them."""
from __future__ import annotations

import asyncio
import logging
import os
import re
from typing import Any, Mapping, Optional

import requests

from reply_renderer.channel.base import Channel
from reply_renderer.errors import DeliveryError, ValidationError
from reply_renderer.models import OutboundMessage

logger = logging.getLogger(__name__)

PUSHPLUS_URL = "https://www.pushplus.plus/send"

# Match ${VAR_NAME} in token string
ENV_PLACEHOLDER_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")

TEMPLATES = {"markdown": "markdown", "html": "html", "text": "txt"}


def resolve_env(raw: str) -> str:
    """Replace ${ENV_VAR} in raw with os.environ values."""
    def repl(match: re.Match[str]) -> str:
        key = match.group(1)
        return os.environ.get(key, match.group(0))
    return ENV_PLACEHOLDER_RE.sub(repl, raw)


class PushPlusChannel(Channel):
    """POST to the PushPlus API with token/title/content/template."""

    def __init__(
        self,
        token: str,
        platform: str = "pushplus",
        topic: Optional[str] = None,
        url: str = PUSHPLUS_URL,
        timeout: float = 10,
    ) -> None:
        self.token = resolve_env(token or "")
        self.platform = platform
        self.topic = topic
        self.url = url
        self.timeout = timeout

    def process_outgoing(self, message: Any) -> dict[str, Any]:
        if isinstance(message, str):
            message = {"text": message}
        if not isinstance(message, Mapping):
            raise ValidationError(f"PushPlus can only send text or mappings, got {type(message).__name__}")
        content = message.get("text", message.get("body"))
        if content is None:
            raise ValidationError("PushPlus message needs 'text' or 'body'")
        payload: dict[str, Any] = {
            "title": message.get("title") or "",
            "content": str(content),
            "template": TEMPLATES.get(message.get("format", "text"), "txt"),
        }
        topic = message.get("topic") or self.topic
        if topic:
            payload["topic"] = topic
        return payload

    def _post(self, payload: dict[str, Any]) -> None:
        if not self.token or ENV_PLACEHOLDER_RE.search(self.token):
            raise DeliveryError(
                f"PushPlus token for '{self.platform}' is empty (env var not set or empty). Check .env"
            )
        body = dict(payload, token=self.token)
        try:
            resp = requests.post(self.url, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise DeliveryError(f"PushPlus request failed: {e}") from e
        if resp.status_code != 200:
            raise DeliveryError(f"PushPlus send failed: status={resp.status_code} body={resp.text[:500]}")
        data = resp.json()
        if isinstance(data, dict) and data.get("code") != 200:
            raise DeliveryError(f"PushPlus API error: code={data.get('code')} msg={data.get('msg', '')}")

    async def send(self, msg: OutboundMessage) -> None:
        mask = f"{self.token[:4]}***" if len(self.token) > 4 else "***"
        if not isinstance(msg.payload, Mapping):
            raise DeliveryError(f"PushPlus payload must be a mapping, got {type(msg.payload).__name__}")
        logger.debug("PushPlus send title=%r token=%s", msg.payload.get("title"), mask)
        await asyncio.to_thread(self._post, msg.payload)
