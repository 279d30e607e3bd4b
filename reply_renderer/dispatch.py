"""Sequential dispatch of rendered messages.

Each message is awaited before the next one starts. Pauses suspend the
loop and deliver nothing. A failed delivery aborts the rest of the
sequence and propagates; earlier deliveries are not retried or rolled back.
Separate dispatch calls may interleave at every await.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Iterable, Union

from reply_renderer.models import Message, OutboundMessage, Pause

logger = logging.getLogger(__name__)

SendOutgoing = Callable[[OutboundMessage], Union[Awaitable[Any], Any]]
Sleep = Callable[[float], Awaitable[Any]]


async def dispatch(
    messages: Iterable[Message],
    send_outgoing: SendOutgoing,
    sleep: Sleep = asyncio.sleep,
) -> int:
    """Deliver messages in order; returns the number of delivered messages."""
    delivered = 0
    for index, message in enumerate(messages):
        if isinstance(message, Pause):
            logger.debug("Pausing %sms before message %d", message.duration_ms, index + 1)
            await sleep(message.seconds)
        elif isinstance(message, OutboundMessage):
            try:
                result = send_outgoing(message)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning("Delivery of message %d to %s failed: %s", index, message.platform, e)
                raise
            delivered += 1
            logger.debug("Delivered message %d to %s", index, message.platform)
        else:
            raise TypeError(f"Cannot dispatch {type(message).__name__}: {message!r}")
    return delivered
