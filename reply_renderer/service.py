"""RenderingService: owns the registries and wires reply / send_content.

    service = RenderingService(send_outgoing=router, content_store=store)
    service.register_channel("pushplus", channel.process_outgoing)
    service.register("greet", lambda ctx: {"text": f"Hi {ctx['user']}"})
    await service.send_content(event, "#greet")

Registries are plain instance state. They are not locked; mutate them at
startup or on hot-reload rather than while sends are running.
"""
from __future__ import annotations

import asyncio
import logging
import warnings
from typing import Any, Callable, Mapping, Optional, Union

from reply_renderer.channel import ChannelRegistry, ProcessOutgoing
from reply_renderer.content import ContentStore, InMemoryContentStore, resolve_content
from reply_renderer.context import build_render_context
from reply_renderer.dispatch import SendOutgoing, Sleep, dispatch
from reply_renderer.engine import EngineOptions, RenderEngine, default_engine
from reply_renderer.errors import NotFoundError
from reply_renderer.models import (
    IncomingEvent,
    MiddlewareDescriptor,
    RendererReference,
    RenderFn,
    to_message,
)
from reply_renderer.proactive import Proactive, UserStorage
from reply_renderer.registry import RendererRegistry

logger = logging.getLogger(__name__)

Reference = Union[str, RendererReference]


class RenderingService:
    def __init__(
        self,
        send_outgoing: SendOutgoing,
        content_store: Optional[ContentStore] = None,
        engine: RenderEngine = default_engine,
        storage: Optional[UserStorage] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.renderers = RendererRegistry()
        self.channels = ChannelRegistry()
        self.content_store = content_store if content_store is not None else InMemoryContentStore()
        self.engine = engine
        self.send_outgoing = send_outgoing
        self.sleep = sleep
        self.proactive = Proactive(send_content=self.send_content, storage=storage)
        self.incoming_middleware = MiddlewareDescriptor(
            name="rendering.instrumentation",
            type="incoming",
            order=2,
            description="Adds a `.reply` to incoming events. Works with renderers.",
            handler=self.process_incoming,
        )

    # Registry API

    def register_channel(self, platform: str, process_outgoing: ProcessOutgoing) -> None:
        self.channels.register_channel(platform, process_outgoing)

    def register_connector(self, platform: str, process_outgoing: ProcessOutgoing) -> None:
        """Deprecated alias of register_channel."""
        warnings.warn(
            "register_connector is deprecated, use register_channel",
            DeprecationWarning,
            stacklevel=2,
        )
        self.channels.register_channel(platform, process_outgoing)

    def register(self, name: str, render_fn: RenderFn) -> None:
        self.renderers.register(name, render_fn)

    def unregister(self, name: str) -> None:
        self.renderers.unregister(name)

    def is_registered(self, name: str) -> bool:
        return self.renderers.is_registered(name)

    # Sending

    async def send_content(
        self,
        incoming_event: Optional[IncomingEvent],
        reference: Reference,
        additional_data: Optional[Mapping[str, Any]] = None,
    ) -> int:
        """Resolve, render and dispatch; returns the number of delivered messages."""
        ref = RendererReference.parse(reference)
        renderer_name = ref.name
        initial_data: dict = {}
        if ref.is_indirect:
            resolved = await resolve_content(self.content_store, ref.name)
            renderer_name = resolved.renderer_name
            initial_data = resolved.initial_data

        context = build_render_context(incoming_event, initial_data, additional_data)

        render_fn = self.renderers.get_exact(renderer_name)
        if render_fn is None:
            error = f"[Renderer] Renderer not defined (#{renderer_name})"
            logger.error(error)
            raise NotFoundError(error)

        platform = incoming_event.platform if incoming_event is not None else None
        rendered = self.engine(
            render_fn=render_fn,
            renderer_name=renderer_name,
            context=context,
            options=EngineOptions(current_platform=platform, throw_if_no_platform=True),
            processors=self.channels.processors,
            incoming_event=incoming_event,
        )
        messages = []
        for element in rendered:
            message = to_message(element, platform=platform)
            if message is not None:
                messages.append(message)
        return await dispatch(messages, self.send_outgoing, sleep=self.sleep)

    # Incoming middleware

    def process_incoming(self, event: IncomingEvent, next_: Callable[[], Any]) -> Any:
        """Attach `event.reply(reference, additional_data=None)` and continue the pipeline."""
        async def reply(reference: Reference, additional_data: Optional[Mapping[str, Any]] = None) -> int:
            return await self.send_content(event, reference, additional_data)

        event.reply = reply
        return next_()
