"""Tests for the sequential dispatch loop and the default engine."""

import asyncio
import time

import pytest

from reply_renderer.dispatch import dispatch
from reply_renderer.engine import EngineOptions, default_engine
from reply_renderer.errors import DeliveryError, NotFoundError
from reply_renderer.models import OutboundMessage, Pause


class _Recorder:
    def __init__(self, fail_on=None):
        self.events = []
        self.fail_on = fail_on

    async def send(self, msg):
        if msg.payload == self.fail_on:
            raise DeliveryError(f"cannot deliver {msg.payload}")
        await asyncio.sleep(0)
        self.events.append(("send", msg.payload))

    async def sleep(self, seconds):
        self.events.append(("sleep", seconds))


@pytest.mark.asyncio
async def test_pause_between_messages():
    rec = _Recorder()
    msgs = [OutboundMessage("A"), Pause(500), OutboundMessage("B")]
    delivered = await dispatch(msgs, rec.send, sleep=rec.sleep)
    assert delivered == 2
    assert rec.events == [("send", "A"), ("sleep", 0.5), ("send", "B")]


@pytest.mark.asyncio
async def test_real_pause_delays_next_delivery():
    stamps = []

    async def send(msg):
        stamps.append((msg.payload, time.monotonic()))

    await dispatch([OutboundMessage("A"), Pause(50), OutboundMessage("B")], send)
    assert [p for p, _ in stamps] == ["A", "B"]
    assert stamps[1][1] - stamps[0][1] >= 0.045


@pytest.mark.asyncio
async def test_failure_aborts_remaining():
    rec = _Recorder(fail_on="B")
    msgs = [OutboundMessage("A"), OutboundMessage("B"), OutboundMessage("C")]
    with pytest.raises(DeliveryError):
        await dispatch(msgs, rec.send, sleep=rec.sleep)
    assert rec.events == [("send", "A")]


@pytest.mark.asyncio
async def test_sync_send_outgoing():
    sent = []
    await dispatch([OutboundMessage("A"), OutboundMessage("B")], sent.append)
    assert [m.payload for m in sent] == ["A", "B"]


@pytest.mark.asyncio
async def test_unknown_message_type():
    with pytest.raises(TypeError):
        await dispatch([{"text": "raw"}], lambda m: None)


class TestDefaultEngine:
    def _run(self, render_fn, processors, platform="web", throw=True):
        return default_engine(
            render_fn=render_fn,
            renderer_name="test",
            context={"name": "Ann"},
            options=EngineOptions(current_platform=platform, throw_if_no_platform=throw),
            processors=processors,
        )

    def test_processes_payloads_and_keeps_pauses(self):
        def render(ctx):
            return [
                {"text": f"hi {ctx['name']}"},
                {"__internal": True, "type": "wait", "wait": 200},
                {"text": "bye"},
            ]

        msgs = self._run(render, {"web": lambda m: {"web": m["text"]}})
        assert msgs == [
            OutboundMessage({"web": "hi Ann"}, "web"),
            Pause(200),
            OutboundMessage({"web": "bye"}, "web"),
        ]

    def test_single_result_is_wrapped(self):
        msgs = self._run(lambda ctx: "hello", {"web": str.upper})
        assert msgs == [OutboundMessage("HELLO", "web")]

    def test_none_renders_nothing(self):
        assert self._run(lambda ctx: None, {"web": str.upper}) == []

    def test_unknown_platform_raises(self):
        with pytest.raises(NotFoundError):
            self._run(lambda ctx: "x", {}, platform="sms")

    def test_unknown_platform_passthrough(self):
        msgs = self._run(lambda ctx: "x", {}, platform="sms", throw=False)
        assert msgs == [OutboundMessage("x", "sms")]

    def test_channel_defaults_fill_missing_keys(self):
        msgs = default_engine(
            render_fn=lambda ctx: [{"text": "a"}, {"text": "b", "topic": "own"}, "plain"],
            renderer_name="test",
            context={"channel_defaults": {"topic": "family"}},
            options=EngineOptions(current_platform="web"),
            processors={"web": lambda m: m},
        )
        assert [m.payload for m in msgs] == [
            {"topic": "family", "text": "a"},
            {"topic": "own", "text": "b"},
            "plain",
        ]

    def test_drops_unknown_control(self):
        msgs = self._run(lambda ctx: [{"__internal": True, "type": "typing"}, "x"], {"web": str})
        assert msgs == [OutboundMessage("x", "web")]
