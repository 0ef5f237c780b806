"""Tests for the in-process pipeline event bus."""

import asyncio
import json
import logging

from canvasflow.server.event_bus import (
    PIPELINE_DELETED,
    PIPELINE_SAVED,
    EventBus,
    get_event_bus,
    set_event_bus,
)


async def _first(stream):
    async for item in stream:
        return item


async def _next_event(bus: EventBus, emit):
    """Subscribe, run *emit*, and return the first delivered event."""
    subscription = bus.subscribe()
    pending = asyncio.create_task(_first(subscription))
    await asyncio.sleep(0)
    await emit()
    try:
        return await asyncio.wait_for(pending, timeout=1)
    finally:
        await subscription.aclose()


class TestEventBus:
    def test_emit_async_delivers_event(self):
        bus = EventBus(queue_size=10)

        async def emit():
            await bus.emit_async(
                PIPELINE_SAVED,
                pipeline_id="p-1",
                canvas_id="canvas-1",
                payload={"pipeline": {"id": "p-1"}},
            )

        event = asyncio.run(_next_event(bus, emit))

        assert event["type"] == "pipeline:saved"
        assert event["scope"] == "canvas"
        assert event["pipelineId"] == "p-1"
        assert event["canvasId"] == "canvas-1"
        assert event["payload"] == {"pipeline": {"id": "p-1"}}
        assert event["timestamp"].isdigit()

    def test_optional_fields_omitted(self):
        bus = EventBus(queue_size=10)

        async def emit():
            await bus.emit_async(PIPELINE_DELETED, pipeline_id="p-1")

        event = asyncio.run(_next_event(bus, emit))

        assert "canvasId" not in event
        assert "payload" not in event

    def test_thread_safe_emit_uses_loop(self):
        bus = EventBus(queue_size=10)

        async def run():
            bus.set_loop(asyncio.get_running_loop())

            async def emit():
                bus.emit(PIPELINE_SAVED, pipeline_id="p-1")

            return await _next_event(bus, emit)

        event = asyncio.run(run())

        assert event["pipelineId"] == "p-1"

    def test_emit_without_loop_is_noop(self):
        bus = EventBus(queue_size=10)
        bus.emit(PIPELINE_SAVED, pipeline_id="p-1")
        assert bus.subscriber_count == 0

    def test_subscription_cleanup(self):
        bus = EventBus(queue_size=10)

        async def run():
            async def emit():
                assert bus.subscriber_count == 1
                await bus.emit_async(PIPELINE_SAVED)

            await _next_event(bus, emit)
            return bus.subscriber_count

        assert asyncio.run(run()) == 0

    def test_full_queue_drops_event(self, caplog):
        caplog.set_level(logging.WARNING)
        bus = EventBus(queue_size=1)

        async def run():
            subscription = bus.subscribe()
            pending = asyncio.create_task(_first(subscription))
            await asyncio.sleep(0)
            # The subscriber is blocked in q.get(); the first put wakes it
            await bus.emit_async(PIPELINE_SAVED, pipeline_id="first")
            await bus.emit_async(PIPELINE_SAVED, pipeline_id="second")
            await bus.emit_async(PIPELINE_SAVED, pipeline_id="third")
            first = await asyncio.wait_for(pending, timeout=1)
            await subscription.aclose()
            return first

        first = asyncio.run(run())

        assert first["pipelineId"] == "first"
        assert "queue full" in caplog.text

    def test_subscribe_sse_formats_data_lines(self):
        bus = EventBus(queue_size=10)

        async def run():
            stream = bus.subscribe_sse()
            pending = asyncio.create_task(_first(stream))
            await asyncio.sleep(0)
            await bus.emit_async(PIPELINE_SAVED, pipeline_id="p-1")
            line = await asyncio.wait_for(pending, timeout=1)
            await stream.aclose()
            return line

        line = asyncio.run(run())

        assert line.startswith("data: ")
        assert line.endswith("\n\n")
        assert json.loads(line[len("data: ") :])["pipelineId"] == "p-1"


class TestGlobalEventBus:
    def test_set_and_get(self):
        bus = EventBus(queue_size=1)
        set_event_bus(bus)
        try:
            assert get_event_bus() is bus
        finally:
            set_event_bus(None)
        assert get_event_bus() is None
