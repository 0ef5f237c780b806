"""In-process event bus for pipeline lifecycle events.

The wiring layer announces ``pipeline:saved`` / ``pipeline:deleted`` here so
other observers (a connection overlay, the SSE endpoint at
GET /api/v1/events/stream) can refresh. The graph types themselves carry no
dependency on the bus.

emit() may be called from any thread once set_loop() has run; emit_async()
delivers directly from the event loop.
"""

import asyncio
import json
import logging
import threading
import time
from collections.abc import AsyncGenerator
from typing import Any, Literal

from pydantic import Field

from canvasflow.core.pipelines.schema import CamelModel

from .settings import get_event_queue_size

logger = logging.getLogger(__name__)

PIPELINE_SAVED = "pipeline:saved"
PIPELINE_DELETED = "pipeline:deleted"


def _now_ms() -> str:
    return str(int(time.time() * 1000))


class PipelineEvent(CamelModel):
    """Wire shape of one bus event."""

    type: str
    scope: Literal["canvas"] = "canvas"
    timestamp: str = Field(default_factory=_now_ms)
    pipeline_id: str | None = None
    canvas_id: str | None = None
    payload: dict[str, Any] | None = None


class EventBus:
    """Fan-out of pipeline events to async subscribers.

    Each subscriber owns a bounded asyncio.Queue. When a subscriber falls
    behind and its queue is full, new events are dropped for it alone.
    """

    def __init__(self, queue_size: int | None = None):
        self._queues: list[asyncio.Queue] = []
        self._lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue_size = queue_size or get_event_queue_size()

    def set_loop(self, loop: asyncio.AbstractEventLoop):
        """Bind the loop that subscribers run on. Called once at startup."""
        self._loop = loop

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._queues)

    def _publish(self, event: dict[str, Any]):
        # Runs on the loop thread
        with self._lock:
            queues = list(self._queues)

        for queue in queues:
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(
                    f"Event bus subscriber queue full, dropping {event['type']} event"
                )

    def emit(
        self,
        event_type: str,
        pipeline_id: str | None = None,
        canvas_id: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> None:
        """Thread-safe emit. Does nothing until a running loop has been set."""
        if self._loop is None or not self._loop.is_running():
            return

        event = PipelineEvent(
            type=event_type, pipeline_id=pipeline_id, canvas_id=canvas_id, payload=payload
        ).to_json_dict()
        self._loop.call_soon_threadsafe(self._publish, event)
        logger.debug(f"Scheduled {event_type} for pipeline {pipeline_id}")

    async def emit_async(
        self,
        event_type: str,
        pipeline_id: str | None = None,
        canvas_id: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> None:
        event = PipelineEvent(
            type=event_type, pipeline_id=pipeline_id, canvas_id=canvas_id, payload=payload
        ).to_json_dict()
        self._publish(event)
        logger.debug(f"Published {event_type} for pipeline {pipeline_id}")

    async def subscribe(self) -> AsyncGenerator[dict[str, Any], None]:
        """Yield events until the generator is closed, then unsubscribe."""
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=self._queue_size)
        with self._lock:
            self._queues.append(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            with self._lock:
                self._queues.remove(queue)

    async def subscribe_sse(self) -> AsyncGenerator[str, None]:
        """Like subscribe(), formatted as SSE ``data:`` frames."""
        async for event in self.subscribe():
            yield f"data: {json.dumps(event)}\n\n"


_event_bus: EventBus | None = None


def get_event_bus() -> EventBus | None:
    return _event_bus


def set_event_bus(bus: EventBus | None):
    global _event_bus
    _event_bus = bus
