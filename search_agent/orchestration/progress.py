"""
Progress events and sinks.

The orchestrator pushes structured events to a ProgressSink injected per run.
A sink failure (for example a disconnected transport) is logged and dropped;
it never reaches the agent loop.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Protocol, Union, runtime_checkable

from .models import Step

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Closed set of progress event kinds."""

    THINKING = "thinking"
    SEARCHING = "searching"
    SEARCH_COMPLETE = "search_complete"
    READING = "reading"
    READING_COMPLETE = "reading_complete"
    SYNTHESIZING = "synthesizing"
    ERROR = "error"
    COMPLETE = "complete"
    DONE = "done"
    # Only produced by the transport adapter, never by the loop
    RESULT = "result"


@dataclass
class ProgressEvent:
    """A single progress event."""

    type: EventType
    message: str = ""
    step: Step | None = None
    data: dict[str, Any] | None = None
    code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.type.value}
        if self.message:
            payload["message"] = self.message
        if self.step is not None:
            payload["step"] = self.step.to_dict()
        if self.data is not None:
            payload["data"] = self.data
        if self.code is not None:
            payload["code"] = self.code
        return payload


@runtime_checkable
class ProgressSink(Protocol):
    """Receives progress events for one run.

    ``emit`` may be sync or async. Sinks may also define an optional
    ``keepalive()`` that is called periodically while the run is active.
    """

    def emit(self, event: ProgressEvent) -> Union[None, Awaitable[None]]:
        ...


class NullSink:
    """Discards every event."""

    def emit(self, event: ProgressEvent) -> None:
        pass


class CallbackSink:
    """Forwards events to a sync or async callable."""

    def __init__(
        self,
        callback: Callable[[ProgressEvent], Any],
        on_keepalive: Callable[[], Any] | None = None,
    ):
        self._callback = callback
        self._on_keepalive = on_keepalive

    async def emit(self, event: ProgressEvent) -> None:
        result = self._callback(event)
        if inspect.isawaitable(result):
            await result

    async def keepalive(self) -> None:
        if self._on_keepalive is None:
            return
        result = self._on_keepalive()
        if inspect.isawaitable(result):
            await result


class QueueSink:
    """
    Buffers events in an asyncio.Queue for a consumer task.

    Usage:
        sink = QueueSink()
        task = asyncio.create_task(orchestrator.run(msg, progress_sink=sink))
        task.add_done_callback(lambda _: sink.close())
        async for item in sink.events():
            ...
    """

    KEEPALIVE = object()
    _CLOSED = object()

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def emit(self, event: ProgressEvent) -> None:
        if self.closed:
            return
        self._queue.put_nowait(event)

    def keepalive(self) -> None:
        if self.closed:
            return
        self._queue.put_nowait(self.KEEPALIVE)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._queue.put_nowait(self._CLOSED)

    async def events(self) -> AsyncIterator[Any]:
        """Yield events (or ``KEEPALIVE``) until the sink is closed."""
        while True:
            item = await self._queue.get()
            if item is self._CLOSED:
                return
            yield item


class ProgressEmitter:
    """Failure-isolated wrapper around a run's sink."""

    def __init__(self, sink: ProgressSink | None = None):
        self.sink = sink or NullSink()
        self.emitted = 0

    async def emit(
        self,
        event_type: EventType,
        message: str = "",
        step: Step | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        event = ProgressEvent(type=event_type, message=message, step=step, data=data)
        try:
            result = self.sink.emit(event)
            if inspect.isawaitable(result):
                await result
            self.emitted += 1
        except Exception as e:
            logger.warning(f"Progress sink failed on '{event_type.value}' event: {e}")

    async def keepalive(self) -> None:
        keepalive = getattr(self.sink, "keepalive", None)
        if keepalive is None:
            return
        try:
            result = keepalive()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning(f"Progress sink keepalive failed: {e}")

    @contextlib.asynccontextmanager
    async def heartbeat(self, interval: float) -> AsyncIterator[None]:
        """Send keepalives every ``interval`` seconds while the block runs."""
        if interval <= 0 or not hasattr(self.sink, "keepalive"):
            yield
            return

        async def beat():
            while True:
                await asyncio.sleep(interval)
                await self.keepalive()

        task = asyncio.create_task(beat())
        try:
            yield
        finally:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
