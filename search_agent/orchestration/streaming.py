"""Server-Sent-Events adapter for streamed runs."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Sequence

from ..errors import ErrorCode
from .agent_loop import HistoryEntry, Orchestrator
from .cancellation import CancellationToken
from .models import RunConfig
from .progress import EventType, ProgressEvent, QueueSink

logger = logging.getLogger(__name__)

HEARTBEAT_FRAME = ": heartbeat\n\n"


def format_sse(event: ProgressEvent | dict[str, Any]) -> str:
    """Render one event as an SSE data frame."""
    payload = event.to_dict() if isinstance(event, ProgressEvent) else event
    return f"data: {json.dumps(payload)}\n\n"


async def stream_chat(
    orchestrator: Orchestrator,
    message: str,
    history: Sequence[HistoryEntry] | None = None,
    config: RunConfig | None = None,
    cancel_token: CancellationToken | None = None,
) -> AsyncIterator[str]:
    """
    Run one chat turn and yield SSE frames as it progresses.

    Frames are progress events and heartbeat comments, then a ``result`` or
    ``error`` event, always followed by ``done``. Closing the generator early
    cancels the run.
    """
    token = cancel_token or CancellationToken()
    sink = QueueSink()
    task = asyncio.create_task(
        orchestrator.run(
            message,
            history,
            config,
            progress_sink=sink,
            cancel_token=token,
        )
    )
    task.add_done_callback(lambda _: sink.close())

    try:
        async for item in sink.events():
            if item is QueueSink.KEEPALIVE:
                yield HEARTBEAT_FRAME
            else:
                yield format_sse(item)

        try:
            outcome = await task
        except Exception as e:
            logger.exception(f"Streamed run crashed: {e}")
            yield format_sse(
                ProgressEvent(
                    type=EventType.ERROR,
                    message="An unexpected error occurred.",
                    code=ErrorCode.INTERNAL_ERROR.value,
                )
            )
        else:
            if outcome.success:
                yield format_sse(
                    ProgressEvent(
                        type=EventType.RESULT,
                        message="Answer ready",
                        data=outcome.to_payload(),
                    )
                )
            else:
                yield format_sse(
                    ProgressEvent(
                        type=EventType.ERROR,
                        message=outcome.error,
                        code=outcome.code.value,
                    )
                )

        yield format_sse(ProgressEvent(type=EventType.DONE))
    finally:
        if not task.done():
            logger.info("Stream consumer went away; cancelling run")
            token.cancel("stream closed")
            try:
                outcome = await task
            except Exception as e:
                logger.warning(f"Abandoned run failed while stopping: {e}")
            else:
                logger.info(f"Abandoned run stopped (success={outcome.success})")
