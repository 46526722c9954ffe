"""
Progress and Streaming Tests

Emitter failure isolation, sinks, keepalives, and the SSE adapter.
"""

import asyncio
import json

import httpx
import openai

from search_agent.config.factory import MockChatProvider, MockSearchProvider
from search_agent.llm.protocols import Message, ToolCallRequest
from search_agent.orchestration import (
    CallbackSink,
    CancellationToken,
    EventType,
    Orchestrator,
    ProgressEmitter,
    ProgressEvent,
    QueueSink,
    RunConfig,
    Step,
    ToolExecutor,
    format_sse,
    stream_chat,
)


def _parse(frames):
    return [json.loads(f[len("data: "):]) for f in frames if f.startswith("data: ")]


def test_event_wire_shape():
    step = Step.searching("llama 4")
    step.complete(5)
    event = ProgressEvent(type=EventType.SEARCH_COMPLETE, message="Found 5 results", step=step)

    payload = event.to_dict()
    assert payload["type"] == "search_complete"
    assert payload["message"] == "Found 5 results"
    assert payload["step"]["type"] == "searching"
    assert payload["step"]["query"] == "llama 4"
    assert payload["step"]["status"] == "done"
    assert payload["step"]["resultCount"] == 5
    assert "data" not in payload

    assert ProgressEvent(type=EventType.DONE).to_dict() == {"type": "done"}
    assert format_sse({"type": "done"}) == 'data: {"type": "done"}\n\n'


def test_emitter_swallows_sink_failures():
    """A failing sink never raises into the caller."""

    class ExplodingSink:
        def emit(self, event):
            raise BrokenPipeError("transport closed")

        def keepalive(self):
            raise BrokenPipeError("transport closed")

    async def go():
        emitter = ProgressEmitter(ExplodingSink())
        await emitter.emit(EventType.THINKING, "Thinking...")
        await emitter.keepalive()
        return emitter.emitted

    assert asyncio.run(go()) == 0
    print("[PASS] Sink failures isolated")


def test_callback_sink_accepts_async_callbacks():
    received = []

    async def on_event(event):
        await asyncio.sleep(0)
        received.append(event.type)

    async def go():
        emitter = ProgressEmitter(CallbackSink(on_event))
        await emitter.emit(EventType.THINKING)
        await emitter.emit(EventType.COMPLETE)

    asyncio.run(go())
    assert received == [EventType.THINKING, EventType.COMPLETE]


def test_heartbeat_calls_keepalive():
    beats = []

    async def go():
        emitter = ProgressEmitter(CallbackSink(lambda e: None, on_keepalive=lambda: beats.append(1)))
        async with emitter.heartbeat(0.02):
            await asyncio.sleep(0.15)
        count = len(beats)
        await asyncio.sleep(0.06)
        return count

    count = asyncio.run(go())
    assert count >= 3
    # Stopped once the block exited
    assert len(beats) == count


def test_queue_sink_closes():
    async def go():
        sink = QueueSink()
        sink.emit(ProgressEvent(type=EventType.THINKING))
        sink.keepalive()
        sink.close()
        sink.emit(ProgressEvent(type=EventType.COMPLETE))
        return [item async for item in sink.events()]

    items = asyncio.run(go())
    assert len(items) == 2
    assert items[0].type == EventType.THINKING
    assert items[1] is QueueSink.KEEPALIVE


def _orchestrator(responses, delay=0.0, heartbeat_interval=0.0):
    model = MockChatProvider(responses, delay=delay)
    return Orchestrator(
        model,
        ToolExecutor(MockSearchProvider()),
        heartbeat_interval=heartbeat_interval,
    )


def _collect(orchestrator, message, config=None):
    async def go():
        return [frame async for frame in stream_chat(orchestrator, message, config=config)]

    return asyncio.run(go())


def test_stream_success_frames():
    """Progress frames, then the result, then done."""
    print("=" * 60)
    print("TEST: Streamed run")
    print("=" * 60)

    orchestrator = _orchestrator(
        [
            Message.assistant(
                None,
                [ToolCallRequest(id="c1", name="web_search", arguments='{"query": "sse"}')],
            ),
            "Server-Sent Events stream text over HTTP.",
        ]
    )

    frames = _collect(orchestrator, "What is SSE?", RunConfig())
    events = _parse(frames)
    for event in events:
        print(f"  {event['type']}: {event.get('message', '')}")

    assert [e["type"] for e in events] == [
        "thinking",
        "searching",
        "search_complete",
        "thinking",
        "complete",
        "result",
        "done",
    ]
    result = events[-2]["data"]
    assert result["finalText"] == "Server-Sent Events stream text over HTTP."
    assert result["searchPerformed"] is True
    assert result["toolCallsUsed"] == 1
    assert result["iterationsUsed"] == 2
    assert len(result["sources"]) == 3
    assert result["sources"][0]["domain"] == "example.com"
    assert result["steps"][0]["status"] == "done"
    assert all(f.endswith("\n\n") for f in frames)
    print("\n[PASS] Stream ends with result and done")


def test_stream_failure_frames():
    request = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")
    error = openai.RateLimitError(
        "Rate limit reached", response=httpx.Response(429, request=request), body=None
    )
    orchestrator = _orchestrator([error])

    events = _parse(_collect(orchestrator, "Hello", RunConfig()))

    assert events[-1] == {"type": "done"}
    assert events[-2]["type"] == "error"
    assert events[-2]["code"] == "RATE_LIMIT"
    assert events[-2]["message"] == "Too many requests. Please wait a moment."
    assert not any(e["type"] == "result" for e in events)


def test_stream_invalid_input():
    events = _parse(_collect(_orchestrator(["unused"]), "   "))
    assert [e["type"] for e in events] == ["error", "done"]
    assert events[0]["code"] == "INVALID_INPUT"


def test_stream_heartbeats():
    orchestrator = _orchestrator(["Slow answer"], delay=0.15, heartbeat_interval=0.03)

    frames = _collect(orchestrator, "Take your time", RunConfig())

    assert ": heartbeat\n\n" in frames
    assert _parse(frames)[-1] == {"type": "done"}


def test_stream_close_cancels_run():
    async def go():
        token = CancellationToken()
        orchestrator = _orchestrator(["never seen"], delay=5.0)
        stream = stream_chat(orchestrator, "Question", config=RunConfig(), cancel_token=token)
        first = await stream.__anext__()
        await stream.aclose()
        return first, token.cancelled

    first, cancelled = asyncio.run(go())
    assert json.loads(first[len("data: "):])["type"] == "thinking"
    assert cancelled


def test_stream_close_waits_for_run_to_stop():
    """Closing the stream returns only after the abandoned run has unwound."""
    stopped = []

    class SlowModel(MockChatProvider):
        async def complete_chat(self, *args, **kwargs):
            try:
                return await super().complete_chat(*args, **kwargs)
            except asyncio.CancelledError:
                stopped.append("model call cancelled")
                raise

    async def go():
        orchestrator = Orchestrator(
            SlowModel(["never seen"], delay=5.0),
            ToolExecutor(MockSearchProvider()),
            heartbeat_interval=0,
        )
        stream = stream_chat(orchestrator, "Question", config=RunConfig())
        await stream.__anext__()
        await stream.aclose()
        return list(stopped)

    assert asyncio.run(go()) == ["model call cancelled"]
