"""
Tool Registry and Executor Tests

Schema generation, argument parsing, and per-call execution: event
ordering, provider error translation, timeouts and extraction output.
"""

import asyncio

import pytest

from search_agent.config.factory import MockSearchProvider
from search_agent.errors import ToolArgumentParseError, ToolProviderError, ToolProviderErrorKind
from search_agent.llm.protocols import MessageRole, ToolCallRequest
from search_agent.orchestration import (
    CallbackSink,
    EventType,
    ProgressEmitter,
    RunConfig,
    StepStatus,
    StepType,
    ToolExecutor,
    WebSearchArgs,
    enabled_tools,
    get_tool_schema,
    parse_arguments,
)
from search_agent.web.models import ExtractedPage, ExtractOutcome


def test_tool_schema():
    """Schemas follow the OpenAI function-calling shape."""
    schemas = get_tool_schema()
    names = [s["function"]["name"] for s in schemas]
    assert names == ["web_search", "extract_content"]

    search = schemas[0]
    assert search["type"] == "function"
    assert search["function"]["parameters"]["type"] == "object"
    assert search["function"]["parameters"]["required"] == ["query"]
    assert search["function"]["parameters"]["properties"]["topic"]["enum"] == ["general", "news"]
    print("[PASS] Tool schema generated")


def test_enabled_tools():
    assert [t.name for t in enabled_tools(RunConfig())] == ["web_search", "extract_content"]
    assert [t.name for t in enabled_tools(RunConfig(tools_enabled={"web_search"}))] == ["web_search"]
    assert enabled_tools(RunConfig(context="Some document text")) == []
    # Whitespace-only context does not count
    assert len(enabled_tools(RunConfig(context="   "))) == 2


def test_parse_arguments():
    args = parse_arguments("web_search", '{"query": "  rust 2024 edition ", "topic": "news"}')
    assert isinstance(args, WebSearchArgs)
    assert args.query == "rust 2024 edition"
    assert args.topic == "news"

    assert parse_arguments("web_search", '{"query": "x"}').topic == "general"
    assert parse_arguments("extract_content", '{"urls": "https://a.com"}').urls == ["https://a.com"]


def test_parse_arguments_failures():
    cases = [
        ("web_search", "{not json", "not valid JSON"),
        ("web_search", "[1, 2]", "must be a JSON object"),
        ("web_search", "{}", "query"),
        ("web_search", '{"query": "   "}', "query"),
        ("web_search", '{"query": "x", "topic": "sports"}', "topic"),
        ("extract_content", '{"urls": []}', "urls"),
        ("extract_content", '{"urls": ["1", "2", "3", "4", "5", "6"]}', "urls"),
        ("open_browser", "{}", "unknown tool"),
    ]
    for tool_name, raw, expected in cases:
        with pytest.raises(ToolArgumentParseError) as excinfo:
            parse_arguments(tool_name, raw)
        assert expected in str(excinfo.value)
        assert excinfo.value.tool_name == tool_name


def _run_call(executor, call, config=None):
    events = []

    async def go():
        return await executor.run_call(call, config or RunConfig(), ProgressEmitter(CallbackSink(events.append)))

    return asyncio.run(go()), events


def test_search_call_success():
    """A search emits started/completed for one step and formats results for the model."""
    print("=" * 60)
    print("TEST: web_search execution")
    print("=" * 60)

    search = MockSearchProvider(results_per_query=2)
    executor = ToolExecutor(search)
    call = ToolCallRequest(id="call-1", name="web_search", arguments='{"query": "async python"}')

    result, events = _run_call(executor, call)

    assert result.success
    assert result.call_id == "call-1"
    assert result.content.startswith("Answer: Mock answer for async python\n\nSearch Results:\n")
    assert "Title: Mock result 1 for async python" in result.content
    assert len(result.sources) == 2
    assert result.step.type == StepType.SEARCHING
    assert result.step.status == StepStatus.DONE
    assert result.step.result_count == 2

    assert [e.type for e in events] == [EventType.SEARCHING, EventType.SEARCH_COMPLETE]
    assert events[0].step is result.step
    assert events[0].message == 'Searching: "async python"'

    message = result.to_message()
    assert message.role == MessageRole.TOOL
    assert message.tool_call_id == "call-1"
    print("\n[PASS] web_search executed")


def test_search_uses_run_settings():
    class RecordingSearch(MockSearchProvider):
        def __init__(self):
            super().__init__()
            self.calls = []

        async def search(self, query, topic="general", search_depth="basic", max_results=5):
            self.calls.append((query, topic, search_depth, max_results))
            return await super().search(query, topic, search_depth, max_results)

    search = RecordingSearch()
    executor = ToolExecutor(search)
    config = RunConfig(search_depth="advanced", max_search_results=8)
    call = ToolCallRequest(id="c", name="web_search", arguments='{"query": "q", "topic": "news"}')

    _run_call(executor, call, config)

    assert search.calls == [("q", "news", "advanced", 8)]


def test_provider_errors_are_translated():
    search = MockSearchProvider(
        errors={
            "limited": ToolProviderError(
                ToolProviderErrorKind.RATE_LIMITED,
                "Search service rate limit exceeded. Please try again in a few minutes.",
            ),
            "crash": KeyError("results"),
        }
    )
    executor = ToolExecutor(search)

    result, events = _run_call(
        executor, ToolCallRequest(id="a", name="web_search", arguments='{"query": "limited"}')
    )
    assert not result.success
    assert result.content == "Error: Search service rate limit exceeded. Please try again in a few minutes."
    assert result.step.status == StepStatus.ERROR
    assert [e.type for e in events] == [EventType.SEARCHING, EventType.SEARCH_COMPLETE]
    assert events[1].step.status == StepStatus.ERROR

    result, _ = _run_call(
        executor, ToolCallRequest(id="b", name="web_search", arguments='{"query": "crash"}')
    )
    assert not result.success
    assert result.error == "Search service temporarily unavailable."


def test_search_timeout():
    search = MockSearchProvider(delays={"slow": 1.0})
    executor = ToolExecutor(search, search_timeout=0.05)

    result, _ = _run_call(
        executor, ToolCallRequest(id="t", name="web_search", arguments='{"query": "slow"}')
    )

    assert not result.success
    assert result.step.status == StepStatus.ERROR
    assert "timed out" in result.content


def test_parse_failure_records_error_step():
    executor = ToolExecutor(MockSearchProvider())

    result, events = _run_call(
        executor, ToolCallRequest(id="p", name="extract_content", arguments='{"urls": 5}')
    )

    assert not result.success
    assert result.content.startswith("Error: Invalid arguments for extract_content")
    assert result.step.type == StepType.READING
    assert result.step.status == StepStatus.ERROR
    assert [e.type for e in events] == [EventType.READING, EventType.READING_COMPLETE]


def test_unknown_tool():
    executor = ToolExecutor(MockSearchProvider())

    result, events = _run_call(executor, ToolCallRequest(id="u", name="delete_files"))

    assert not result.success
    assert result.content == "Error: Unknown tool: delete_files"
    assert result.step is None
    assert events == []


def test_extract_call():
    class Extractor:
        async def extract(self, urls):
            return ExtractOutcome(
                pages=[ExtractedPage(url=urls[0], raw_content="x" * 50)],
                failed_urls=urls[1:],
            )

    executor = ToolExecutor(MockSearchProvider(), extractor=Extractor())
    call = ToolCallRequest(
        id="e",
        name="extract_content",
        arguments='{"urls": ["https://www.example.org/a", "https://broken.example/b"]}',
    )

    result, events = _run_call(executor, call, RunConfig(extract_max_chars=10))

    assert result.success
    assert "URL: https://www.example.org/a\nContent: xxxxxxxxxx\n[truncated]" in result.content
    assert "Failed to read: https://broken.example/b" in result.content
    assert result.step.result_count == 1
    assert [s.domain for s in result.sources] == ["example.org"]
    assert [e.type for e in events] == [EventType.READING, EventType.READING_COMPLETE]


def test_search_provider_doubles_as_extractor():
    search = MockSearchProvider()
    executor = ToolExecutor(search)
    assert executor.extractor is search

    result, _ = _run_call(
        executor,
        ToolCallRequest(id="e", name="extract_content", arguments='{"urls": ["https://example.com"]}'),
    )
    assert result.success
    assert search.extracted == [["https://example.com"]]


def test_execute_with_parsed_arguments():
    executor = ToolExecutor(MockSearchProvider())

    result = asyncio.run(executor.execute("web_search", WebSearchArgs(query="direct")))
    assert result.success
    assert result.step.query == "direct"

    result = asyncio.run(executor.execute("nope", WebSearchArgs(query="x")))
    assert not result.success
    assert result.error == "Unknown tool: nope"
