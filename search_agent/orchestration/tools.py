"""Tool definitions and execution for the agent loop."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..errors import ToolArgumentParseError, ToolProviderError, ToolProviderErrorKind
from ..llm.protocols import Message, ToolCallRequest
from ..settings import EXTRACT_TIMEOUT_SECONDS, SEARCH_TIMEOUT_SECONDS
from ..web.models import Source
from ..web.protocols import ContentExtractor, SearchProvider
from .models import RunConfig, Step, StepType
from .progress import EventType, ProgressEmitter

logger = logging.getLogger(__name__)


class ToolType(Enum):
    """Types of tools available to the model."""

    WEB_SEARCH = "web_search"
    EXTRACT_CONTENT = "extract_content"


class WebSearchArgs(BaseModel):
    """Arguments for web_search."""

    query: str = Field(min_length=1)
    topic: Literal["general", "news"] = "general"

    @field_validator("query", mode="before")
    @classmethod
    def _strip_query(cls, value):
        return value.strip() if isinstance(value, str) else value


class ExtractContentArgs(BaseModel):
    """Arguments for extract_content."""

    urls: list[str] = Field(min_length=1, max_length=5)

    @field_validator("urls", mode="before")
    @classmethod
    def _single_url(cls, value):
        # Models sometimes send a bare string for a one-element list
        return [value] if isinstance(value, str) else value


@dataclass(frozen=True)
class ToolDefinition:
    """Definition of a tool offered to the model."""

    name: str
    description: str
    parameters: dict[str, dict]
    required_params: list[str]
    arguments_model: type[BaseModel]
    step_type: StepType


TOOL_DEFINITIONS: dict[str, ToolDefinition] = {
    ToolType.WEB_SEARCH.value: ToolDefinition(
        name="web_search",
        description=(
            "Search the web for current information. Use for recent events, "
            "news, live data, specific facts you are unsure about, or anything "
            "that may have changed after your training data."
        ),
        parameters={
            "query": {
                "type": "string",
                "description": "The search query, phrased as you would type it into a search engine",
            },
            "topic": {
                "type": "string",
                "enum": ["general", "news"],
                "description": "Use 'news' for current events and recent developments",
            },
        },
        required_params=["query"],
        arguments_model=WebSearchArgs,
        step_type=StepType.SEARCHING,
    ),
    ToolType.EXTRACT_CONTENT.value: ToolDefinition(
        name="extract_content",
        description=(
            "Read the full content of specific web pages. Use after a search "
            "when the snippets are not detailed enough to answer well."
        ),
        parameters={
            "urls": {
                "type": "array",
                "items": {"type": "string"},
                "description": "URLs to read (at most 5), usually taken from search results",
            },
        },
        required_params=["urls"],
        arguments_model=ExtractContentArgs,
        step_type=StepType.READING,
    ),
}


def enabled_tools(config: RunConfig) -> list[ToolDefinition]:
    """Tools offered for a run. Pre-supplied context disables every tool."""
    if config.has_context:
        return []
    return [
        definition
        for name, definition in TOOL_DEFINITIONS.items()
        if name in config.tools_enabled
    ]


def get_tool_schema(definitions: list[ToolDefinition] | None = None) -> list[dict]:
    """
    Get OpenAI-style function schema for tools.

    Args:
        definitions: Tools to describe. Defaults to every registered tool.

    Returns:
        List of tool schemas for LLM function calling
    """
    if definitions is None:
        definitions = list(TOOL_DEFINITIONS.values())

    schemas = []

    for tool_def in definitions:
        schema = {
            "type": "function",
            "function": {
                "name": tool_def.name,
                "description": tool_def.description,
                "parameters": {
                    "type": "object",
                    "properties": tool_def.parameters,
                    "required": tool_def.required_params,
                },
            },
        }
        schemas.append(schema)

    return schemas


def parse_arguments(tool_name: str, raw_arguments: str | None) -> BaseModel:
    """
    Parse raw tool-call arguments into the tool's argument model.

    Raises:
        ToolArgumentParseError: Unknown tool, invalid JSON, or failed validation
    """
    definition = TOOL_DEFINITIONS.get(tool_name)
    if definition is None:
        raise ToolArgumentParseError(tool_name, "unknown tool")

    try:
        data = json.loads(raw_arguments or "{}")
    except json.JSONDecodeError as e:
        raise ToolArgumentParseError(tool_name, f"arguments are not valid JSON ({e.msg})") from e

    if not isinstance(data, dict):
        raise ToolArgumentParseError(tool_name, "arguments must be a JSON object")

    try:
        return definition.arguments_model.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
            for err in e.errors()
        )
        raise ToolArgumentParseError(tool_name, problems) from e


@dataclass
class ToolResult:
    """Result of a tool execution.

    ``content`` is the text handed back to the model in the tool-result
    message, for failures as well as successes.
    """

    success: bool
    content: str
    tool_name: str
    call_id: str = ""
    step: Step | None = None
    sources: list[Source] = field(default_factory=list)
    error: str | None = None

    def to_message(self) -> Message:
        return Message.tool(self.call_id, self.content)


def _failure(tool_name: str, call_id: str, message: str, step: Step | None = None) -> ToolResult:
    return ToolResult(
        success=False,
        content=f"Error: {message}",
        tool_name=tool_name,
        call_id=call_id,
        step=step,
        error=message,
    )


def _best_effort_step(definition: ToolDefinition, raw_arguments: str | None) -> Step:
    """Step for a call whose arguments could not be parsed."""
    data: Any = None
    try:
        data = json.loads(raw_arguments or "{}")
    except json.JSONDecodeError:
        pass

    if definition.step_type == StepType.READING:
        urls = data.get("urls") if isinstance(data, dict) else None
        if isinstance(urls, str):
            urls = [urls]
        return Step.reading([str(u) for u in urls] if isinstance(urls, list) else [])

    query = data.get("query") if isinstance(data, dict) else None
    return Step.searching(str(query) if query else (raw_arguments or ""))


Handler = Callable[[BaseModel, str, RunConfig, ProgressEmitter], Awaitable[ToolResult]]


class ToolExecutor:
    """
    Executes tool calls requested by the model.

    Maps tool names to handlers backed by the search and extraction
    providers. Provider failures become failed steps and tool-result text;
    nothing raised by a provider escapes ``run_call``.
    """

    def __init__(
        self,
        search_provider: SearchProvider,
        extractor: ContentExtractor | None = None,
        search_timeout: float = SEARCH_TIMEOUT_SECONDS,
        extract_timeout: float = EXTRACT_TIMEOUT_SECONDS,
    ):
        """
        Initialize the tool executor.

        Args:
            search_provider: Backend for web_search
            extractor: Backend for extract_content. Defaults to the search
                provider when it also implements extraction.
            search_timeout: Per-call timeout for searches
            extract_timeout: Per-call timeout for extractions
        """
        self.search_provider = search_provider
        if extractor is None and isinstance(search_provider, ContentExtractor):
            extractor = search_provider
        self.extractor = extractor
        self.search_timeout = search_timeout
        self.extract_timeout = extract_timeout

        self._handlers: dict[str, Handler] = {
            ToolType.WEB_SEARCH.value: self._run_search,
            ToolType.EXTRACT_CONTENT.value: self._run_extract,
        }

    async def run_call(
        self,
        call: ToolCallRequest,
        config: RunConfig,
        emitter: ProgressEmitter,
    ) -> ToolResult:
        """Parse and execute one tool call from the model."""
        definition = TOOL_DEFINITIONS.get(call.name)
        if definition is None or call.name not in self._handlers:
            logger.warning(f"Model requested unknown tool: {call.name}")
            return _failure(call.name, call.id, f"Unknown tool: {call.name}")

        try:
            arguments = parse_arguments(call.name, call.arguments)
        except ToolArgumentParseError as e:
            logger.warning(f"{e} (raw: {call.arguments!r})")
            step = _best_effort_step(definition, call.arguments)
            await self._emit_started(emitter, step)
            step.fail()
            await self._emit_finished(emitter, step, f"{e}")
            return _failure(
                call.name,
                call.id,
                f"{e}. Retry the call with a valid JSON object.",
                step,
            )

        return await self.execute(call.name, arguments, call.id, config, emitter)

    async def execute(
        self,
        tool_name: str,
        arguments: BaseModel,
        call_id: str = "",
        config: RunConfig | None = None,
        emitter: ProgressEmitter | None = None,
    ) -> ToolResult:
        """
        Execute a tool with already-parsed arguments.

        Args:
            tool_name: Registered tool name
            arguments: Parsed argument model for the tool
            call_id: Identifier of the originating tool call
            config: Run settings (search depth, result caps)
            emitter: Progress emitter for step events

        Returns:
            ToolResult with success status and model-facing content
        """
        handler = self._handlers.get(tool_name)
        if handler is None:
            return _failure(tool_name, call_id, f"Unknown tool: {tool_name}")

        return await handler(
            arguments,
            call_id,
            config or RunConfig(),
            emitter or ProgressEmitter(),
        )

    async def _emit_started(self, emitter: ProgressEmitter, step: Step) -> None:
        if step.type == StepType.SEARCHING:
            await emitter.emit(EventType.SEARCHING, f'Searching: "{step.query}"', step)
        else:
            await emitter.emit(
                EventType.READING, f"Reading {len(step.urls or [])} page(s)", step
            )

    async def _emit_finished(self, emitter: ProgressEmitter, step: Step, message: str) -> None:
        event_type = (
            EventType.SEARCH_COMPLETE
            if step.type == StepType.SEARCHING
            else EventType.READING_COMPLETE
        )
        await emitter.emit(event_type, message, step)

    async def _call_provider(self, awaitable: Awaitable, timeout: float, service: str):
        """Await a provider call, translating every failure to ToolProviderError."""
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise ToolProviderError(
                ToolProviderErrorKind.TIMEOUT,
                f"{service} request timed out. Please try again.",
            ) from e
        except (ToolProviderError, ToolArgumentParseError):
            raise
        except Exception as e:
            logger.exception(f"{service} raised an untranslated error")
            raise ToolProviderError(
                ToolProviderErrorKind.UNAVAILABLE,
                f"{service} temporarily unavailable.",
            ) from e

    async def _run_search(
        self,
        arguments: WebSearchArgs,
        call_id: str,
        config: RunConfig,
        emitter: ProgressEmitter,
    ) -> ToolResult:
        step = Step.searching(arguments.query)
        await self._emit_started(emitter, step)

        try:
            outcome = await self._call_provider(
                self.search_provider.search(
                    arguments.query,
                    topic=arguments.topic,
                    search_depth=config.search_depth,
                    max_results=config.max_search_results,
                ),
                self.search_timeout,
                "Search service",
            )
        except (ToolProviderError, ToolArgumentParseError) as e:
            logger.warning(f"web_search failed for '{arguments.query}': {e}")
            step.fail()
            await self._emit_finished(emitter, step, f"Search failed: {e}")
            return _failure("web_search", call_id, str(e), step)

        step.complete(outcome.result_count)
        await self._emit_finished(
            emitter, step, f'Found {outcome.result_count} results for "{arguments.query}"'
        )

        content = f"Search Results:\n{outcome.formatted_results}"
        if outcome.answer:
            content = f"Answer: {outcome.answer}\n\n{content}"

        return ToolResult(
            success=True,
            content=content,
            tool_name="web_search",
            call_id=call_id,
            step=step,
            sources=outcome.sources,
        )

    async def _run_extract(
        self,
        arguments: ExtractContentArgs,
        call_id: str,
        config: RunConfig,
        emitter: ProgressEmitter,
    ) -> ToolResult:
        step = Step.reading(arguments.urls)
        await self._emit_started(emitter, step)

        try:
            if self.extractor is None:
                raise ToolProviderError(
                    ToolProviderErrorKind.UNAVAILABLE,
                    "Extraction service is not configured.",
                )
            outcome = await self._call_provider(
                self.extractor.extract(arguments.urls),
                self.extract_timeout,
                "Extraction service",
            )
        except (ToolProviderError, ToolArgumentParseError) as e:
            logger.warning(f"extract_content failed for {len(arguments.urls)} URLs: {e}")
            step.fail()
            await self._emit_finished(emitter, step, f"Reading failed: {e}")
            return _failure("extract_content", call_id, str(e), step)

        step.complete(len(outcome.pages))
        await self._emit_finished(emitter, step, f"Read {len(outcome.pages)} page(s)")

        sections = []
        for page in outcome.pages:
            text = page.raw_content
            if len(text) > config.extract_max_chars:
                text = text[: config.extract_max_chars] + "\n[truncated]"
            sections.append(f"URL: {page.url}\nContent: {text}")
        if outcome.failed_urls:
            sections.append(f"Failed to read: {', '.join(outcome.failed_urls)}")
        if not sections:
            sections.append("No content could be extracted.")

        sources = [
            source
            for source in (Source.from_url(page.url) for page in outcome.pages)
            if source is not None
        ]

        return ToolResult(
            success=True,
            content="\n\n".join(sections),
            tool_name="extract_content",
            call_id=call_id,
            step=step,
            sources=sources,
        )
