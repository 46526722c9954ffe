"""Data models for the agentic search loop."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping

from ..errors import AgentError, ErrorCode
from ..settings import EXPOSE_ERROR_DETAIL

if TYPE_CHECKING:
    from ..config.loader import AgentConfig, SearchConfig
    from ..llm.protocols import Message
    from ..web.models import Source


DEFAULT_TOOLS = frozenset({"web_search", "extract_content"})


class StepType(Enum):
    """Kind of research step shown to the user."""

    SEARCHING = "searching"
    READING = "reading"


class StepStatus(Enum):
    """Lifecycle of a research step."""

    RUNNING = "running"
    DONE = "done"
    ERROR = "error"


@dataclass
class Step:
    """A search or read step. Mutated once on completion, never removed."""

    type: StepType
    query: str | None = None
    urls: list[str] | None = None
    status: StepStatus = StepStatus.RUNNING
    result_count: int | None = None
    id: str = field(default_factory=lambda: f"step-{uuid.uuid4().hex[:8]}")
    timestamp: datetime = field(default_factory=datetime.now)

    @classmethod
    def searching(cls, query: str) -> Step:
        return cls(type=StepType.SEARCHING, query=query)

    @classmethod
    def reading(cls, urls: list[str]) -> Step:
        return cls(type=StepType.READING, urls=list(urls))

    def complete(self, result_count: int) -> None:
        self.status = StepStatus.DONE
        self.result_count = result_count

    def fail(self) -> None:
        self.status = StepStatus.ERROR
        self.result_count = 0

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.query is not None:
            data["query"] = self.query
        if self.urls is not None:
            data["urls"] = self.urls
        if self.result_count is not None:
            data["resultCount"] = self.result_count
        return data


@dataclass(frozen=True)
class RunConfig:
    """Immutable settings for one run of the agent loop.

    Attributes:
        max_iterations: Reasoning entries allowed (final synthesis not counted)
        force_tool_on_first_step: Compel ``forced_tool`` on iteration 1
        forced_tool: Tool compelled when forcing
        tools_enabled: Tool names offered to the model
        deep_research: Enables the forced-continuation policy
        min_tool_calls_before_stop: Tool calls required before a deep run may stop
        context: Pre-supplied document text; disables all tools when non-empty
        search_depth: Depth passed to the search backend
        max_search_results: Hits per search call
        extract_max_chars: Per-page cap on extracted text fed to the model
        temperature: Sampling temperature for every model call
    """

    max_iterations: int = 5
    force_tool_on_first_step: bool = False
    forced_tool: str = "web_search"
    tools_enabled: frozenset[str] = DEFAULT_TOOLS
    deep_research: bool = False
    min_tool_calls_before_stop: int = 0
    context: str = ""
    search_depth: str = "basic"
    max_search_results: int = 5
    extract_max_chars: int = 8000
    temperature: float = 0.7

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        if self.min_tool_calls_before_stop < 0:
            raise ValueError("min_tool_calls_before_stop must be non-negative")
        # Accept any iterable of names but store a frozenset
        object.__setattr__(self, "tools_enabled", frozenset(self.tools_enabled))

    @property
    def has_context(self) -> bool:
        return bool(self.context and self.context.strip())

    @classmethod
    def for_request(
        cls,
        agent: AgentConfig | None = None,
        search: SearchConfig | None = None,
        force_search: bool = False,
        deep_research: bool = False,
        context: str = "",
    ) -> RunConfig:
        """Derive the run settings for one chat request from profile config."""
        from ..config.loader import AgentConfig, SearchConfig

        agent = agent or AgentConfig()
        search = search or SearchConfig()

        return cls(
            max_iterations=agent.deep_max_iterations if deep_research else agent.max_iterations,
            force_tool_on_first_step=force_search,
            forced_tool=agent.forced_tool,
            tools_enabled=frozenset() if context.strip() else DEFAULT_TOOLS,
            deep_research=deep_research,
            min_tool_calls_before_stop=(
                agent.deep_min_tool_calls if deep_research else agent.min_tool_calls
            ),
            context=context,
            search_depth="advanced" if deep_research else "basic",
            max_search_results=search.deep_max_results if deep_research else search.max_results,
            extract_max_chars=search.extract_max_chars,
            temperature=agent.temperature,
        )

    @classmethod
    def from_legacy(
        cls,
        options: bool | Mapping[str, Any] | None,
        agent: AgentConfig | None = None,
        search: SearchConfig | None = None,
    ) -> RunConfig:
        """Build from the legacy boolean-or-mapping request argument.

        ``True`` means force a search; a mapping may carry ``forceSearch``,
        ``isDeepResearch`` and ``context``.
        """
        if options is None or isinstance(options, bool):
            return cls.for_request(agent, search, force_search=bool(options))

        if not isinstance(options, Mapping):
            raise TypeError(f"Unsupported run options: {type(options).__name__}")

        return cls.for_request(
            agent,
            search,
            force_search=bool(options.get("forceSearch", False)),
            deep_research=bool(options.get("isDeepResearch", False)),
            context=options.get("context") or "",
        )


@dataclass
class RunState:
    """Mutable state of one run. Never shared between runs."""

    messages: list[Message]
    iteration: int = 0
    tool_calls_by_kind: dict[str, int] = field(default_factory=dict)
    successful_tool_calls: int = 0
    continuations: int = 0
    last_assistant_message: Message | None = None
    final_text: str | None = None
    steps: list[Step] = field(default_factory=list)
    sources: list[list[Source]] = field(default_factory=list)

    @property
    def tool_calls_used(self) -> int:
        return sum(self.tool_calls_by_kind.values())

    def append(self, message: Message) -> None:
        """Append to the transcript. Messages are never edited or removed."""
        from ..llm.protocols import MessageRole

        self.messages.append(message)
        if message.role == MessageRole.ASSISTANT:
            self.last_assistant_message = message

    def count_tool_call(self, tool_name: str) -> None:
        self.tool_calls_by_kind[tool_name] = self.tool_calls_by_kind.get(tool_name, 0) + 1


@dataclass
class RunResult:
    """Successful outcome of a run."""

    final_text: str
    sources: list[Source]
    steps: list[Step]
    iterations_used: int
    tool_calls_used: int
    tool_calls_by_kind: dict[str, int]
    messages: list[Message] = field(default_factory=list)

    success = True

    @property
    def search_performed(self) -> bool:
        return self.tool_calls_used > 0

    def to_payload(self) -> dict[str, Any]:
        """Wire shape for the transport layer."""
        return {
            "finalText": self.final_text,
            "searchPerformed": self.search_performed,
            "sources": [s.model_dump() for s in self.sources],
            "steps": [s.to_dict() for s in self.steps],
            "iterationsUsed": self.iterations_used,
            "toolCallsUsed": self.tool_calls_used,
            "toolCallsByKind": dict(self.tool_calls_by_kind),
        }


@dataclass
class RunFailure:
    """Structured failure surfaced to the caller."""

    error: str
    code: ErrorCode
    detail: str | None = None
    iterations_used: int = 0

    success = False

    @classmethod
    def from_error(cls, error: AgentError, iterations_used: int = 0) -> RunFailure:
        detail = getattr(error, "detail", None)
        return cls(
            error=error.user_message,
            code=error.code,
            detail=detail if EXPOSE_ERROR_DETAIL else None,
            iterations_used=iterations_used,
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": False, "error": self.error, "code": self.code.value}
        if self.detail:
            payload["detail"] = self.detail
        return payload
