"""Agent loop orchestration: tools, progress, recovery and streaming."""

from .models import (
    RunConfig,
    RunFailure,
    RunResult,
    RunState,
    Step,
    StepStatus,
    StepType,
)
from .progress import (
    CallbackSink,
    EventType,
    NullSink,
    ProgressEmitter,
    ProgressEvent,
    ProgressSink,
    QueueSink,
)
from .tools import (
    TOOL_DEFINITIONS,
    ExtractContentArgs,
    ToolDefinition,
    ToolExecutor,
    ToolResult,
    ToolType,
    WebSearchArgs,
    enabled_tools,
    get_tool_schema,
    parse_arguments,
)
from .deduplication import deduplicate_sources, flatten_sources
from .recovery import classify_model_error, salvage_failed_generation
from .cancellation import CancellationToken
from .agent_loop import ChatSession, Orchestrator
from .streaming import format_sse, stream_chat

__all__ = [
    # Models
    "RunConfig",
    "RunState",
    "RunResult",
    "RunFailure",
    "Step",
    "StepType",
    "StepStatus",
    # Progress
    "EventType",
    "ProgressEvent",
    "ProgressSink",
    "ProgressEmitter",
    "QueueSink",
    "CallbackSink",
    "NullSink",
    # Tools
    "TOOL_DEFINITIONS",
    "ToolType",
    "ToolDefinition",
    "ToolExecutor",
    "ToolResult",
    "WebSearchArgs",
    "ExtractContentArgs",
    "enabled_tools",
    "get_tool_schema",
    "parse_arguments",
    # Sources
    "deduplicate_sources",
    "flatten_sources",
    # Recovery
    "classify_model_error",
    "salvage_failed_generation",
    "CancellationToken",
    # Loop
    "Orchestrator",
    "ChatSession",
    "stream_chat",
    "format_sse",
]
