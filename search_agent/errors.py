"""
Exception types for the search agent.

Tool-level errors are always recovered inside a run (they become tool-result
messages). Only model provider errors without a salvageable transcript end a
run, and they reach the caller as a structured failure with a stable code.
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Stable, user-visible failure codes."""

    INVALID_INPUT = "INVALID_INPUT"
    RATE_LIMIT = "RATE_LIMIT"
    AUTH_ERROR = "AUTH_ERROR"
    TOOL_USE_FAILED = "TOOL_USE_FAILED"
    TIMEOUT = "TIMEOUT"
    MODEL_ERROR = "MODEL_ERROR"
    CANCELLED = "CANCELLED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AgentError(Exception):
    """Base exception for all search agent errors."""

    code: ErrorCode = ErrorCode.MODEL_ERROR

    @property
    def user_message(self) -> str:
        return str(self)


class InvalidInputError(AgentError):
    """The user message or history was rejected before the loop started."""

    code = ErrorCode.INVALID_INPUT


class ToolArgumentParseError(AgentError):
    """
    The model's tool-call arguments were not valid JSON or failed validation.

    Recovered locally: the failure is reported back to the model as a tool
    result so it can correct itself on a later turn.
    """

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"Invalid arguments for {tool_name}: {message}")
        self.tool_name = tool_name


class ToolProviderErrorKind(str, Enum):
    """Canonical failure reasons for search/extraction backends."""

    RATE_LIMITED = "RATE_LIMITED"
    AUTH_ERROR = "AUTH_ERROR"
    TIMEOUT = "TIMEOUT"
    UNAVAILABLE = "UNAVAILABLE"


class ToolProviderError(AgentError):
    """A tool backend failed. Becomes a failed step, never aborts the run."""

    def __init__(self, kind: ToolProviderErrorKind, message: str):
        super().__init__(message)
        self.kind = kind


class ModelProviderErrorKind(str, Enum):
    """Classification of Model Completion Provider failures."""

    MALFORMED_TOOL_USE = "MALFORMED_TOOL_USE"
    RATE_LIMITED = "RATE_LIMITED"
    AUTH_ERROR = "AUTH_ERROR"
    UNAVAILABLE = "UNAVAILABLE"
    UNKNOWN = "UNKNOWN"


class ModelProviderError(AgentError):
    """
    A classified model provider failure.

    Attributes:
        kind: Failure classification
        code: Stable code surfaced to the caller
        detail: Internal detail (status, provider message); logged, and only
            forwarded outside a production posture
        salvaged_text: Natural-language answer recovered from the failure
            payload, if any
    """

    def __init__(
        self,
        kind: ModelProviderErrorKind,
        code: ErrorCode,
        message: str,
        detail: str | None = None,
        salvaged_text: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.code = code
        self.detail = detail
        self.salvaged_text = salvaged_text
        self.status_code = status_code


class RunCancelled(AgentError):
    """The caller cancelled the run through its cancellation token."""

    code = ErrorCode.CANCELLED

    def __init__(self, message: str = "Request was cancelled."):
        super().__init__(message)
