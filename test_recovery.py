"""
Recovery Policy Tests

Classification of model provider failures and salvage of rejected
generations.
"""

import asyncio

import httpx
import openai

from search_agent.errors import ErrorCode, ModelProviderErrorKind
from search_agent.orchestration import classify_model_error, salvage_failed_generation
from search_agent.orchestration.models import RunFailure

REQUEST = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")


def _status_error(cls, status, body=None):
    return cls(f"Error code: {status}", response=httpx.Response(status, request=REQUEST), body=body)


def test_classify_status_codes():
    """Status codes map onto stable codes and user messages."""
    cases = [
        (openai.RateLimitError, 429, ModelProviderErrorKind.RATE_LIMITED, ErrorCode.RATE_LIMIT),
        (openai.AuthenticationError, 401, ModelProviderErrorKind.AUTH_ERROR, ErrorCode.AUTH_ERROR),
        (openai.PermissionDeniedError, 403, ModelProviderErrorKind.AUTH_ERROR, ErrorCode.AUTH_ERROR),
        (openai.InternalServerError, 503, ModelProviderErrorKind.UNAVAILABLE, ErrorCode.MODEL_ERROR),
        (openai.BadRequestError, 400, ModelProviderErrorKind.UNKNOWN, ErrorCode.MODEL_ERROR),
    ]
    for cls, status, kind, code in cases:
        error = classify_model_error(_status_error(cls, status))
        print(f"  {status} -> {error.kind.value} / {error.code.value}")
        assert error.kind == kind
        assert error.code == code
        assert error.status_code == status

    assert classify_model_error(_status_error(openai.RateLimitError, 429)).user_message == (
        "Too many requests. Please wait a moment."
    )
    assert classify_model_error(_status_error(openai.AuthenticationError, 401)).user_message == (
        "AI service configuration error."
    )
    assert classify_model_error(_status_error(openai.InternalServerError, 500)).user_message == (
        "AI service temporarily unavailable."
    )
    print("[PASS] Status codes classified")


def test_classify_tool_use_failed():
    # The SDK usually unwraps the "error" object; accept both shapes
    inner = {
        "message": "Failed to call a function.",
        "code": "tool_use_failed",
        "failed_generation": "The Eiffel Tower is 330 metres tall.",
    }
    for body in (inner, {"error": inner}):
        error = classify_model_error(_status_error(openai.BadRequestError, 400, body))
        assert error.kind == ModelProviderErrorKind.MALFORMED_TOOL_USE
        assert error.code == ErrorCode.TOOL_USE_FAILED
        assert error.salvaged_text == "The Eiffel Tower is 330 metres tall."
        assert "tool_use_failed" in error.detail


def test_classify_failed_generation_without_code():
    body = {"failed_generation": "<function=web_search>{}</function>"}
    error = classify_model_error(_status_error(openai.BadRequestError, 400, body))
    assert error.kind == ModelProviderErrorKind.MALFORMED_TOOL_USE
    assert error.salvaged_text is None


def test_classify_timeouts_and_connection_errors():
    error = classify_model_error(asyncio.TimeoutError())
    assert error.code == ErrorCode.TIMEOUT

    error = classify_model_error(openai.APITimeoutError(request=REQUEST))
    assert error.code == ErrorCode.TIMEOUT

    error = classify_model_error(openai.APIConnectionError(request=REQUEST))
    assert error.kind == ModelProviderErrorKind.UNAVAILABLE
    assert error.code == ErrorCode.MODEL_ERROR


def test_classify_unknown_exception():
    error = classify_model_error(ValueError("weird"))
    assert error.kind == ModelProviderErrorKind.UNKNOWN
    assert error.code == ErrorCode.MODEL_ERROR
    assert error.user_message == "AI service temporarily unavailable."
    assert "weird" in error.detail

    # Already classified errors pass through
    assert classify_model_error(error) is error


def test_salvage_failed_generation():
    assert salvage_failed_generation("  A plain answer.  ") == "A plain answer."
    assert salvage_failed_generation('"A JSON string answer"') == "A JSON string answer"

    for not_prose in [
        None,
        "",
        "   ",
        '<function=web_search>{"query": "x"}</function>',
        '<tool_call>{"name": "web_search"}</tool_call>',
        '{"name": "web_search", "arguments": {"query": "x"}}',
        '[{"type": "function", "function": {"name": "web_search"}}]',
        'web_search(query="x")',
        '{"unrelated": true}',
        "[1, 2, 3]",
    ]:
        assert salvage_failed_generation(not_prose) is None, not_prose


def test_failure_hides_detail_in_production(monkeypatch):
    error = classify_model_error(_status_error(openai.RateLimitError, 429))

    monkeypatch.setattr("search_agent.orchestration.models.EXPOSE_ERROR_DETAIL", False)
    failure = RunFailure.from_error(error, iterations_used=1)
    assert failure.detail is None
    assert failure.to_payload() == {
        "success": False,
        "error": "Too many requests. Please wait a moment.",
        "code": "RATE_LIMIT",
    }

    monkeypatch.setattr("search_agent.orchestration.models.EXPOSE_ERROR_DETAIL", True)
    failure = RunFailure.from_error(error)
    assert "status=429" in failure.detail
    assert failure.to_payload()["detail"] == failure.detail
