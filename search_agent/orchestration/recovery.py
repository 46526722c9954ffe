"""
Classification of model provider failures.

Maps exceptions from the completion provider (openai SDK errors, timeouts)
onto a ModelProviderError with a stable code and, for malformed tool calls,
any natural-language answer recoverable from the failure payload.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any

import openai

from ..errors import ErrorCode, ModelProviderError, ModelProviderErrorKind

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests. Please wait a moment."
AUTH_MESSAGE = "AI service configuration error."
UNAVAILABLE_MESSAGE = "AI service temporarily unavailable."
TIMEOUT_MESSAGE = "AI service took too long to respond. Please try again."
TOOL_USE_MESSAGE = "The AI model produced an invalid tool call. Please try rephrasing your question."

# Shapes of a raw function call leaking into failed_generation
_FUNCTION_CALL_PATTERN = re.compile(
    r"^\s*(<function|<tool_call|\[?\s*\{\s*\"(name|type|function|tool)\"|\w+\s*\(\s*\w+\s*=)",
    re.IGNORECASE,
)


def _error_body(error: openai.APIStatusError) -> dict[str, Any]:
    """Inner provider error object, whether or not the SDK unwrapped it."""
    body = error.body
    if isinstance(body, dict):
        inner = body.get("error")
        if isinstance(inner, dict):
            return inner
        return body
    return {}


def salvage_failed_generation(text: str | None) -> str | None:
    """
    Recover a usable answer from a rejected generation.

    Returns None when the text is empty or is itself a (malformed) function
    call rather than prose.
    """
    if not text or not text.strip():
        return None

    candidate = text.strip()
    if _FUNCTION_CALL_PATTERN.match(candidate):
        return None

    try:
        parsed = json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return candidate

    if isinstance(parsed, str) and parsed.strip():
        return parsed.strip()
    return None


def classify_model_error(error: BaseException) -> ModelProviderError:
    """
    Classify a completion provider failure.

    Args:
        error: Exception raised by the provider call

    Returns:
        ModelProviderError with kind, stable code, user message and detail
    """
    if isinstance(error, ModelProviderError):
        return error

    if isinstance(error, (asyncio.TimeoutError, openai.APITimeoutError)):
        return ModelProviderError(
            ModelProviderErrorKind.UNAVAILABLE,
            ErrorCode.TIMEOUT,
            TIMEOUT_MESSAGE,
            detail=f"{type(error).__name__}: model call timed out",
        )

    if isinstance(error, openai.APIConnectionError):
        return ModelProviderError(
            ModelProviderErrorKind.UNAVAILABLE,
            ErrorCode.MODEL_ERROR,
            UNAVAILABLE_MESSAGE,
            detail=f"{type(error).__name__}: {error}",
        )

    if isinstance(error, openai.APIStatusError):
        status = error.status_code
        body = _error_body(error)
        provider_code = body.get("code")
        detail = f"status={status} code={provider_code} message={body.get('message') or error.message}"

        if status == 429:
            return ModelProviderError(
                ModelProviderErrorKind.RATE_LIMITED,
                ErrorCode.RATE_LIMIT,
                RATE_LIMIT_MESSAGE,
                detail=detail,
                status_code=status,
            )

        if status in (401, 403):
            return ModelProviderError(
                ModelProviderErrorKind.AUTH_ERROR,
                ErrorCode.AUTH_ERROR,
                AUTH_MESSAGE,
                detail=detail,
                status_code=status,
            )

        if provider_code == "tool_use_failed" or (status == 400 and "failed_generation" in body):
            return ModelProviderError(
                ModelProviderErrorKind.MALFORMED_TOOL_USE,
                ErrorCode.TOOL_USE_FAILED,
                TOOL_USE_MESSAGE,
                detail=detail,
                salvaged_text=salvage_failed_generation(body.get("failed_generation")),
                status_code=status,
            )

        if status >= 500:
            return ModelProviderError(
                ModelProviderErrorKind.UNAVAILABLE,
                ErrorCode.MODEL_ERROR,
                UNAVAILABLE_MESSAGE,
                detail=detail,
                status_code=status,
            )

        return ModelProviderError(
            ModelProviderErrorKind.UNKNOWN,
            ErrorCode.MODEL_ERROR,
            UNAVAILABLE_MESSAGE,
            detail=detail,
            status_code=status,
        )

    logger.debug(f"Unclassified model error: {type(error).__name__}")
    return ModelProviderError(
        ModelProviderErrorKind.UNKNOWN,
        ErrorCode.MODEL_ERROR,
        UNAVAILABLE_MESSAGE,
        detail=f"{type(error).__name__}: {error}",
    )
