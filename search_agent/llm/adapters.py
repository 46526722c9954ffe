"""Adapter implementations for chat completion providers."""

import logging
from typing import Any

from openai import AsyncOpenAI

from ..settings import (
    GROQ_API_KEY,
    GROQ_BASE_URL,
    GROQ_DEFAULT_MODEL,
    MODEL_TIMEOUT_SECONDS,
    OPENROUTER_API_KEY,
    OPENROUTER_BASE_URL,
    OPENROUTER_DEFAULT_MODEL,
)
from .protocols import ChatCompletionProvider, Message, ToolChoice

logger = logging.getLogger(__name__)


class OpenAICompatibleAdapter(ChatCompletionProvider):
    """
    Adapter for any OpenAI-compatible chat completions API.

    The adapter holds no per-conversation state, so one instance can serve
    many concurrent runs.

    Usage:
        async with GroqAdapter() as llm:
            reply = await llm.complete_chat([Message.user("Hi")])
    """

    provider_name = "openai-compatible"

    def __init__(
        self,
        api_key: str | None,
        base_url: str,
        model: str,
        timeout: float = MODEL_TIMEOUT_SECONDS,
    ):
        """
        Initialize the adapter.

        Args:
            api_key: API key for the endpoint
            base_url: OpenAI-compatible base URL
            model: Model to use
            timeout: Per-request timeout in seconds
        """
        self.api_key = api_key
        self.base_url = base_url
        self.model = model
        self.timeout = timeout
        self._client: AsyncOpenAI | None = None

        if not self.api_key:
            raise ValueError(
                f"{self.provider_name} API key required. Set it in .env"
            )

        logger.info(f"{self.provider_name} adapter initialized with model: {self.model}")

    async def __aenter__(self) -> "OpenAICompatibleAdapter":
        self._client = AsyncOpenAI(
            api_key=self.api_key,
            base_url=self.base_url,
            # Status codes must reach the recovery policy unretried
            max_retries=0,
            timeout=self.timeout,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client:
            await self._client.close()
            self._client = None

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            raise RuntimeError(
                "Client not initialized. Use 'async with' context manager."
            )
        return self._client

    async def complete_chat(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        tool_choice: ToolChoice = "auto",
        temperature: float = 0.7,
    ) -> Message:
        """Generate the next assistant message, with optional tool calling."""
        request: dict[str, Any] = {
            "model": self.model,
            "messages": [msg.to_openai() for msg in messages],
            "temperature": temperature,
        }

        # An empty tool set means no tool_choice either; the API rejects one without the other
        if tools:
            request["tools"] = tools
            request["tool_choice"] = tool_choice

        logger.debug(
            f"Completing {len(messages)} messages with {self.model} "
            f"(tools={len(tools or [])}, tool_choice={tool_choice})"
        )

        response = await self.client.chat.completions.create(**request)

        message = Message.from_openai(response.choices[0].message)
        logger.debug(f"Usage: {response.usage}")
        logger.info(
            f"Completion received ({len(message.content or '')} chars, "
            f"{len(message.tool_calls or [])} tool calls)"
        )

        return message


class GroqAdapter(OpenAICompatibleAdapter):
    """Adapter for Groq's OpenAI-compatible endpoint."""

    provider_name = "Groq"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float = MODEL_TIMEOUT_SECONDS,
    ):
        super().__init__(
            api_key=api_key or GROQ_API_KEY,
            base_url=base_url or GROQ_BASE_URL,
            model=model or GROQ_DEFAULT_MODEL,
            timeout=timeout,
        )


class OpenRouterAdapter(OpenAICompatibleAdapter):
    """
    Adapter for OpenRouter API.

    OpenRouter provides access to many LLMs through an OpenAI-compatible API.
    """

    provider_name = "OpenRouter"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float = MODEL_TIMEOUT_SECONDS,
    ):
        super().__init__(
            api_key=api_key or OPENROUTER_API_KEY,
            base_url=base_url or OPENROUTER_BASE_URL,
            model=model or OPENROUTER_DEFAULT_MODEL,
            timeout=timeout,
        )
