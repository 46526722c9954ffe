"""LLM provider integrations with protocol-based adapter pattern."""

from .protocols import (
    ChatCompletionProvider,
    Message,
    MessageRole,
    ToolCallRequest,
    ToolChoice,
    forced_tool_choice,
)
from .adapters import GroqAdapter, OpenAICompatibleAdapter, OpenRouterAdapter

__all__ = [
    # Protocols
    "ChatCompletionProvider",
    "Message",
    "MessageRole",
    "ToolCallRequest",
    "ToolChoice",
    "forced_tool_choice",
    # Adapters
    "OpenAICompatibleAdapter",
    "GroqAdapter",
    "OpenRouterAdapter",
]
