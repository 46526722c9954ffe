"""Protocol definitions for chat completion providers."""

from __future__ import annotations

from enum import Enum
from typing import Any, Protocol, Union, runtime_checkable

from pydantic import BaseModel

# "auto", "none", or {"type": "function", "function": {"name": ...}}
ToolChoice = Union[str, dict[str, Any]]


class MessageRole(str, Enum):
    """Role of a message in a conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ToolCallRequest(BaseModel):
    """A tool invocation requested by the model.

    ``arguments`` is the raw JSON text exactly as the model produced it.
    """

    id: str
    name: str
    arguments: str = "{}"


class Message(BaseModel):
    """A message in a conversation."""

    role: MessageRole
    content: str | None = None
    tool_calls: list[ToolCallRequest] | None = None
    tool_call_id: str | None = None

    model_config = {"frozen": True}

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    def to_openai(self) -> dict[str, Any]:
        """Convert to an OpenAI chat completions message dict."""
        data: dict[str, Any] = {"role": self.role.value, "content": self.content or ""}

        if self.tool_calls:
            data["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.arguments},
                }
                for call in self.tool_calls
            ]
            # Assistant turns that only carry tool calls have no text
            if not self.content:
                data["content"] = None

        if self.tool_call_id:
            data["tool_call_id"] = self.tool_call_id

        return data

    @classmethod
    def from_openai(cls, message: Any) -> Message:
        """Build from an OpenAI ``ChatCompletionMessage`` (or a compatible dict)."""
        if isinstance(message, dict):
            raw_calls = message.get("tool_calls") or []
            content = message.get("content")
            calls = [
                ToolCallRequest(
                    id=c["id"],
                    name=c["function"]["name"],
                    arguments=c["function"].get("arguments") or "{}",
                )
                for c in raw_calls
            ]
        else:
            raw_calls = getattr(message, "tool_calls", None) or []
            content = getattr(message, "content", None)
            calls = [
                ToolCallRequest(
                    id=c.id,
                    name=c.function.name,
                    arguments=c.function.arguments or "{}",
                )
                for c in raw_calls
                if getattr(c, "function", None) is not None
            ]

        return cls(
            role=MessageRole.ASSISTANT,
            content=content,
            tool_calls=calls or None,
        )

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str | None, tool_calls: list[ToolCallRequest] | None = None) -> Message:
        return cls(role=MessageRole.ASSISTANT, content=content, tool_calls=tool_calls)

    @classmethod
    def tool(cls, tool_call_id: str, content: str) -> Message:
        return cls(role=MessageRole.TOOL, content=content, tool_call_id=tool_call_id)


def forced_tool_choice(tool_name: str) -> dict[str, Any]:
    """Tool choice that compels the model to call ``tool_name``."""
    return {"type": "function", "function": {"name": tool_name}}


@runtime_checkable
class ChatCompletionProvider(Protocol):
    """Protocol for chat completion providers with tool calling.

    Implement this protocol to add support for new LLM APIs.
    """

    async def complete_chat(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        tool_choice: ToolChoice = "auto",
        temperature: float = 0.7,
    ) -> Message:
        """
        Generate the next assistant message for a conversation.

        Args:
            messages: Full conversation transcript
            tools: OpenAI-style function schemas; empty or None disables tools
            tool_choice: "auto", "none", or a forced function
            temperature: Sampling temperature (0-2)

        Returns:
            The assistant message, possibly carrying tool call requests
        """
        ...

