"""Factory functions to create backends from configuration."""

from __future__ import annotations

import asyncio
import json
import re
from typing import TYPE_CHECKING, Any

from ..llm.protocols import Message, MessageRole, ToolCallRequest
from ..web.adapters import extract_sources, format_results
from ..web.models import ExtractedPage, ExtractOutcome, SearchHit, SearchOutcome

if TYPE_CHECKING:
    from ..llm.protocols import ChatCompletionProvider
    from ..orchestration.agent_loop import Orchestrator
    from ..orchestration.tools import ToolExecutor
    from ..web.protocols import SearchProvider
    from .loader import ModelConfig, ProfileConfig, SearchConfig


class MockChatProvider:
    """
    Mock chat provider for testing.

    With ``responses`` it replays the script in order: each item is a
    Message, a plain string (an assistant answer), or an exception to raise.
    Once the script runs out it answers "[Mock response]".

    Without a script it behaves like a minimal agent: it searches for the
    latest user message when tools are offered and that message has not been
    researched yet, otherwise it answers.
    """

    def __init__(self, responses: list[Any] | None = None, delay: float = 0.0):
        self._script = list(responses) if responses is not None else None
        self.delay = delay
        self.requests: list[dict[str, Any]] = []
        self._call_counter = 0

    async def complete_chat(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        tool_choice: Any = "auto",
        temperature: float = 0.7,
    ) -> Message:
        """Return the next scripted (or generated) assistant message."""
        self.requests.append(
            {
                "messages": list(messages),
                "tools": list(tools or []),
                "tool_choice": tool_choice,
                "temperature": temperature,
            }
        )
        if self.delay:
            await asyncio.sleep(self.delay)

        if self._script is None:
            return self._improvise(messages, tools)

        if not self._script:
            return Message.assistant("[Mock response]")

        item = self._script.pop(0)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, str):
            return Message.assistant(item)
        return item

    def _improvise(self, messages: list[Message], tools: list[dict[str, Any]] | None) -> Message:
        last = messages[-1] if messages else None
        if tools and last is not None and last.role == MessageRole.USER:
            self._call_counter += 1
            query = " ".join((last.content or "").split())[:120] or "search"
            return Message.assistant(
                None,
                tool_calls=[
                    ToolCallRequest(
                        id=f"mock-call-{self._call_counter}",
                        name="web_search",
                        arguments=f'{{"query": {json.dumps(query)}}}',
                    )
                ],
            )

        researched = sum(1 for m in messages if m.role == MessageRole.TOOL)
        return Message.assistant(f"[Mock answer based on {researched} tool result(s)]")

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        pass


class MockSearchProvider:
    """
    Mock search and extraction provider for testing.

    ``delays`` and ``errors`` are keyed by query; use them to simulate slow
    or failing searches.
    """

    def __init__(
        self,
        results_per_query: int = 3,
        delays: dict[str, float] | None = None,
        errors: dict[str, Exception] | None = None,
    ):
        self.results_per_query = results_per_query
        self.delays = delays or {}
        self.errors = errors or {}
        self.queries: list[str] = []
        self.extracted: list[list[str]] = []

    async def search(
        self,
        query: str,
        topic: str = "general",
        search_depth: str = "basic",
        max_results: int = 5,
    ) -> SearchOutcome:
        """Return canned results under https://example.com/<query-slug>/."""
        self.queries.append(query)

        if query in self.delays:
            await asyncio.sleep(self.delays[query])
        if query in self.errors:
            raise self.errors[query]

        slug = re.sub(r"[^a-z0-9]+", "-", query.lower()).strip("-") or "query"
        hits = [
            SearchHit(
                title=f"Mock result {i + 1} for {query}",
                url=f"https://example.com/{slug}/{i + 1}",
                content=f"Mock content about {query}.",
                score=round(1.0 - i * 0.1, 2),
            )
            for i in range(min(self.results_per_query, max_results))
        ]

        return SearchOutcome(
            answer=f"Mock answer for {query}",
            formatted_results=format_results(hits),
            sources=extract_sources(hits),
            result_count=len(hits),
        )

    async def extract(self, urls: list[str]) -> ExtractOutcome:
        """Return placeholder page content for every URL."""
        self.extracted.append(list(urls))
        return ExtractOutcome(
            pages=[ExtractedPage(url=url, raw_content=f"Mock page content for {url}") for url in urls]
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        pass


def create_model_provider(config: ModelConfig) -> ChatCompletionProvider:
    """Create a chat completion backend from configuration.

    Args:
        config: Model configuration

    Returns:
        ChatCompletionProvider instance (GroqAdapter, OpenRouterAdapter, or Mock)

    Raises:
        ValueError: If backend type is not supported or no API key is available
    """
    if config.backend == "groq":
        from ..llm import GroqAdapter

        return GroqAdapter(
            api_key=config.api_key,
            model=config.model,
            base_url=config.base_url,
            timeout=config.timeout,
        )

    elif config.backend == "openrouter":
        from ..llm import OpenRouterAdapter

        return OpenRouterAdapter(
            api_key=config.api_key,
            model=config.model,
            base_url=config.base_url,
            timeout=config.timeout,
        )

    elif config.backend == "mock":
        return MockChatProvider()

    else:
        raise ValueError(f"Unsupported model backend: {config.backend}")


def create_search_provider(config: SearchConfig) -> SearchProvider:
    """Create a web search / extraction backend from configuration.

    Args:
        config: Search configuration

    Returns:
        TavilyAdapter or MockSearchProvider (both also implement extraction)

    Raises:
        ValueError: If backend type is not supported
    """
    if config.backend == "tavily":
        from ..web import TavilyAdapter, TavilyClient

        client = TavilyClient(
            api_key=config.api_key,
            base_url=config.base_url,
            search_timeout=config.search_timeout,
            extract_timeout=config.extract_timeout,
        )
        return TavilyAdapter(client=client)

    elif config.backend == "mock":
        return MockSearchProvider()

    else:
        raise ValueError(f"Unsupported search backend: {config.backend}")


def create_tool_executor(search_provider, config: SearchConfig) -> ToolExecutor:
    """Create the tool executor over a search provider.

    The provider also serves extract_content when it implements extraction.
    """
    from ..orchestration.tools import ToolExecutor

    return ToolExecutor(
        search_provider,
        search_timeout=config.search_timeout,
        extract_timeout=config.extract_timeout,
    )


def create_orchestrator(
    profile: ProfileConfig,
    model_provider: ChatCompletionProvider | None = None,
    search_provider: SearchProvider | None = None,
) -> Orchestrator:
    """Create an orchestrator from a profile configuration.

    Args:
        profile: Profile configuration containing all backend configs
        model_provider: Existing chat provider to reuse instead of creating one
        search_provider: Existing search provider to reuse instead of creating one

    Returns:
        Orchestrator wired to the configured backends
    """
    from ..orchestration.agent_loop import Orchestrator

    if model_provider is None:
        model_provider = create_model_provider(profile.model)
    if search_provider is None:
        search_provider = create_search_provider(profile.search)

    return Orchestrator(
        model_provider,
        create_tool_executor(search_provider, profile.search),
        model_timeout=profile.model.timeout,
        heartbeat_interval=profile.agent.heartbeat_interval,
    )
