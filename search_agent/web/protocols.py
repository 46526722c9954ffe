"""Protocol definitions for web search and extraction backends."""

from typing import Literal, Protocol, runtime_checkable

from .models import ExtractOutcome, SearchOutcome

SearchTopic = Literal["general", "news"]
SearchDepth = Literal["basic", "advanced"]


@runtime_checkable
class SearchProvider(Protocol):
    """Protocol for web search providers.

    Implementations translate their own failures into ToolProviderError.
    """

    async def search(
        self,
        query: str,
        topic: SearchTopic = "general",
        search_depth: SearchDepth = "basic",
        max_results: int = 5,
    ) -> SearchOutcome:
        """
        Search the web.

        Args:
            query: Search query string
            topic: "general" for facts, "news" for recent events
            search_depth: "basic" or "advanced"
            max_results: Maximum number of hits to return

        Returns:
            SearchOutcome with formatted text for the model and sources for the UI
        """
        ...


@runtime_checkable
class ContentExtractor(Protocol):
    """Protocol for full-page content extraction."""

    async def extract(self, urls: list[str]) -> ExtractOutcome:
        """
        Extract the readable content of each URL.

        Args:
            urls: Pages to read

        Returns:
            ExtractOutcome with per-URL content and the URLs that failed
        """
        ...
