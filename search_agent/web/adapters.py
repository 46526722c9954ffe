"""Adapter implementations for the web search and extraction protocols."""

import logging

import httpx
from pydantic import ValidationError

from ..errors import ToolArgumentParseError, ToolProviderError, ToolProviderErrorKind
from .client import TavilyClient
from .models import (
    ExtractOutcome,
    ExtractResponse,
    SearchHit,
    SearchOutcome,
    SearchResponse,
    Source,
)
from .protocols import ContentExtractor, SearchDepth, SearchProvider, SearchTopic

logger = logging.getLogger(__name__)


def format_results(hits: list[SearchHit]) -> str:
    """Format search hits into a clean text block for the model."""
    if not hits:
        return "No results found."

    return "\n\n".join(
        f"Title: {hit.title}\nContent: {hit.content}\nSource: {hit.url}\nScore: {hit.score}"
        for hit in hits
    )


def extract_sources(hits: list[SearchHit]) -> list[Source]:
    """Build UI source entries from search hits, skipping unparsable URLs."""
    sources = []
    for hit in hits:
        source = Source.from_url(hit.url, hit.title)
        if source is None:
            logger.debug(f"Skipping source with unparsable URL: {hit.url!r}")
            continue
        sources.append(source)
    return sources


def translate_http_error(error: Exception, service: str) -> ToolProviderError:
    """Map an httpx failure onto a canonical tool failure."""
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        if status == 429:
            return ToolProviderError(
                ToolProviderErrorKind.RATE_LIMITED,
                f"{service} rate limit exceeded. Please try again in a few minutes.",
            )
        if status in (401, 403):
            return ToolProviderError(
                ToolProviderErrorKind.AUTH_ERROR,
                f"{service} API key is invalid or expired.",
            )
    elif isinstance(error, httpx.TimeoutException):
        return ToolProviderError(
            ToolProviderErrorKind.TIMEOUT,
            f"{service} request timed out. Please try again.",
        )

    return ToolProviderError(
        ToolProviderErrorKind.UNAVAILABLE,
        f"{service} temporarily unavailable.",
    )


def _malformed_response(service: str) -> ToolProviderError:
    return ToolProviderError(
        ToolProviderErrorKind.UNAVAILABLE,
        f"{service} returned an unexpected response.",
    )


class TavilyAdapter(SearchProvider, ContentExtractor):
    """
    Adapter for the Tavily API.

    Implements both SearchProvider and ContentExtractor protocols. Every
    backend failure leaves this class as a ToolProviderError.

    Usage:
        async with TavilyAdapter() as tavily:
            outcome = await tavily.search("latest python release")
            pages = await tavily.extract([s.url for s in outcome.sources[:2]])
    """

    def __init__(self, client: TavilyClient | None = None, api_key: str | None = None):
        """
        Initialize the Tavily adapter.

        Args:
            client: Preconfigured client (timeouts, transport)
            api_key: Optional API key. If not provided, uses TAVILY_API_KEY.
        """
        self._client = client or TavilyClient(api_key=api_key)
        self._entered = False

    async def __aenter__(self) -> "TavilyAdapter":
        await self._client.__aenter__()
        self._entered = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self._client.__aexit__(exc_type, exc_val, exc_tb)
        self._entered = False

    def _ensure_ready(self, service: str) -> None:
        if not self._entered:
            raise RuntimeError(
                "Adapter not initialized. Use 'async with' context manager."
            )
        if not self._client.is_configured:
            logger.error(f"{service} failed: TAVILY_API_KEY is not set")
            raise ToolProviderError(
                ToolProviderErrorKind.AUTH_ERROR,
                f"{service} configuration error.",
            )

    async def search(
        self,
        query: str,
        topic: SearchTopic = "general",
        search_depth: SearchDepth = "basic",
        max_results: int = 5,
    ) -> SearchOutcome:
        """Search the web and normalize the response."""
        if not query or not query.strip():
            raise ToolArgumentParseError("web_search", "query must be a non-empty string")

        self._ensure_ready("Search service")

        try:
            data = await self._client.search(
                query=query,
                topic=topic,
                search_depth=search_depth,
                max_results=max_results,
            )
        except (httpx.HTTPError, RuntimeError) as e:
            logger.error(f"Tavily search failed for '{query}': {e}")
            raise translate_http_error(e, "Search service") from e
        except ValueError as e:
            logger.error(f"Tavily search returned an undecodable body for '{query}': {e}")
            raise _malformed_response("Search service") from e

        try:
            response = SearchResponse.model_validate(data)
        except ValidationError as e:
            logger.error(f"Tavily search response failed validation: {e}")
            raise _malformed_response("Search service") from e

        return SearchOutcome(
            answer=response.answer,
            formatted_results=format_results(response.results),
            sources=extract_sources(response.results),
            result_count=len(response.results),
        )

    async def extract(self, urls: list[str]) -> ExtractOutcome:
        """Extract full page content for each URL."""
        if not urls:
            raise ToolArgumentParseError("extract_content", "urls must be a non-empty list")

        self._ensure_ready("Extraction service")

        try:
            data = await self._client.extract(urls)
        except (httpx.HTTPError, RuntimeError) as e:
            logger.error(f"Tavily extract failed for {len(urls)} URLs: {e}")
            raise translate_http_error(e, "Extraction service") from e
        except ValueError as e:
            logger.error(f"Tavily extract returned an undecodable body: {e}")
            raise _malformed_response("Extraction service") from e

        try:
            response = ExtractResponse.model_validate(data)
        except ValidationError as e:
            logger.error(f"Tavily extract response failed validation: {e}")
            raise _malformed_response("Extraction service") from e

        return ExtractOutcome(
            pages=response.results,
            failed_urls=response.failed_urls,
        )
