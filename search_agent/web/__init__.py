"""Web search and page extraction with protocol-based adapter pattern."""

from .models import (
    ExtractedPage,
    ExtractOutcome,
    SearchHit,
    SearchOutcome,
    SearchResponse,
    Source,
)
from .protocols import ContentExtractor, SearchDepth, SearchProvider, SearchTopic
from .adapters import TavilyAdapter, extract_sources, format_results
from .client import TavilyClient

__all__ = [
    # Models
    "Source",
    "SearchHit",
    "SearchResponse",
    "SearchOutcome",
    "ExtractedPage",
    "ExtractOutcome",
    # Protocols (for implementing custom providers)
    "SearchProvider",
    "ContentExtractor",
    "SearchTopic",
    "SearchDepth",
    # Adapters
    "TavilyAdapter",
    "format_results",
    "extract_sources",
    # Low-level client
    "TavilyClient",
]
