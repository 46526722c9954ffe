"""Pydantic models for web search and extraction responses."""

from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator

FAVICON_URL = "https://www.google.com/s2/favicons?domain={host}&sz=32"


class Source(BaseModel):
    """A citation shown to the user next to the answer."""

    title: str
    url: str
    domain: str
    favicon: str | None = None

    @classmethod
    def from_url(cls, url: str, title: str | None = None) -> "Source | None":
        """Build a source from a result URL. Returns None for unparsable URLs."""
        try:
            host = urlparse(url).hostname
        except ValueError:
            # e.g. "http://[::1" (unbalanced IPv6 brackets)
            return None
        if not host:
            return None

        return cls(
            title=title or host,
            url=url,
            domain=host.removeprefix("www."),
            favicon=FAVICON_URL.format(host=host),
        )


class SearchHit(BaseModel):
    """A single result from the Tavily /search endpoint."""

    title: str = ""
    url: str
    content: str = ""
    score: float | None = None
    raw_content: str | None = None


class SearchResponse(BaseModel):
    """Response from the Tavily /search endpoint."""

    query: str | None = None
    answer: str | None = None
    results: list[SearchHit] = Field(default_factory=list)


class ExtractedPage(BaseModel):
    """Full page content for one URL."""

    url: str
    raw_content: str = ""

    @field_validator("raw_content", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return value or ""


class ExtractResponse(BaseModel):
    """Response from the Tavily /extract endpoint."""

    results: list[ExtractedPage] = Field(default_factory=list)
    failed_results: list[dict | str] = Field(default_factory=list)

    @property
    def failed_urls(self) -> list[str]:
        urls = []
        for failed in self.failed_results:
            if isinstance(failed, str):
                urls.append(failed)
            elif failed.get("url"):
                urls.append(failed["url"])
        return urls


class SearchOutcome(BaseModel):
    """Normalized search result handed to the tool executor."""

    answer: str | None = None
    formatted_results: str
    sources: list[Source] = Field(default_factory=list)
    result_count: int = 0


class ExtractOutcome(BaseModel):
    """Normalized extraction result handed to the tool executor."""

    pages: list[ExtractedPage] = Field(default_factory=list)
    failed_urls: list[str] = Field(default_factory=list)
