"""Async HTTP client for the Tavily search and extract API."""

import asyncio
import logging
from typing import Any

import httpx

from ..settings import (
    EXTRACT_TIMEOUT_SECONDS,
    MAX_RETRIES,
    RETRY_BACKOFF_FACTOR,
    SEARCH_TIMEOUT_SECONDS,
    TAVILY_API_KEY,
    TAVILY_BASE_URL,
)

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = (500, 502, 503, 504)


def _json_object(response: httpx.Response) -> dict[str, Any]:
    """Decode a JSON object body. Raises ValueError for anything else."""
    data = response.json()
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data


class TavilyClient:
    """Async client for the Tavily REST API."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        search_timeout: float = SEARCH_TIMEOUT_SECONDS,
        extract_timeout: float = EXTRACT_TIMEOUT_SECONDS,
        max_retries: int = MAX_RETRIES,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key or TAVILY_API_KEY
        self.base_url = base_url or TAVILY_BASE_URL
        self.search_timeout = search_timeout
        self.extract_timeout = extract_timeout
        self.max_retries = max(1, max_retries)
        self._transport = transport

        self.headers: dict[str, str] = {"Content-Type": "application/json"}
        if self.api_key:
            self.headers["Authorization"] = f"Bearer {self.api_key}"
            logger.info("Tavily client initialized with API key")
        else:
            logger.warning("No TAVILY_API_KEY provided - search requests will fail")

        self._client: httpx.AsyncClient | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def __aenter__(self) -> "TavilyClient":
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=self.search_timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(
                "Client not initialized. Use 'async with' context manager."
            )
        return self._client

    async def _post_with_retry(
        self,
        url: str,
        payload: dict[str, Any],
        timeout: float,
    ) -> httpx.Response:
        """POST with exponential backoff on server and connection errors.

        Rate limits, auth failures and timeouts are raised immediately; the
        caller translates them.
        """
        last_exception: Exception | None = None

        for attempt in range(self.max_retries):
            logger.debug(f"Request attempt {attempt + 1}/{self.max_retries}: POST {url}")
            is_last = attempt == self.max_retries - 1

            try:
                response = await self.client.post(url, json=payload, timeout=timeout)
                logger.debug(f"Response status: {response.status_code}")

                if response.status_code in RETRYABLE_STATUS and not is_last:
                    backoff = RETRY_BACKOFF_FACTOR ** attempt
                    logger.warning(f"Server error ({response.status_code}), backoff {backoff}s")
                    await asyncio.sleep(backoff)
                    continue

                response.raise_for_status()
                return response

            except httpx.ConnectError as e:
                last_exception = e
                if is_last:
                    break
                backoff = RETRY_BACKOFF_FACTOR ** attempt
                logger.warning(f"Connection error: {e}, backoff {backoff}s")
                await asyncio.sleep(backoff)

        logger.error(f"Request to {url} failed after {self.max_retries} attempts")
        if last_exception:
            raise last_exception
        raise RuntimeError("Request failed after all retries")

    async def search(
        self,
        query: str,
        topic: str = "general",
        search_depth: str = "basic",
        max_results: int = 5,
        include_answer: bool = True,
    ) -> dict[str, Any]:
        """Search the web using the /search endpoint."""
        payload = {
            "query": query,
            "topic": topic,
            "search_depth": search_depth,
            "max_results": max_results,
            "include_answer": include_answer,
            "include_raw_content": False,
            "include_images": False,
        }

        logger.info(
            f"Searching Tavily: query='{query}', topic={topic}, "
            f"depth={search_depth}, max={max_results}"
        )

        response = await self._post_with_retry("/search", payload, self.search_timeout)
        data = _json_object(response)

        logger.info(f"Search returned {len(data.get('results', []))} results")
        return data

    async def extract(self, urls: list[str]) -> dict[str, Any]:
        """Extract full page content using the /extract endpoint."""
        logger.info(f"Extracting content from {len(urls)} URLs")

        response = await self._post_with_retry(
            "/extract",
            {"urls": urls},
            self.extract_timeout,
        )
        data = _json_object(response)

        logger.info(
            f"Extracted {len(data.get('results', []))} pages, "
            f"{len(data.get('failed_results', []))} failed"
        )
        return data
