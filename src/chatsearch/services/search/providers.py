"""HTTP clients for the SerpAPI and Tavily web search APIs.

Both providers raise :class:`~chatsearch.utils.errors.UpstreamError` on any
failure; deciding whether a failure matters is left to the aggregator.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Literal, Protocol

import httpx

from chatsearch.schemas.search import SearchType
from chatsearch.utils.errors import UpstreamError

ProviderName = Literal["serpapi", "tavily"]

SERPAPI_URL = "https://serpapi.com/search"
TAVILY_URL = "https://api.tavily.com/search"


@dataclass(slots=True)
class SearchResult:
    """Provider-independent representation of a web search hit."""

    title: str
    link: str
    snippet: str
    source: ProviderName


@dataclass(frozen=True)
class SearchOptions:
    """Per-query knobs shared by every provider.

    ``search_type`` selects the vertical (web, news or places) and
    ``language`` is a two-letter interface language forwarded as-is.
    """

    num_results: int = 10
    search_type: SearchType = "web"
    language: str = "en"


class SearchProvider(Protocol):
    """Subset of provider behaviour used by the aggregator."""

    name: ProviderName

    async def search(self, query: str, options: SearchOptions) -> List[SearchResult]:
        """Return normalized results or raise on failure."""


def _decode(response: httpx.Response, provider: str) -> dict:
    """Return the JSON object of ``response`` or raise :class:`UpstreamError`."""
    if response.status_code >= 400:
        raise UpstreamError(
            f"{provider} responded with {response.status_code}",
            details={"status_code": response.status_code},
        )
    try:
        payload = response.json()
    except ValueError as exc:
        raise UpstreamError(f"{provider} returned invalid JSON") from exc
    if not isinstance(payload, dict):
        raise UpstreamError(f"{provider} returned an unexpected body")
    return payload


def _entries(payload: dict, key: str, provider: str) -> List[dict]:
    # Missing key means no hits; non-object entries are skipped.
    entries = payload.get(key) or []
    if not isinstance(entries, list):
        raise UpstreamError(f"{provider} returned a malformed '{key}' field")
    return [entry for entry in entries if isinstance(entry, dict)]


class SerpAPIProvider:
    """Google results through SerpAPI (``GET /search``)."""

    name: ProviderName = "serpapi"

    # ``tbm`` switches Google verticals; plain web search omits it.
    _VERTICALS = {"news": "nws", "places": "lcl"}

    def __init__(
        self,
        api_key: str | None,
        *,
        timeout: float = 10.0,
        endpoint: str = SERPAPI_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Store credentials; an empty ``api_key`` makes every search fail fast."""
        self._api_key = api_key or ""
        self._timeout = timeout
        self._endpoint = endpoint
        self._transport = transport

    async def search(self, query: str, options: SearchOptions) -> List[SearchResult]:
        """Query Google through SerpAPI and normalize the vertical's result list."""
        if not self._api_key:
            raise UpstreamError("SerpAPI key is not configured")
        params: dict[str, str | int] = {
            "q": query,
            "api_key": self._api_key,
            "num": options.num_results,
            "hl": options.language,
        }
        vertical = self._VERTICALS.get(options.search_type)
        if vertical:
            params["tbm"] = vertical
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as http_client:
                response = await http_client.get(self._endpoint, params=params)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Failed to query SerpAPI: {exc}") from exc
        payload = _decode(response, "SerpAPI")
        if options.search_type == "places":
            return [self._place(item) for item in _entries(payload, "local_results", "SerpAPI")]
        key = "news_results" if options.search_type == "news" else "organic_results"
        return [
            SearchResult(
                title=str(item.get("title", "")),
                link=str(item.get("link", "")),
                snippet=str(item.get("snippet", "")),
                source=self.name,
            )
            for item in _entries(payload, key, "SerpAPI")
        ]

    def _place(self, item: dict) -> SearchResult:
        """Map a ``local_results`` entry, which carries no ``snippet`` of its own."""
        return SearchResult(
            title=str(item.get("title", "")),
            link=str(item.get("website") or item.get("link") or ""),
            snippet=str(item.get("address") or item.get("description") or ""),
            source=self.name,
        )


class TavilyProvider:
    """Tavily search API (``POST /search``) queried with advanced depth."""

    name: ProviderName = "tavily"

    def __init__(
        self,
        api_key: str | None,
        *,
        timeout: float = 10.0,
        endpoint: str = TAVILY_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Store credentials; an empty ``api_key`` makes every search fail fast."""
        self._api_key = api_key or ""
        self._timeout = timeout
        self._endpoint = endpoint
        self._transport = transport

    async def search(self, query: str, options: SearchOptions) -> List[SearchResult]:
        """Run an advanced-depth Tavily search; news queries use the news topic."""
        if not self._api_key:
            raise UpstreamError("Tavily key is not configured")
        body: dict[str, object] = {
            "api_key": self._api_key,
            "query": query,
            "search_depth": "advanced",
            "max_results": options.num_results,
            "include_domains": [],
            "exclude_domains": [],
        }
        if options.search_type == "news":
            body["topic"] = "news"
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as http_client:
                response = await http_client.post(self._endpoint, json=body)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Failed to query Tavily: {exc}") from exc
        payload = _decode(response, "Tavily")
        return [
            SearchResult(
                title=str(item.get("title", "")),
                link=str(item.get("url", "")),
                snippet=str(item.get("content", "")),
                source=self.name,
            )
            for item in _entries(payload, "results", "Tavily")
        ]


__all__ = [
    "ProviderName",
    "SearchOptions",
    "SearchProvider",
    "SearchResult",
    "SerpAPIProvider",
    "TavilyProvider",
]
