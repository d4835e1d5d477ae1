"""HTTP client dedicated to querying a self-hosted SearxNG instance."""

from __future__ import annotations

from typing import get_args

import httpx
from loguru import logger
from pydantic import ValidationError

from chatsearch.config_store import ConfigStore
from chatsearch.schemas.search import SearxNGCategory, SearxNGResponse
from chatsearch.services.metrics import metrics
from chatsearch.utils.errors import SearchFailed
from chatsearch.utils.logging import log_stage, set_request_metadata

CATEGORIES: tuple[str, ...] = get_args(SearxNGCategory)


class SearxNGClient:
    """Async wrapper around the SearxNG JSON API.

    The base endpoint is read from the configuration store on every call so a
    ``POST /api/v1/config`` takes effect without restarting the process.

    Unlike :class:`~chatsearch.services.search.aggregator.SearchAggregator`
    this client does not hide failures: transport errors, non-2xx statuses
    and unreadable bodies all surface as one :class:`SearchFailed`, with the
    cause kept in the logs only.

    Caller mistakes are kept apart from upstream trouble: an empty query or a
    category outside :data:`CATEGORIES` raises :class:`ValueError` before any
    request is made, which the route answers with HTTP 400.
    """

    def __init__(
        self,
        config_store: ConfigStore,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Bind the client to ``config_store``; ``transport`` is for tests."""
        self._config_store = config_store
        self._timeout = timeout
        self._transport = transport

    async def search(self, query: str, category: SearxNGCategory = "general") -> SearxNGResponse:
        """Run ``query`` in ``category`` and return the upstream body.

        Raises :class:`ValueError` for invalid input and :class:`SearchFailed`
        for everything that goes wrong once the request is on its way.
        """
        trimmed_query = query.strip()
        if not trimmed_query:
            raise ValueError("query must not be empty")
        if category not in CATEGORIES:
            raise ValueError(f"unsupported category '{category}'")
        set_request_metadata(query=trimmed_query, provider="searxng")
        base_url = self._config_store.searxng_api_endpoint.rstrip("/")
        if not base_url:
            logger.warning("searxng.not_configured")
            metrics.record_provider_error("searxng", "not_configured")
            raise SearchFailed()
        # SearxNG honours ``categories``; ``category`` is kept for older proxies.
        params = {
            "q": trimmed_query,
            "format": "json",
            "category": category,
            "categories": category,
        }
        try:
            with log_stage("search.searxng"):
                async with httpx.AsyncClient(
                    timeout=self._timeout, transport=self._transport
                ) as http_client:
                    response = await http_client.get(
                        f"{base_url}/search",
                        params=params,
                        headers={"Accept": "application/json"},
                    )
                    response.raise_for_status()
                return SearxNGResponse.model_validate(response.json())
        except (httpx.HTTPError, ValueError, ValidationError) as exc:
            logger.bind(category=category, reason=str(exc)).error("searxng.search_failed")
            metrics.record_provider_error("searxng", type(exc).__name__)
            raise SearchFailed() from exc

    async def search_images(self, query: str) -> SearxNGResponse:
        return await self.search(query, "images")

    async def search_videos(self, query: str) -> SearxNGResponse:
        return await self.search(query, "videos")

    async def search_news(self, query: str) -> SearxNGResponse:
        return await self.search(query, "news")


__all__ = ["CATEGORIES", "SearxNGClient"]
