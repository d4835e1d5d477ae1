"""Two-tier web search: SerpAPI first, Tavily when SerpAPI has nothing."""

from __future__ import annotations

from typing import List

from loguru import logger

from chatsearch.services.metrics import metrics
from chatsearch.services.search.providers import SearchOptions, SearchProvider, SearchResult
from chatsearch.utils.logging import log_stage, set_request_metadata


class SearchAggregator:
    """Query ``primary`` and fall back to ``secondary`` on failure or empty results.

    Provider failures never reach the caller: they are logged, counted and
    treated exactly like an empty result set. Results are never merged; the
    first provider returning hits wins, and whatever the secondary returns
    (possibly nothing) is the final answer.
    """

    def __init__(self, primary: SearchProvider, secondary: SearchProvider) -> None:
        """Keep the provider order; ``secondary`` only runs when ``primary`` yields nothing."""
        self.primary = primary
        self.secondary = secondary

    async def search(self, query: str, options: SearchOptions | None = None) -> List[SearchResult]:
        options = options or SearchOptions()
        set_request_metadata(query=query)
        results = await self._attempt(self.primary, query, options)
        if results:
            return results
        metrics.record_fallback()
        logger.bind(query=query, primary=self.primary.name, secondary=self.secondary.name).info(
            "search.fallback"
        )
        return await self._attempt(self.secondary, query, options)

    async def _attempt(
        self, provider: SearchProvider, query: str, options: SearchOptions
    ) -> List[SearchResult]:
        set_request_metadata(provider=provider.name)
        try:
            with log_stage(f"search.{provider.name}"):
                return list(await provider.search(query, options))
        except Exception as exc:
            logger.bind(provider=provider.name, query=query, reason=str(exc)).warning(
                "search.provider_failed"
            )
            metrics.record_provider_error(provider.name, type(exc).__name__)
            return []


__all__ = ["SearchAggregator"]
