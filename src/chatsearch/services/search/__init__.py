"""Web search providers, the fallback aggregator and the SearxNG client."""

from .aggregator import SearchAggregator
from .providers import (
    SearchOptions,
    SearchProvider,
    SearchResult,
    SerpAPIProvider,
    TavilyProvider,
)
from .searxng_client import CATEGORIES, SearxNGClient

__all__ = [
    "CATEGORIES",
    "SearchAggregator",
    "SearchOptions",
    "SearchProvider",
    "SearchResult",
    "SearxNGClient",
    "SerpAPIProvider",
    "TavilyProvider",
]
