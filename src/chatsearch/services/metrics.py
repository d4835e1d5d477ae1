"""Prometheus metrics for search providers and rate limiting decisions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    generate_latest,
)


@dataclass
class MetricsRegistry:
    """Container owning all Prometheus collectors exposed by the API.

    * ``search_provider_errors_total`` counts provider failures swallowed by
      the aggregator or surfaced by the SearxNG client.
    * ``search_fallbacks_total`` counts how often Tavily had to answer for
      SerpAPI.
    * ``rate_limit_decisions_total`` counts admission outcomes
      (``admitted``, ``rejected``, ``failed_open``).

    A private registry keeps tests isolated: :meth:`reset` re-creates the
    collectors without touching the global default registry.
    """

    registry: CollectorRegistry = field(init=False)
    provider_errors: Counter = field(init=False)
    fallbacks: Counter = field(init=False)
    rate_limit_decisions: Counter = field(init=False)

    def __post_init__(self) -> None:
        self._initialise()

    def _initialise(self) -> None:
        self.registry = CollectorRegistry()
        self.provider_errors = Counter(
            "search_provider_errors_total",
            "Number of search provider failures grouped by provider and reason.",
            ("provider", "reason"),
            registry=self.registry,
        )
        self.fallbacks = Counter(
            "search_fallbacks_total",
            "Number of searches answered by the secondary provider.",
            registry=self.registry,
        )
        self.rate_limit_decisions = Counter(
            "rate_limit_decisions_total",
            "Rate limiter admission outcomes.",
            ("outcome",),
            registry=self.registry,
        )

    def reset(self) -> None:
        """Reset all collectors to an empty state (useful for deterministic tests)."""
        self._initialise()

    def record_provider_error(self, provider: str, reason: str) -> None:
        self.provider_errors.labels(provider=provider, reason=reason or "unknown").inc()

    def record_fallback(self) -> None:
        self.fallbacks.inc()

    def record_rate_limit(self, outcome: str) -> None:
        self.rate_limit_decisions.labels(outcome=outcome).inc()

    def render(self) -> bytes:
        """Return the latest metrics snapshot in Prometheus exposition format."""
        return generate_latest(self.registry)

    @property
    def content_type(self) -> str:
        return CONTENT_TYPE_LATEST


metrics: Final[MetricsRegistry] = MetricsRegistry()


__all__ = ["metrics", "MetricsRegistry"]
