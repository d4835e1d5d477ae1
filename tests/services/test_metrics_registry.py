"""Unit tests for the metrics registry helper."""

from __future__ import annotations

from chatsearch.services.metrics import MetricsRegistry


def test_metrics_registry_records_observations() -> None:
    registry = MetricsRegistry()
    registry.record_provider_error("tavily", "ConnectTimeout")
    registry.record_provider_error("searxng", "")
    registry.record_fallback()
    registry.record_rate_limit("failed_open")

    snapshot = registry.render().decode()

    assert (
        'search_provider_errors_total{provider="tavily",reason="ConnectTimeout"} 1.0' in snapshot
    )
    assert 'search_provider_errors_total{provider="searxng",reason="unknown"} 1.0' in snapshot
    assert "search_fallbacks_total 1.0" in snapshot
    assert 'rate_limit_decisions_total{outcome="failed_open"} 1.0' in snapshot


def test_metrics_registry_reset_resets_counters() -> None:
    registry = MetricsRegistry()
    registry.record_provider_error("serpapi", "timeout")
    assert "timeout" in registry.render().decode()

    registry.reset()

    snapshot = registry.render().decode()
    assert "timeout" not in snapshot
    assert "search_fallbacks_total 0.0" in snapshot
