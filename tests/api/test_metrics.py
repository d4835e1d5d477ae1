"""Integration tests for the Prometheus metrics endpoint."""

from __future__ import annotations

from chatsearch.services.metrics import metrics


def test_metrics_endpoint_exposes_counters(client) -> None:
    metrics.record_provider_error("serpapi", "UpstreamError")
    metrics.record_rate_limit("admitted")

    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    body = response.text
    assert "search_provider_errors_total" in body
    assert 'rate_limit_decisions_total{outcome="admitted"}' in body
