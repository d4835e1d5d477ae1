"""Tests for the health endpoint."""

from __future__ import annotations

from pathlib import Path

from fastapi.testclient import TestClient


def test_health_reports_services(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "healthy"
    assert payload["environment"] == "test"
    assert payload["services"] == {
        "database": "connected",
        "openai": True,
        "google": False,
        "search": True,
    }
    assert payload["system"]["uptime"] >= 0
    assert payload["system"]["pythonVersion"]
    assert payload["timestamp"]


def test_health_reports_unhealthy_database(client, tmp_path: Path) -> None:
    client.app.state.database_path = tmp_path / "missing-dir" / "db.sqlite3"

    response = client.get("/health")

    assert response.status_code == 500
    payload = response.json()
    assert payload["status"] == "unhealthy"
    assert payload["error"]
    assert "timestamp" in payload


def test_health_does_not_require_token(test_app) -> None:
    with TestClient(test_app) as anonymous:
        assert anonymous.get("/health").status_code == 200
