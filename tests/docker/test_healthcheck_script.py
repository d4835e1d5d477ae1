"""Regression tests for :mod:`docker.healthcheck`."""

from __future__ import annotations

import importlib.util
from collections import deque
from pathlib import Path
from typing import Deque, Iterable

import httpx
import pytest

_MODULE_PATH = Path(__file__).resolve().parents[2] / "docker" / "healthcheck.py"
_SPEC = importlib.util.spec_from_file_location("docker_healthcheck", _MODULE_PATH)
if _SPEC is None or _SPEC.loader is None:  # pragma: no cover
    raise RuntimeError(f"unable to load healthcheck module from {_MODULE_PATH}")
healthcheck = importlib.util.module_from_spec(_SPEC)
_SPEC.loader.exec_module(healthcheck)


def _transport(sequence: Iterable[object], seen: list[str]) -> httpx.MockTransport:
    """Answer each probe with the next status code or raise the next error."""
    queue: Deque[object] = deque(sequence)

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        if not queue:
            raise AssertionError("healthcheck sent more requests than expected")
        value = queue.popleft()
        if isinstance(value, type) and issubclass(value, httpx.TransportError):
            raise value("probe failed", request=request)
        return httpx.Response(int(value), json={"status": "healthy"})

    return httpx.MockTransport(handler)


@pytest.fixture(autouse=True)
def _fast_retries(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(healthcheck, "_RETRY_DELAY_SECONDS", 0.0)
    monkeypatch.setattr(healthcheck.time, "sleep", lambda _seconds: None)
    monkeypatch.delenv("HEALTHCHECK_URL", raising=False)


def test_main_succeeds_immediately(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(healthcheck, "_RETRY_ATTEMPTS", 1)
    seen: list[str] = []

    assert healthcheck.main(_transport([200], seen)) == 0
    assert seen == ["http://localhost:8000/health"]


def test_main_retries_until_success(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(healthcheck, "_RETRY_ATTEMPTS", 3)
    monkeypatch.setenv("HEALTHCHECK_URL", "http://api:9000/health")
    seen: list[str] = []

    assert healthcheck.main(_transport([httpx.ConnectError, 500, 200], seen)) == 0
    assert seen == ["http://api:9000/health"] * 3


def test_main_reports_failure(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(healthcheck, "_RETRY_ATTEMPTS", 2)
    seen: list[str] = []

    assert healthcheck.main(_transport([httpx.ConnectError, httpx.ReadTimeout], seen)) == 1
    assert "healthcheck failed" in capsys.readouterr().err
