"""Tests covering the HTTP wrapper and middleware for rate limiting."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from fastapi.testclient import TestClient
from starlette.responses import Response

from chatsearch.db import run_migrations
from chatsearch.utils.errors import TooManyRequests
from chatsearch.utils.ratelimit import (
    RateLimiter,
    RateLimitMiddleware,
    SQLiteRateLimitStore,
    client_identifier,
    with_rate_limit,
)

NOW = 1_700_000_000


def build_limiter(tmp_path: Path, tokens: int) -> RateLimiter:
    store = SQLiteRateLimitStore(run_migrations(tmp_path / "limits.sqlite3"))
    return RateLimiter(store, tokens, 60, clock=lambda: NOW)


def build_app(limiter: RateLimiter, **kwargs: object) -> FastAPI:
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, limiter=limiter, **kwargs)

    @app.get("/")
    def root() -> PlainTextResponse:
        return PlainTextResponse("ok")

    @app.get("/metrics")
    def scrape() -> PlainTextResponse:
        return PlainTextResponse("metrics")

    return app


def _request(headers: list[tuple[bytes, bytes]], client: tuple[str, int] | None) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": headers,
        "client": client,
        "query_string": b"",
    }
    return Request(scope)


def test_middleware_blocks_excessive_requests(tmp_path: Path) -> None:
    client = TestClient(build_app(build_limiter(tmp_path, 2)))

    first = client.get("/")
    second = client.get("/")
    third = client.get("/")

    assert first.status_code == 200
    assert first.headers["X-RateLimit-Remaining"] == "1"
    assert first.headers["X-RateLimit-Reset"] == str(NOW + 60)
    assert second.headers["X-RateLimit-Remaining"] == "0"
    assert third.status_code == TooManyRequests.status_code
    assert third.headers["X-RateLimit-Remaining"] == "0"
    assert third.headers["X-RateLimit-Reset"] == str(NOW + 60)
    payload = third.json()
    assert payload["error"]["code"] == TooManyRequests.code
    assert payload["error"]["message"] == "Please try again later"


def test_middleware_keys_on_forwarded_for(tmp_path: Path) -> None:
    client = TestClient(build_app(build_limiter(tmp_path, 1)))

    assert client.get("/", headers={"X-Forwarded-For": "10.0.0.1"}).status_code == 200
    assert client.get("/", headers={"X-Forwarded-For": "10.0.0.2, 10.0.0.9"}).status_code == 200
    assert client.get("/", headers={"X-Forwarded-For": "10.0.0.1"}).status_code == 429


def test_middleware_honours_exempt_paths(tmp_path: Path) -> None:
    client = TestClient(build_app(build_limiter(tmp_path, 1), exempt_paths=("/metrics",)))

    for _ in range(3):
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "X-RateLimit-Remaining" not in response.headers


def test_middleware_respects_bypass_flag(tmp_path: Path) -> None:
    store = SQLiteRateLimitStore(run_migrations(tmp_path / "limits.sqlite3"))
    client = TestClient(build_app(RateLimiter(store, 1, 60, bypass=True)))

    for _ in range(3):
        assert client.get("/").status_code == 200


def test_client_identifier_precedence() -> None:
    forwarded = _request([(b"x-forwarded-for", b" 203.0.113.7 , 10.0.0.1")], ("127.0.0.1", 5000))
    peer_only = _request([], ("192.0.2.10", 5000))
    anonymous = _request([], None)

    assert client_identifier(forwarded) == "203.0.113.7"
    assert client_identifier(peer_only) == "192.0.2.10"
    assert client_identifier(anonymous) == "anonymous"


async def _ok(_: Request) -> Response:
    return PlainTextResponse("handled")


@pytest.mark.anyio
async def test_with_rate_limit_uses_explicit_identifier(tmp_path: Path) -> None:
    limiter = build_limiter(tmp_path, 1)
    request = _request([], ("127.0.0.1", 5000))

    first = await with_rate_limit(request, limiter, _ok, identifier="user-42")
    second = await with_rate_limit(request, limiter, _ok, identifier="user-42")
    other = await with_rate_limit(request, limiter, _ok, identifier="user-43")

    assert first.status_code == 200
    assert first.body == b"handled"
    assert first.headers["X-RateLimit-Remaining"] == "0"
    assert second.status_code == 429
    assert other.status_code == 200
