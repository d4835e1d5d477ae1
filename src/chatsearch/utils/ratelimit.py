"""Persistent token bucket rate limiting shared by every worker.

Buckets live in the ``rate_limits`` table so horizontally scaled instances
enforce one budget per client. The refill decision and the token consumption
happen inside a single ``BEGIN IMMEDIATE`` transaction, which serialises
concurrent checks for the same identifier without any in-process lock.
"""

from __future__ import annotations

import time
from contextlib import closing
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Protocol

from fastapi import Request
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

from chatsearch.db.engine import connect, transaction
from chatsearch.services.metrics import metrics
from chatsearch.utils.errors import TooManyRequests

Clock = Callable[[], float]
Handler = Callable[[Request], Awaitable[Response]]
KeyFunc = Callable[[Request], str]


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one admission check; ``reset`` is a unix timestamp in seconds."""

    success: bool
    remaining: int
    reset: int


class RateLimitStore(Protocol):
    """Persistence backend holding one bucket per identifier."""

    def consume(
        self, identifier: str, *, capacity: int, interval: int, now: int
    ) -> RateLimitResult:
        """Refill the bucket if its interval elapsed, then try to take one token."""

    def prune(self, *, older_than: int) -> int:
        """Delete buckets last refilled before ``older_than`` and return how many."""


class SQLiteRateLimitStore:
    """:class:`RateLimitStore` backed by the ``rate_limits`` table."""

    # Refill-or-keep in one conditional upsert. ``last_updated`` only moves to
    # ``now`` when the interval elapsed, so it never goes backwards, and the
    # ``MIN`` clamps buckets created under a larger capacity.
    _REFILL = """
        INSERT INTO rate_limits(identifier, tokens, last_updated)
        VALUES (:identifier, :capacity, :now)
        ON CONFLICT(identifier) DO UPDATE SET
            tokens = CASE
                WHEN rate_limits.last_updated + :interval <= :now THEN :capacity
                ELSE MIN(rate_limits.tokens, :capacity)
            END,
            last_updated = CASE
                WHEN rate_limits.last_updated + :interval <= :now THEN :now
                ELSE rate_limits.last_updated
            END
        RETURNING tokens, last_updated
    """
    _CONSUME = """
        UPDATE rate_limits
        SET tokens = tokens - 1
        WHERE identifier = :identifier AND tokens > 0
        RETURNING tokens
    """

    def __init__(self, database_path: Path, *, timeout: float = 5.0) -> None:
        """Open a short-lived connection to ``database_path`` for every call."""
        self._path = database_path
        self._timeout = timeout

    def consume(
        self, identifier: str, *, capacity: int, interval: int, now: int
    ) -> RateLimitResult:
        """Refill and take one token in a single ``BEGIN IMMEDIATE`` transaction.

        ``reset`` is the end of the interval the bucket is currently in;
        a rejection always reports ``remaining=0``.
        """
        params = {
            "identifier": identifier,
            "capacity": capacity,
            "interval": interval,
            "now": now,
        }
        with closing(connect(self._path, timeout=self._timeout)) as connection:
            with transaction(connection, immediate=True):
                # ``fetchall`` steps each statement to completion before COMMIT.
                _, last_updated = connection.execute(self._REFILL, params).fetchall()[0]
                consumed = connection.execute(self._CONSUME, params).fetchall()
        reset = int(last_updated) + interval
        if consumed:
            return RateLimitResult(success=True, remaining=int(consumed[0][0]), reset=reset)
        return RateLimitResult(success=False, remaining=0, reset=reset)

    def prune(self, *, older_than: int) -> int:
        """Delete buckets whose ``last_updated`` predates ``older_than``."""
        with closing(connect(self._path, timeout=self._timeout)) as connection:
            cursor = connection.execute(
                "DELETE FROM rate_limits WHERE last_updated < ?", (older_than,)
            )
        return cursor.rowcount


class RateLimiter:
    """Token bucket limiter granting ``tokens_per_interval`` requests per interval.

    Store failures fail open: the request is admitted with a synthetic
    ``remaining=1`` so an unavailable database never blocks traffic. Buckets
    idle for longer than ``stale_after`` seconds are swept at most once per
    ``stale_after`` window while serving checks.
    """

    def __init__(
        self,
        store: RateLimitStore,
        tokens_per_interval: int,
        interval_seconds: int,
        *,
        bypass: bool = False,
        clock: Clock | None = None,
        stale_after: int | None = None,
    ) -> None:
        """Validate the budget; ``stale_after=0`` disables the idle-bucket sweep."""
        if tokens_per_interval <= 0:
            raise ValueError("tokens_per_interval must be positive")
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._store = store
        self._capacity = tokens_per_interval
        self._interval = interval_seconds
        self._bypass = bypass
        self._clock: Clock = clock or time.time
        if stale_after is None:
            stale_after = interval_seconds * 10
        if 0 < stale_after < interval_seconds:
            # Dropping a bucket before its interval elapsed would refill it early.
            raise ValueError("stale_after must be 0 or at least interval_seconds")
        self._stale_after = stale_after
        self._last_sweep: int | None = None

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def interval(self) -> int:
        return self._interval

    def check(self, identifier: str) -> RateLimitResult:
        """Consume one token for ``identifier`` and report the bucket state."""
        now = int(self._clock())
        if self._bypass:
            return RateLimitResult(
                success=True, remaining=self._capacity, reset=now + self._interval
            )
        self._maybe_sweep(now)
        try:
            result = self._store.consume(
                identifier, capacity=self._capacity, interval=self._interval, now=now
            )
        except Exception:
            logger.bind(identifier=identifier).exception("ratelimit.store_failed")
            metrics.record_rate_limit("failed_open")
            return RateLimitResult(success=True, remaining=1, reset=now + self._interval)
        metrics.record_rate_limit("admitted" if result.success else "rejected")
        return result

    def _maybe_sweep(self, now: int) -> None:
        if self._stale_after <= 0:
            return
        if self._last_sweep is not None and now - self._last_sweep < self._stale_after:
            return
        self._last_sweep = now
        try:
            removed = self._store.prune(older_than=now - self._stale_after)
        except Exception:
            logger.exception("ratelimit.sweep_failed")
            return
        if removed:
            logger.bind(removed=removed).info("ratelimit.swept")


def client_identifier(request: Request) -> str:
    """Derive the bucket key from ``X-Forwarded-For``, the peer address or a fallback."""
    forwarded = request.headers.get("x-forwarded-for", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop
    client = request.client
    return client.host if client else "anonymous"


def apply_rate_limit_headers(response: Response, result: RateLimitResult) -> Response:
    """Expose the bucket state through ``X-RateLimit-Remaining`` and ``X-RateLimit-Reset``."""
    response.headers["X-RateLimit-Remaining"] = str(result.remaining)
    response.headers["X-RateLimit-Reset"] = str(result.reset)
    return response


def rate_limit_response(result: RateLimitResult) -> JSONResponse:
    """Build the 429 document returned when a bucket is exhausted."""
    exc = TooManyRequests("Please try again later")
    response = JSONResponse(status_code=exc.status_code, content=exc.to_payload())
    return apply_rate_limit_headers(response, result)


async def with_rate_limit(
    request: Request,
    limiter: RateLimiter,
    handler: Handler,
    *,
    identifier: str | None = None,
) -> Response:
    """Run ``handler`` if the caller has budget left, otherwise answer 429.

    ``identifier`` overrides the key derived from the request headers.
    """
    key = identifier or client_identifier(request)
    # SQLite calls block, keep them off the event loop.
    result = await run_in_threadpool(limiter.check, key)
    if not result.success:
        logger.bind(identifier=key, reset=result.reset).info("ratelimit.rejected")
        return rate_limit_response(result)
    response = await handler(request)
    return apply_rate_limit_headers(response, result)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """FastAPI middleware gating every request through :func:`with_rate_limit`."""

    def __init__(
        self,
        app: ASGIApp,
        limiter: RateLimiter,
        *,
        key_func: KeyFunc | None = None,
        exempt_paths: Iterable[str] = (),
    ) -> None:
        """Gate requests through ``limiter``; ``exempt_paths`` are matched exactly."""
        super().__init__(app)
        self._limiter = limiter
        self._key_func: KeyFunc = key_func or client_identifier
        self._exempt_paths = frozenset(exempt_paths)

    async def dispatch(self, request: Request, call_next: Handler) -> Response:
        if request.url.path in self._exempt_paths:
            return await call_next(request)
        return await with_rate_limit(
            request, self._limiter, call_next, identifier=self._key_func(request)
        )


__all__ = [
    "RateLimitMiddleware",
    "RateLimitResult",
    "RateLimitStore",
    "RateLimiter",
    "SQLiteRateLimitStore",
    "apply_rate_limit_headers",
    "client_identifier",
    "rate_limit_response",
    "with_rate_limit",
]
