"""Tests covering the structured logging middleware and stage helper."""

from __future__ import annotations

import json

import pytest
from loguru import logger
from starlette.requests import Request
from starlette.responses import Response

from chatsearch.utils.logging import (
    RequestLogContext,
    _REQUEST_CONTEXT,
    log_stage,
    logging_middleware,
    set_request_metadata,
)


@pytest.fixture()
def captured():
    records: list[str] = []
    logger.remove()
    sink_id = logger.add(records.append, serialize=True)
    yield records
    logger.remove(sink_id)


def _request(path: str, headers: list[tuple[bytes, bytes]]) -> Request:
    scope = {
        "type": "http",
        "http_version": "1.1",
        "method": "GET",
        "path": path,
        "raw_path": path.encode(),
        "headers": headers,
        "query_string": b"",
        "scheme": "http",
        "client": ("127.0.0.1", 1234),
        "server": ("testserver", 80),
        "root_path": "",
        "app": None,
    }

    async def receive() -> dict[str, object]:
        return {"type": "http.request", "body": b"", "more_body": False}

    return Request(scope, receive)


@pytest.mark.anyio
async def test_logging_middleware_emits_sanitised_record(captured) -> None:
    request = _request(
        "/api/v1/search",
        [(b"authorization", b"Bearer super-secret"), (b"x-trace-id", b"trace-123")],
    )

    async def call_next(_: Request) -> Response:
        set_request_metadata(query="searxng", provider="tavily")
        return Response("ok", status_code=204)

    response = await logging_middleware(request, call_next)

    assert response.headers["X-Trace-Id"] == "trace-123"
    payload = json.loads(captured[-1])
    record = payload["record"]
    assert record["message"] == "request.completed"
    extra = record["extra"]
    assert extra["status_code"] == 204
    assert extra["method"] == "GET"
    assert extra["path"] == "/api/v1/search"
    assert extra["query"] == "searxng"
    assert extra["provider"] == "tavily"
    assert "super-secret" not in json.dumps(payload).lower()


@pytest.mark.anyio
async def test_logging_middleware_generates_trace_id(captured) -> None:
    async def call_next(_: Request) -> Response:
        return Response("ok")

    response = await logging_middleware(_request("/health", []), call_next)

    trace_id = response.headers["X-Trace-Id"]
    assert trace_id
    assert json.loads(captured[-1])["record"]["extra"]["trace_id"] == trace_id


def test_log_stage_records_latency_and_restores_context(captured) -> None:
    token = _REQUEST_CONTEXT.set(RequestLogContext(query="python", provider="serpapi"))
    try:
        with log_stage("search.serpapi"):
            pass
        context = _REQUEST_CONTEXT.get()
    finally:
        _REQUEST_CONTEXT.reset(token)

    assert context is not None
    assert context.stage is None
    record = json.loads(captured[-1])["record"]
    assert record["message"] == "stage.completed"
    extra = record["extra"]
    assert extra["stage"] == "search.serpapi"
    assert extra["query"] == "python"
    assert extra["provider"] == "serpapi"
    assert extra["latency_ms"] >= 0


def test_log_stage_logs_failures_and_reraises(captured) -> None:
    token = _REQUEST_CONTEXT.set(RequestLogContext())
    try:
        with pytest.raises(RuntimeError):
            with log_stage("search.tavily"):
                raise RuntimeError("upstream down")
    finally:
        _REQUEST_CONTEXT.reset(token)

    record = json.loads(captured[-1])["record"]
    assert record["message"] == "stage.failed"
    assert record["level"]["name"] == "WARNING"
    assert record["extra"]["stage"] == "search.tavily"
