"""Health endpoint probing the database and reporting configured services."""

from __future__ import annotations

import platform
import sqlite3
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import ORJSONResponse
from loguru import logger
from starlette.concurrency import run_in_threadpool

from chatsearch.db.engine import ping

_process_start = time.time()

router = APIRouter(tags=["health"])


def _now() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


@router.get(
    "/health",
    summary="Report service health",
    description="Probe the database and report which upstream services are configured.",
    response_description="Current backend status.",
)
async def health(request: Request) -> ORJSONResponse:
    """Return ``healthy`` with service flags, or ``unhealthy`` with HTTP 500."""
    settings = request.app.state.settings
    try:
        await run_in_threadpool(ping, request.app.state.database_path)
    except (sqlite3.Error, OSError) as exc:
        logger.bind(reason=str(exc)).error("health.failed")
        return ORJSONResponse(
            status_code=500,
            content={"status": "unhealthy", "error": str(exc), "timestamp": _now()},
        )
    return ORJSONResponse(
        {
            "status": "healthy",
            "timestamp": _now(),
            "environment": settings.environment,
            "services": {
                "database": "connected",
                "openai": bool(settings.openai_api_key),
                "google": settings.google_configured,
                "search": settings.search_configured,
            },
            "system": {
                "pythonVersion": platform.python_version(),
                "uptime": time.time() - _process_start,
            },
        }
    )


__all__ = ["router", "health"]
