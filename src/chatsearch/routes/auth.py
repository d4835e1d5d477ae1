"""Bearer token guard for the ``/api/v1`` routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from chatsearch.utils.errors import Unauthorized

_security = HTTPBearer(auto_error=False)
BearerCredentials = Annotated[HTTPAuthorizationCredentials | None, Depends(_security)]


def require_token(request: Request, credentials: BearerCredentials) -> None:
    """Ensure the provided Bearer token matches the configured API token."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise Unauthorized("Missing Bearer token")
    if credentials.credentials != request.app.state.settings.api_token:
        raise Unauthorized("Invalid token provided")


__all__ = ["require_token"]
