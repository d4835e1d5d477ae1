"""Read and update the provider configuration tree."""

from __future__ import annotations

from typing import Annotated, Dict

from fastapi import APIRouter, Body, Depends, Request

from chatsearch.config_store import ConfigStore, default_config
from chatsearch.routes.auth import require_token
from chatsearch.types import ConfigTree
from chatsearch.utils.errors import BadRequest

router = APIRouter(
    prefix="/api/v1/config",
    tags=["config"],
    dependencies=[Depends(require_token)],
)

_SECTIONS = frozenset(default_config())


def get_config_store(request: Request) -> ConfigStore:
    """Return the process-wide configuration store."""
    return request.app.state.config_store


ConfigStoreDep = Annotated[ConfigStore, Depends(get_config_store)]


@router.get("", summary="Return the effective configuration")
def read_config(store: ConfigStoreDep) -> ConfigTree:
    """Return ``config.toml`` merged with the environment overrides."""
    return store.snapshot()


@router.post("", summary="Merge a partial configuration and persist it")
def update_config(
    store: ConfigStoreDep,
    partial: Annotated[Dict[str, object], Body(...)],
) -> ConfigTree:
    """Deep-merge ``partial`` into ``config.toml``; only known sections are accepted."""
    unknown = sorted(set(partial) - _SECTIONS)
    if unknown:
        raise BadRequest("Unknown configuration sections", details={"sections": unknown})
    for section, value in partial.items():
        if value is not None and not isinstance(value, dict):
            raise BadRequest(f"Section '{section}' must be an object")
    return store.update(partial)


__all__ = ["router"]
