"""Layered provider configuration: ``config.toml`` plus environment overrides.

The tree is loaded once per process and handed to consumers through
``app.state.config_store``. Two implementations share the same interface:

* :class:`FileConfigStore` reads and writes the TOML file on the server and
  applies a small allow-list of environment overrides.
* :class:`RemoteConfigStore` talks to ``/api/v1/config`` of a running server,
  for tooling that has no access to the file system hosting the backend.
"""

from __future__ import annotations

import copy
import tomllib
from abc import ABC, abstractmethod
from pathlib import Path
from threading import Lock
from typing import Mapping

import httpx
import tomli_w
from loguru import logger

from chatsearch.types import ConfigTree
from chatsearch.utils.errors import ConfigUpdateError, UpstreamError


def default_config() -> ConfigTree:
    """Return the all-empty tree used when ``config.toml`` is unavailable."""
    return {
        "GENERAL": {"SIMILARITY_MEASURE": "", "KEEP_ALIVE": ""},
        "MODELS": {
            "OPENAI": {"API_KEY": ""},
            "GROQ": {"API_KEY": ""},
            "ANTHROPIC": {"API_KEY": ""},
            "GEMINI": {"API_KEY": ""},
            "OLLAMA": {"API_URL": ""},
            "DEEPSEEK": {"API_KEY": ""},
            "LM_STUDIO": {"API_URL": ""},
            "CUSTOM_OPENAI": {"API_URL": "", "API_KEY": "", "MODEL_NAME": ""},
        },
        "API_ENDPOINTS": {"SEARXNG": ""},
    }


def merge_config(current: object, update: object) -> object:
    """Deep-merge ``update`` into a copy of ``current``.

    Nested mappings are merged key by key, ``None`` leaves the current value
    untouched and anything else replaces it.
    """
    if update is None:
        return copy.deepcopy(current)
    if not isinstance(current, dict) or not isinstance(update, dict):
        return copy.deepcopy(update)
    result = copy.deepcopy(current)
    for key, value in update.items():
        if value is None:
            continue
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge_config(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def lookup(tree: Mapping[str, object], path: str) -> object:
    """Resolve a dotted ``SECTION.KEY`` path inside ``tree``."""
    node: object = tree
    for part in path.split("."):
        if not isinstance(node, Mapping) or part not in node:
            raise KeyError(path)
        node = node[part]
    return node


def _assign(tree: ConfigTree, path: str, value: object) -> None:
    parts = path.split(".")
    node = tree
    for part in parts[:-1]:
        child = node.setdefault(part, {})
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[parts[-1]] = value


class ConfigStore(ABC):
    """Interface shared by the file-backed and remote configuration stores."""

    @abstractmethod
    def get(self, path: str) -> object:
        """Return the effective value stored at the dotted ``path``."""

    @abstractmethod
    def snapshot(self) -> ConfigTree:
        """Return a copy of the effective configuration tree."""

    @abstractmethod
    def update(self, partial: Mapping[str, object]) -> ConfigTree:
        """Merge ``partial`` into the configuration, persist it and return the new tree."""

    @abstractmethod
    def reload(self) -> None:
        """Discard the cached tree and load it again from its source."""

    def _text(self, path: str) -> str:
        value = self.get(path)
        return "" if value is None else str(value)

    @property
    def similarity_measure(self) -> str:
        return self._text("GENERAL.SIMILARITY_MEASURE")

    @property
    def keep_alive(self) -> str:
        return self._text("GENERAL.KEEP_ALIVE")

    @property
    def openai_api_key(self) -> str:
        return self._text("MODELS.OPENAI.API_KEY")

    @property
    def groq_api_key(self) -> str:
        return self._text("MODELS.GROQ.API_KEY")

    @property
    def anthropic_api_key(self) -> str:
        return self._text("MODELS.ANTHROPIC.API_KEY")

    @property
    def gemini_api_key(self) -> str:
        return self._text("MODELS.GEMINI.API_KEY")

    @property
    def ollama_api_endpoint(self) -> str:
        return self._text("MODELS.OLLAMA.API_URL")

    @property
    def deepseek_api_key(self) -> str:
        return self._text("MODELS.DEEPSEEK.API_KEY")

    @property
    def lm_studio_api_endpoint(self) -> str:
        return self._text("MODELS.LM_STUDIO.API_URL")

    @property
    def custom_openai_api_key(self) -> str:
        return self._text("MODELS.CUSTOM_OPENAI.API_KEY")

    @property
    def custom_openai_api_url(self) -> str:
        return self._text("MODELS.CUSTOM_OPENAI.API_URL")

    @property
    def custom_openai_model_name(self) -> str:
        return self._text("MODELS.CUSTOM_OPENAI.MODEL_NAME")

    @property
    def searxng_api_endpoint(self) -> str:
        return self._text("API_ENDPOINTS.SEARXNG")


class FileConfigStore(ConfigStore):
    """Configuration read from a TOML file with environment overrides on top.

    ``overrides`` maps dotted paths to values coming from the environment
    (see :meth:`chatsearch.config.Settings.config_overrides`); a non-empty
    override always wins over the file.
    """

    def __init__(self, path: Path, *, overrides: Mapping[str, str] | None = None) -> None:
        self._path = Path(path)
        self._overrides = {key: value for key, value in (overrides or {}).items() if value}
        self._lock = Lock()
        self._tree: ConfigTree = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> ConfigTree:
        try:
            with self._path.open("rb") as handle:
                parsed = tomllib.load(handle)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            logger.bind(path=str(self._path), reason=str(exc)).warning(
                "config.load_failed: using environment variables only"
            )
            return default_config()
        merged = merge_config(default_config(), parsed)
        assert isinstance(merged, dict)
        return merged

    def _file_value(self, path: str) -> object:
        with self._lock:
            return lookup(self._tree, path)

    def get(self, path: str) -> object:
        override = self._overrides.get(path)
        if override:
            return override
        return self._file_value(path)

    def snapshot(self) -> ConfigTree:
        with self._lock:
            tree = copy.deepcopy(self._tree)
        for path, value in self._overrides.items():
            _assign(tree, path, value)
        return tree

    def reload(self) -> None:
        tree = self._load()
        with self._lock:
            self._tree = tree

    def update(self, partial: Mapping[str, object]) -> ConfigTree:
        with self._lock:
            merged = merge_config(self._tree, dict(partial))
            assert isinstance(merged, dict)
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                self._path.write_text(tomli_w.dumps(merged), encoding="utf-8")
            except (OSError, TypeError, ValueError) as exc:
                logger.bind(path=str(self._path)).exception("config.update_failed")
                raise ConfigUpdateError("Failed to update configuration") from exc
            self._tree = merged
        logger.bind(path=str(self._path), sections=sorted(partial)).info("config.updated")
        return self.snapshot()


class RemoteConfigStore(ConfigStore):
    """Configuration served by a running backend over ``/api/v1/config``."""

    def __init__(
        self,
        base_url: str,
        *,
        api_token: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url must be provided for RemoteConfigStore")
        self._url = f"{base_url.rstrip('/')}/api/v1/config"
        self._headers = {"Authorization": f"Bearer {api_token}", "Accept": "application/json"}
        self._timeout = timeout
        self._transport = transport
        self._tree: ConfigTree | None = None

    def _request(self, method: str, json: Mapping[str, object] | None = None) -> ConfigTree:
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as http_client:
                response = http_client.request(method, self._url, json=json, headers=self._headers)
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise UpstreamError(f"Failed to reach configuration endpoint: {exc}") from exc
        if not isinstance(payload, dict):
            raise UpstreamError("Configuration endpoint returned an unexpected body")
        return payload

    def _current(self) -> ConfigTree:
        if self._tree is None:
            self._tree = self._request("GET")
        return self._tree

    def get(self, path: str) -> object:
        return lookup(self._current(), path)

    def snapshot(self) -> ConfigTree:
        return copy.deepcopy(self._current())

    def reload(self) -> None:
        self._tree = self._request("GET")

    def update(self, partial: Mapping[str, object]) -> ConfigTree:
        self._tree = self._request("POST", json=dict(partial))
        return copy.deepcopy(self._tree)


__all__ = [
    "ConfigStore",
    "FileConfigStore",
    "RemoteConfigStore",
    "default_config",
    "lookup",
    "merge_config",
]
