"""Test fixtures for chatsearch."""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

# Module-level imports of the app read the environment; keep it pointed at a
# throwaway database so nothing lands in the working tree.
_SESSION_DIR = Path(tempfile.mkdtemp(prefix="chatsearch-tests-"))
os.environ.setdefault("POSTGRES_URL", f"sqlite:///{_SESSION_DIR / 'session.sqlite3'}")
os.environ.setdefault("OPENAI_API_KEY", "sk-test")
os.environ.setdefault("API_TOKEN", "testingtoken")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("RATE_LIMIT_BYPASS", "true")
os.environ.setdefault("CONFIG_FILE", str(_SESSION_DIR / "config.toml"))

from chatsearch.app import create_app  # noqa: E402
from chatsearch.config import Settings  # noqa: E402
from chatsearch.services.metrics import metrics  # noqa: E402

API_TOKEN = "testingtoken"


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def database_path(tmp_path: Path) -> Path:
    return tmp_path / "chatsearch.sqlite3"


@pytest.fixture()
def settings(tmp_path: Path, database_path: Path) -> Settings:
    return Settings(
        POSTGRES_URL=f"sqlite:///{database_path}",
        OPENAI_API_KEY="sk-test",
        API_TOKEN=API_TOKEN,
        APP_ENV="test",
        CONFIG_FILE=tmp_path / "config.toml",
        RATE_LIMIT_BYPASS=True,
        SERPAPI_API_KEY="serp-key",
        TAVILY_API_KEY=None,
        SEARXNG_API_URL=None,
        GOOGLE_API_KEY=None,
    )


@pytest.fixture()
def test_app(settings: Settings):
    metrics.reset()
    return create_app(settings)


@pytest.fixture()
def client(test_app):
    with TestClient(test_app) as client:
        client.headers.update({"Authorization": f"Bearer {API_TOKEN}"})
        yield client
