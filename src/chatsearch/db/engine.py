"""Helpers resolving and opening the SQLite database shared by all workers."""

from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

_DEFAULT_SQLITE_PATH = Path("data") / "chatsearch.sqlite3"


def get_database_path(database_url: str | None = None) -> Path:
    """Return the resolved database file path.

    ``database_url`` defaults to the ``POSTGRES_URL`` environment variable.
    A ``sqlite:///`` URL selects the file explicitly. Any other URL (for
    example a managed PostgreSQL DSN kept for parity with hosted deployments)
    falls back to ``data/chatsearch.sqlite3``.
    """
    if database_url is None:
        database_url = os.environ.get("POSTGRES_URL")
    if database_url and database_url.startswith("sqlite://"):
        _, _, sqlite_path = database_url.partition("sqlite:///")
        if sqlite_path:
            return Path(sqlite_path).expanduser().resolve()
    return _DEFAULT_SQLITE_PATH.expanduser().resolve()


def connect(path: Path, *, timeout: float = 5.0) -> sqlite3.Connection:
    """Open a connection in autocommit mode so callers control transactions.

    ``timeout`` bounds how long a writer waits on the database lock held by
    another worker before ``sqlite3.OperationalError`` is raised.
    """
    connection = sqlite3.connect(path, timeout=timeout, isolation_level=None)
    connection.row_factory = sqlite3.Row
    connection.execute("PRAGMA foreign_keys = ON")
    return connection


def ping(path: Path) -> None:
    """Run ``SELECT 1`` against the database, raising on failure."""
    connection = connect(path)
    try:
        connection.execute("SELECT 1").fetchone()
    finally:
        connection.close()


@contextmanager
def transaction(
    connection: sqlite3.Connection, *, immediate: bool = False
) -> Iterator[sqlite3.Connection]:
    """Run the enclosed statements in one transaction, rolling back on error.

    ``immediate`` takes the write lock up front (``BEGIN IMMEDIATE``) so a
    read followed by a write cannot interleave with another writer.
    """
    connection.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
    try:
        yield connection
    except BaseException:
        connection.execute("ROLLBACK")
        raise
    connection.execute("COMMIT")


__all__ = ["connect", "get_database_path", "ping", "transaction"]
