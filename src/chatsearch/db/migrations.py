"""Idempotent schema migrations for the SQLite database."""

from __future__ import annotations

from contextlib import closing
from pathlib import Path

from chatsearch.db.engine import connect, get_database_path

# ``IF NOT EXISTS`` guards keep repeated executions harmless.
_SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS rate_limits (
        identifier TEXT PRIMARY KEY,
        tokens INTEGER NOT NULL CHECK (tokens >= 0),
        last_updated INTEGER NOT NULL
    );
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_rate_limits_last_updated
        ON rate_limits(last_updated);
    """,
    """
    CREATE TABLE IF NOT EXISTS chats (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        focus_mode TEXT NOT NULL,
        files TEXT NOT NULL DEFAULT '[]'
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS messages (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        content TEXT NOT NULL,
        chat_id TEXT NOT NULL,
        message_id TEXT NOT NULL,
        role TEXT NOT NULL CHECK (role IN ('assistant', 'user')),
        metadata TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY(chat_id) REFERENCES chats(id) ON DELETE CASCADE
    );
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_messages_chat_id ON messages(chat_id, id);
    """,
)


def run_migrations(database_path: Path | None = None) -> Path:
    """Apply idempotent schema migrations and return the database path.

    Parameters
    ----------
    database_path:
        Optional override used by tests operating on a temporary database.
        Defaults to :func:`chatsearch.db.engine.get_database_path`.

    """
    path = database_path or get_database_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with closing(connect(path)) as connection:
        for statement in _SCHEMA_STATEMENTS:
            connection.executescript(statement)
    return path


if __name__ == "__main__":
    target = run_migrations()
    print(f"Migrations applied to {target}")
