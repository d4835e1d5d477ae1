"""Row store for chats and their messages."""

from __future__ import annotations

import json
import sqlite3
from contextlib import closing
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Literal

from chatsearch.db.engine import connect, transaction
from chatsearch.types import JSONValue

Role = Literal["assistant", "user"]


@dataclass(frozen=True)
class ChatFile:
    """Attachment referenced by a chat."""

    name: str
    file_id: str


@dataclass(frozen=True)
class Chat:
    id: str
    title: str
    focus_mode: str
    created_at: str
    files: List[ChatFile] = field(default_factory=list)


@dataclass(frozen=True)
class Message:
    id: int
    chat_id: str
    message_id: str
    role: Role
    content: str
    metadata: JSONValue
    created_at: str


class ChatAlreadyExists(ValueError):
    """Raised when a chat identifier is already taken."""


def _row_to_chat(row: sqlite3.Row) -> Chat:
    raw_files = json.loads(row["files"] or "[]")
    files = [ChatFile(name=str(item["name"]), file_id=str(item["fileId"])) for item in raw_files]
    return Chat(
        id=row["id"],
        title=row["title"],
        focus_mode=row["focus_mode"],
        created_at=str(row["created_at"]),
        files=files,
    )


def _row_to_message(row: sqlite3.Row) -> Message:
    metadata = json.loads(row["metadata"]) if row["metadata"] is not None else None
    return Message(
        id=row["id"],
        chat_id=row["chat_id"],
        message_id=row["message_id"],
        role=row["role"],
        content=row["content"],
        metadata=metadata,
        created_at=str(row["created_at"]),
    )


class ChatRepository:
    """CRUD helpers over the ``chats`` and ``messages`` tables.

    Files are stored as a JSON array of ``{"name", "fileId"}`` objects and
    message metadata as free-form JSON.
    """

    def __init__(self, database_path: Path) -> None:
        self._path = database_path

    def create_chat(
        self,
        chat_id: str,
        *,
        title: str,
        focus_mode: str,
        files: Iterable[ChatFile] = (),
    ) -> Chat:
        encoded_files = json.dumps([{"name": f.name, "fileId": f.file_id} for f in files])
        with closing(connect(self._path)) as connection:
            try:
                connection.execute(
                    "INSERT INTO chats(id, title, focus_mode, files) VALUES (?, ?, ?, ?)",
                    (chat_id, title, focus_mode, encoded_files),
                )
            except sqlite3.IntegrityError as exc:
                raise ChatAlreadyExists(f"chat '{chat_id}' already exists") from exc
            row = connection.execute("SELECT * FROM chats WHERE id = ?", (chat_id,)).fetchone()
        return _row_to_chat(row)

    def get_chat(self, chat_id: str) -> Chat | None:
        with closing(connect(self._path)) as connection:
            row = connection.execute("SELECT * FROM chats WHERE id = ?", (chat_id,)).fetchone()
        return _row_to_chat(row) if row is not None else None

    def list_chats(self) -> List[Chat]:
        """Return every chat, most recent first."""
        with closing(connect(self._path)) as connection:
            rows = connection.execute(
                "SELECT * FROM chats ORDER BY created_at DESC, rowid DESC"
            ).fetchall()
        return [_row_to_chat(row) for row in rows]

    def delete_chat(self, chat_id: str) -> bool:
        """Delete the chat and its messages; return ``False`` when it did not exist."""
        with closing(connect(self._path)) as connection:
            with transaction(connection):
                connection.execute("DELETE FROM messages WHERE chat_id = ?", (chat_id,))
                cursor = connection.execute("DELETE FROM chats WHERE id = ?", (chat_id,))
        return cursor.rowcount > 0

    def add_message(
        self,
        chat_id: str,
        *,
        message_id: str,
        role: Role,
        content: str,
        metadata: JSONValue = None,
    ) -> Message:
        encoded_metadata = json.dumps(metadata) if metadata is not None else None
        with closing(connect(self._path)) as connection:
            cursor = connection.execute(
                """
                INSERT INTO messages(content, chat_id, message_id, role, metadata)
                VALUES (?, ?, ?, ?, ?)
                """,
                (content, chat_id, message_id, role, encoded_metadata),
            )
            row = connection.execute(
                "SELECT * FROM messages WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()
        return _row_to_message(row)

    def list_messages(self, chat_id: str) -> List[Message]:
        """Return the messages of ``chat_id`` in insertion order."""
        with closing(connect(self._path)) as connection:
            rows = connection.execute(
                "SELECT * FROM messages WHERE chat_id = ? ORDER BY id", (chat_id,)
            ).fetchall()
        return [_row_to_message(row) for row in rows]


__all__ = ["Chat", "ChatAlreadyExists", "ChatFile", "ChatRepository", "Message", "Role"]
