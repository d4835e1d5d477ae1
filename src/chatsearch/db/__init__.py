"""SQLite persistence for rate limit buckets, chats and messages."""

from __future__ import annotations

from .chats import Chat, ChatAlreadyExists, ChatFile, ChatRepository, Message
from .engine import connect, get_database_path, ping, transaction
from .migrations import run_migrations

__all__ = [
    "Chat",
    "ChatAlreadyExists",
    "ChatFile",
    "ChatRepository",
    "Message",
    "connect",
    "get_database_path",
    "ping",
    "run_migrations",
    "transaction",
]
