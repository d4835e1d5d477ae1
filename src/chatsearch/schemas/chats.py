"""Pydantic models for the chat history endpoints."""

from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field

from chatsearch.db.chats import Chat, Message
from chatsearch.types import JSONValue


class ChatFileModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    file_id: str = Field(..., alias="fileId")


class ChatModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    focus_mode: str = Field(..., alias="focusMode")
    created_at: str = Field(..., alias="createdAt")
    files: List[ChatFileModel] = Field(default_factory=list)

    @classmethod
    def from_chat(cls, chat: Chat) -> "ChatModel":
        return cls(
            id=chat.id,
            title=chat.title,
            focus_mode=chat.focus_mode,
            created_at=chat.created_at,
            files=[ChatFileModel(name=f.name, file_id=f.file_id) for f in chat.files],
        )


class MessageModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    chat_id: str = Field(..., alias="chatId")
    message_id: str = Field(..., alias="messageId")
    role: Literal["assistant", "user"]
    content: str
    metadata: JSONValue = None
    created_at: str = Field(..., alias="createdAt")

    @classmethod
    def from_message(cls, message: Message) -> "MessageModel":
        return cls(
            id=message.id,
            chat_id=message.chat_id,
            message_id=message.message_id,
            role=message.role,
            content=message.content,
            metadata=message.metadata,
            created_at=message.created_at,
        )


class ChatCreate(BaseModel):
    """Body of ``POST /api/v1/chats``."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    id: str = Field(..., min_length=1, max_length=128)
    title: str = Field(..., min_length=1)
    focus_mode: str = Field(..., alias="focusMode", min_length=1)
    files: List[ChatFileModel] = Field(default_factory=list)


class MessageCreate(BaseModel):
    """Body of ``POST /api/v1/chats/{chat_id}/messages``."""

    model_config = ConfigDict(populate_by_name=True)

    message_id: str = Field(..., alias="messageId", min_length=1)
    role: Literal["assistant", "user"]
    content: str
    metadata: JSONValue = None


class ChatListResponse(BaseModel):
    chats: List[ChatModel] = Field(default_factory=list)


class ChatDetailResponse(BaseModel):
    chat: ChatModel
    messages: List[MessageModel] = Field(default_factory=list)


__all__ = [
    "ChatCreate",
    "ChatDetailResponse",
    "ChatFileModel",
    "ChatListResponse",
    "ChatModel",
    "MessageCreate",
    "MessageModel",
]
