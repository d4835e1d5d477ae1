"""Chat history endpoints backed by :class:`ChatRepository`."""

from __future__ import annotations

from typing import Annotated, Dict

from fastapi import APIRouter, Depends, Request

from chatsearch.db.chats import ChatAlreadyExists, ChatFile, ChatRepository
from chatsearch.routes.auth import require_token
from chatsearch.schemas.chats import (
    ChatCreate,
    ChatDetailResponse,
    ChatListResponse,
    ChatModel,
    MessageCreate,
    MessageModel,
)
from chatsearch.utils.errors import BadRequest, NotFound

router = APIRouter(
    prefix="/api/v1/chats",
    tags=["chats"],
    dependencies=[Depends(require_token)],
)


def get_chat_repository(request: Request) -> ChatRepository:
    """Return the repository bound to the application database."""
    return request.app.state.chat_repository


RepositoryDep = Annotated[ChatRepository, Depends(get_chat_repository)]


@router.get("", response_model=ChatListResponse, summary="List chats")
def list_chats(repository: RepositoryDep) -> ChatListResponse:
    """List chats, newest first."""
    return ChatListResponse(chats=[ChatModel.from_chat(chat) for chat in repository.list_chats()])


@router.post("", response_model=ChatModel, status_code=201, summary="Create a chat")
def create_chat(repository: RepositoryDep, payload: ChatCreate) -> ChatModel:
    """Create a chat; reusing an existing identifier is a 400."""
    try:
        chat = repository.create_chat(
            payload.id,
            title=payload.title,
            focus_mode=payload.focus_mode,
            files=[ChatFile(name=f.name, file_id=f.file_id) for f in payload.files],
        )
    except ChatAlreadyExists as exc:
        raise BadRequest(str(exc)) from exc
    return ChatModel.from_chat(chat)


@router.get("/{chat_id}", response_model=ChatDetailResponse, summary="Fetch a chat")
def get_chat(repository: RepositoryDep, chat_id: str) -> ChatDetailResponse:
    """Return the chat together with its messages in insertion order."""
    chat = repository.get_chat(chat_id)
    if chat is None:
        raise NotFound("Chat not found", details={"chat_id": chat_id})
    messages = repository.list_messages(chat_id)
    return ChatDetailResponse(
        chat=ChatModel.from_chat(chat),
        messages=[MessageModel.from_message(message) for message in messages],
    )


@router.delete("/{chat_id}", summary="Delete a chat and its messages")
def delete_chat(repository: RepositoryDep, chat_id: str) -> Dict[str, str]:
    """Delete the chat and every message attached to it."""
    if not repository.delete_chat(chat_id):
        raise NotFound("Chat not found", details={"chat_id": chat_id})
    return {"message": "Chat deleted successfully"}


@router.post(
    "/{chat_id}/messages",
    response_model=MessageModel,
    status_code=201,
    summary="Append a message to a chat",
)
def add_message(repository: RepositoryDep, chat_id: str, payload: MessageCreate) -> MessageModel:
    """Append a message to an existing chat."""
    if repository.get_chat(chat_id) is None:
        raise NotFound("Chat not found", details={"chat_id": chat_id})
    message = repository.add_message(
        chat_id,
        message_id=payload.message_id,
        role=payload.role,
        content=payload.content,
        metadata=payload.metadata,
    )
    return MessageModel.from_message(message)


__all__ = ["router"]
