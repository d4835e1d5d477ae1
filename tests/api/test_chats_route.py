"""Integration tests for the chat history routes."""

from __future__ import annotations


def _create(client, chat_id: str = "chat-1") -> dict:
    response = client.post(
        "/api/v1/chats",
        json={
            "id": chat_id,
            "title": "What is SearxNG?",
            "focusMode": "webSearch",
            "files": [{"name": "brief.pdf", "fileId": "file-9"}],
        },
    )
    assert response.status_code == 201
    return response.json()


def test_create_and_list_chats(client) -> None:
    created = _create(client)

    assert created["id"] == "chat-1"
    assert created["focusMode"] == "webSearch"
    assert created["files"] == [{"name": "brief.pdf", "fileId": "file-9"}]
    listing = client.get("/api/v1/chats").json()
    assert [chat["id"] for chat in listing["chats"]] == ["chat-1"]


def test_duplicate_chat_is_bad_request(client) -> None:
    _create(client)

    response = client.post(
        "/api/v1/chats", json={"id": "chat-1", "title": "again", "focusMode": "webSearch"}
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "bad_request"


def test_messages_round_trip_through_chat_detail(client) -> None:
    _create(client)
    first = client.post(
        "/api/v1/chats/chat-1/messages",
        json={"messageId": "m1", "role": "user", "content": "What is SearxNG?"},
    )
    second = client.post(
        "/api/v1/chats/chat-1/messages",
        json={
            "messageId": "m2",
            "role": "assistant",
            "content": "A metasearch engine.",
            "metadata": {"sources": ["https://docs.searxng.org"]},
        },
    )
    assert first.status_code == 201
    assert second.json()["chatId"] == "chat-1"

    detail = client.get("/api/v1/chats/chat-1").json()

    assert detail["chat"]["title"] == "What is SearxNG?"
    assert [m["messageId"] for m in detail["messages"]] == ["m1", "m2"]
    assert detail["messages"][1]["metadata"] == {"sources": ["https://docs.searxng.org"]}


def test_invalid_role_is_rejected(client) -> None:
    _create(client)

    response = client.post(
        "/api/v1/chats/chat-1/messages",
        json={"messageId": "m1", "role": "system", "content": "x"},
    )

    assert response.status_code == 422


def test_unknown_chat_returns_404(client) -> None:
    assert client.get("/api/v1/chats/missing").status_code == 404
    assert client.delete("/api/v1/chats/missing").status_code == 404
    response = client.post(
        "/api/v1/chats/missing/messages",
        json={"messageId": "m1", "role": "user", "content": "x"},
    )
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "not_found"


def test_delete_chat(client) -> None:
    _create(client)

    response = client.delete("/api/v1/chats/chat-1")

    assert response.status_code == 200
    assert response.json() == {"message": "Chat deleted successfully"}
    assert client.get("/api/v1/chats").json() == {"chats": []}
