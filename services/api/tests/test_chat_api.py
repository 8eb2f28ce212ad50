from fitpantry.services.assistant_service import AssistantService, RECIPE_FALLBACK
from fitpantry.routers.chat import get_assistant_service
from fitpantry.main import app
from fitpantry.errors import CompletionProviderError


def test_chat_turn_creates_conversation(client, auth_headers, user_with_key):
    resp = client.post("/api/chat", json={"message": "What should I eat?"}, headers=auth_headers)
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["role"] == "assistant"
    assert body["content"] == "Here is a mock answer for: What should I eat?"
    assert body["createdAt"]
    conversation_id = body["conversationId"]

    convs = client.get("/api/chat/conversations", headers=auth_headers).json()["conversations"]
    assert len(convs) == 1
    assert convs[0]["id"] == conversation_id
    assert convs[0]["title"] == "What should I eat?"
    assert convs[0]["lastMessage"] == body["content"]
    assert convs[0]["time"] == "Just now"

    msgs = client.get(
        f"/api/chat/conversations/{conversation_id}/messages", headers=auth_headers
    ).json()["messages"]
    assert [m["role"] for m in msgs] == ["user", "assistant"]
    assert msgs[1]["id"] == body["id"]
    assert "source" not in msgs[1]


def test_chat_turn_continues_conversation(client, auth_headers, user_with_key):
    first = client.post("/api/chat", json={"message": "Hi"}, headers=auth_headers).json()
    second = client.post(
        "/api/chat",
        json={"message": "And lunch?", "conversationId": first["conversationId"]},
        headers=auth_headers,
    ).json()
    assert second["conversationId"] == first["conversationId"]
    convs = client.get("/api/chat/conversations", headers=auth_headers).json()["conversations"]
    assert len(convs) == 1


def test_chat_without_key_is_actionable_400(client, auth_headers):
    resp = client.post("/api/chat", json={"message": "Workout?"}, headers=auth_headers)
    assert resp.status_code == 400
    body = resp.json()
    assert "API key" in body["message"]
    assert body["conversationId"]


def test_chat_blank_message_is_400(client, auth_headers, user_with_key):
    resp = client.post("/api/chat", json={"message": "   "}, headers=auth_headers)
    assert resp.status_code == 400
    assert resp.json()["field"] == "message"
    assert client.get("/api/chat/conversations", headers=auth_headers).json() == {"conversations": []}


def test_chat_requires_auth(client):
    assert client.post("/api/chat", json={"message": "hi"}).status_code == 401
    assert client.get("/api/chat/conversations").status_code == 401
    assert client.get(
        "/api/chat/conversations/x/messages", headers={"Authorization": "Bearer nope"}
    ).status_code == 401


def test_provider_failure_looks_like_success(client, auth_headers, user_with_key):
    class Failing:
        source = "ai"

        def complete(self, messages, api_key, model=None):
            raise CompletionProviderError("boom")

    app.dependency_overrides[get_assistant_service] = lambda: AssistantService(completion=Failing())
    try:
        resp = client.post("/api/chat", json={"message": "A meal idea?"}, headers=auth_headers)
    finally:
        app.dependency_overrides.pop(get_assistant_service, None)

    assert resp.status_code == 200
    assert resp.json()["content"] == RECIPE_FALLBACK


def test_messages_of_unknown_or_foreign_conversation_are_empty(
    client, auth_headers, other_auth_headers, user_with_key
):
    body = client.post("/api/chat", json={"message": "Hi"}, headers=auth_headers).json()
    resp = client.get(
        f"/api/chat/conversations/{body['conversationId']}/messages", headers=other_auth_headers
    )
    assert resp.status_code == 200
    assert resp.json() == {"messages": []}


def test_delete_conversation(client, auth_headers, other_auth_headers, user_with_key):
    body = client.post("/api/chat", json={"message": "Hi"}, headers=auth_headers).json()
    conversation_id = body["conversationId"]

    # Not visible to another user.
    resp = client.delete(f"/api/chat/conversations/{conversation_id}", headers=other_auth_headers)
    assert resp.status_code == 404

    resp = client.delete(f"/api/chat/conversations/{conversation_id}", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json() == {
        "message": "Conversation deleted successfully",
        "deletedConversationId": conversation_id,
    }

    resp = client.delete(f"/api/chat/conversations/{conversation_id}", headers=auth_headers)
    assert resp.status_code == 404
    msgs = client.get(
        f"/api/chat/conversations/{conversation_id}/messages", headers=auth_headers
    ).json()
    assert msgs == {"messages": []}
