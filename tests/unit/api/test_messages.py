"""Tests for the message endpoints."""

from fastapi.testclient import TestClient

from memobot.db.errors import ConflictError, ConnectionError
from memobot.router.message_router import welcome_message
from memobot.memory.models import Channel

OWNER = {"X-Owner-Id": "owner-1"}


class TestChannelMessages:
    """Tests for POST /v1/messages."""

    def test_unlinked_sender_welcomed(self, client: TestClient) -> None:
        response = client.post(
            "/v1/messages",
            json={"channel": "whatsapp", "channel_user_id": "+15551234", "text": "hi"},
        )

        assert response.status_code == 200
        assert response.json()["text"] == welcome_message(Channel.WHATSAPP)

    def test_linked_sender_reaches_agent(self, client: TestClient, api_services) -> None:
        code = client.post("/v1/link-codes", json={"channel": "telegram"}, headers=OWNER).json()
        linked = client.post(
            "/v1/messages",
            json={"channel": "telegram", "channel_user_id": "tg-7", "text": f"LINK {code['code']}"},
        )
        assert linked.json()["text"].startswith("✅")

        response = client.post(
            "/v1/messages",
            json={"channel": "telegram", "channel_user_id": "tg-7", "text": "What is saved?"},
        )

        data = response.json()
        assert data["text"] == "Hi from MemoBot."
        assert data["buttons"] is None

    def test_web_channel_rejected(self, client: TestClient) -> None:
        response = client.post(
            "/v1/messages",
            json={
                "channel": "web",
                "channel_user_id": "owner-1",
                "owner_id": "owner-1",
                "text": "hi",
            },
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_REQUEST"

    def test_missing_sender_is_invalid(self, client: TestClient) -> None:
        response = client.post("/v1/messages", json={"channel": "telegram", "text": "hi"})

        assert response.status_code == 400
        details = response.json()["error"]["details"]
        assert any("channel_user_id" in d["field"] for d in details)


class TestWebChat:
    """Tests for POST /v1/chat."""

    def test_reply_with_buttons(self, client: TestClient) -> None:
        response = client.post("/v1/chat", json={"text": "What did I save?"}, headers=OWNER)

        assert response.status_code == 200
        data = response.json()
        assert data["text"] == "Hi from MemoBot."
        assert data["buttons"] == [{"id": "new_memory", "title": "New Memory"}]

    def test_owner_header_required(self, client: TestClient) -> None:
        response = client.post("/v1/chat", json={"text": "hi"})
        assert response.status_code == 400

    def test_button_tap(self, client: TestClient, api_llm) -> None:
        client.post("/v1/chat", json={"button_id": "new_memory"}, headers=OWNER)

        sent = api_llm.call_history[-1]["messages"][-1].content
        assert sent == "I want to create a new memory"

    def test_storage_outage_is_503(self, client: TestClient, api_services, monkeypatch) -> None:
        async def unreachable(*args, **kwargs):
            raise ConnectionError("redis down")

        monkeypatch.setattr(api_services.sessions, "get_or_create_session", unreachable)

        response = client.post("/v1/chat", json={"text": "What did I save?"}, headers=OWNER)

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "SERVICE_UNAVAILABLE"

    def test_session_conflict_is_409(self, client: TestClient, api_services, monkeypatch) -> None:
        async def contended(*args, **kwargs):
            raise ConflictError("session kept changing")

        monkeypatch.setattr(api_services.sessions, "get_or_create_session", contended)

        response = client.post("/v1/chat", json={"text": "What did I save?"}, headers=OWNER)

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "SESSION_CONFLICT"
