"""Tests for API endpoints."""

import pytest
from fastapi.testclient import TestClient

from defichat.main import create_app
from tests.conftest import RECIPIENT, SENDER


@pytest.fixture
def client(engine):
    with TestClient(create_app(engine=engine)) as test_client:
        yield test_client


def start_session(client) -> dict:
    response = client.post("/conversation", json={"message": "/help"})
    assert response.status_code == 200
    return response.json()


class TestHealthEndpoint:
    """Tests for the health check endpoints."""

    def test_health_check_response_structure(self, client):
        """Test that health check returns expected JSON structure."""
        response = client.get("/health")
        data = response.json()

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/json"
        assert data["status"] == "healthy"
        assert data["version"] == "0.1.0"
        assert data["network"] == "base-sepolia"
        assert len(data["tools"]) == 7

    def test_model_health(self, client):
        """Test the model probe endpoint."""
        data = client.get("/health/model").json()
        assert data["status"] == "healthy"


class TestConversationEndpoint:
    """Tests for the conversation endpoint."""

    def test_direct_command(self, client):
        """Test that /help is answered directly and opens a session and thread."""
        data = start_session(client)

        assert data["is_direct"] is True
        assert data["message_kind"] == "command"
        assert "/balance" in data["content"]
        assert data["session_id"]
        assert data["thread_id"]

    def test_session_is_reused(self, client):
        """Test that a returned session id keeps the same thread."""
        first = start_session(client)
        second = client.post(
            "/conversation", json={"message": "gm", "session_id": first["session_id"]}
        ).json()

        assert second["session_id"] == first["session_id"]
        assert second["thread_id"] == first["thread_id"]

    def test_wallet_address_is_used_for_tools(self, client):
        """Test that the request wallet becomes the caller identity."""
        data = client.post("/conversation", json={"message": "/balance", "wallet_address": SENDER}).json()

        assert data["tool_results"][0]["result"]["usdc"] == "125.500000"
        assert data["error"] is False

    def test_unknown_session(self, client):
        """Test that an unknown session id is rejected."""
        response = client.post("/conversation", json={"message": "Hello", "session_id": "nope"})
        assert response.status_code == 400

    def test_unknown_thread(self, client):
        """Test that an unknown thread id is a 404."""
        response = client.post("/conversation", json={"message": "Hello", "thread_id": "nope"})
        assert response.status_code == 404

    def test_conversation_missing_message(self, client):
        """Test that conversation endpoint requires message field."""
        response = client.post("/conversation", json={})
        assert response.status_code == 422

    def test_conversation_empty_message(self, client):
        """Test that an empty message is reported in the body, not as an HTTP error."""
        response = client.post("/conversation", json={"message": ""})
        data = response.json()

        assert response.status_code == 200
        assert data["error"] is True
        assert data["thread_id"] is None

    def test_classify(self, client):
        """Test the classification endpoint."""
        data = client.post("/classify", json={"message": "/TX 0.1"}).json()
        assert data["message_kind"] == "command"
        assert data["command"] == "/tx"
        assert data["parameters"] == "0.1"


class TestThreadEndpoints:
    """Tests for thread management endpoints."""

    def test_create_list_and_switch(self, client):
        """Test creating a second thread and switching back."""
        first = start_session(client)
        session_id = first["session_id"]

        created = client.post("/threads", json={"session_id": session_id, "title": "Research"}).json()
        assert created["thread"]["title"] == "Research"
        assert created["active_thread_id"] == created["thread"]["id"]

        listed = client.get("/threads", params={"session_id": session_id}).json()
        assert [t["title"] for t in listed["threads"]] == ["Research", "/help"]

        switched = client.post(f"/threads/{first['thread_id']}/switch", json={"session_id": session_id}).json()
        assert switched["active_thread_id"] == first["thread_id"]

    def test_rename(self, client):
        """Test renaming a thread."""
        data = start_session(client)
        response = client.patch(
            f"/threads/{data['thread_id']}", json={"session_id": data["session_id"], "title": "Gas talk"}
        )
        assert response.json()["thread"]["title"] == "Gas talk"

    def test_history_clear_and_checkpoint(self, client):
        """Test reading, clearing and inspecting a thread."""
        data = client.post("/conversation", json={"message": "gm"}).json()
        session_id, thread_id = data["session_id"], data["thread_id"]

        history = client.get(f"/threads/{thread_id}/messages", params={"session_id": session_id}).json()
        assert [m["role"] for m in history["messages"]] == ["user", "assistant"]

        checkpoint = client.get(f"/threads/{thread_id}/checkpoint", params={"session_id": session_id}).json()
        assert [m["type"] for m in checkpoint["messages"]] == ["human", "ai"]

        cleared = client.post(f"/threads/{thread_id}/clear", json={"session_id": session_id}).json()
        assert cleared["thread"]["message_count"] == 0

        checkpoint = client.get(f"/threads/{thread_id}/checkpoint", params={"session_id": session_id}).json()
        assert checkpoint["messages"] == []

    def test_delete_messages(self, client):
        """Test removing a single message."""
        data = client.post("/conversation", json={"message": "gm"}).json()

        response = client.post(
            f"/threads/{data['thread_id']}/messages/delete",
            json={"session_id": data["session_id"], "message_ids": [data["message_id"]]},
        ).json()

        assert response["removed"] == [data["message_id"]]
        assert response["thread"]["message_count"] == 1

    def test_delete_thread(self, client):
        """Test deleting the only thread leaves no active thread."""
        data = start_session(client)
        response = client.delete(f"/threads/{data['thread_id']}", params={"session_id": data["session_id"]})

        assert response.status_code == 200
        assert response.json()["active_thread_id"] is None

    def test_unknown_thread_and_session(self, client):
        """Test 404s for unknown ids."""
        data = start_session(client)

        assert client.get("/threads", params={"session_id": "nope"}).status_code == 404
        assert client.post("/threads/nope/switch", json={"session_id": data["session_id"]}).status_code == 404
        assert client.delete("/threads/nope", params={"session_id": data["session_id"]}).status_code == 404

    def test_close_session(self, client):
        """Test deleting a session."""
        data = start_session(client)

        assert client.delete(f"/sessions/{data['session_id']}").status_code == 200
        assert client.delete(f"/sessions/{data['session_id']}").status_code == 404


class TestToolAndTransactionEndpoints:
    """Tests for direct tool and payload endpoints."""

    def test_execute_tool(self, client):
        """Test running a tool directly."""
        data = client.post("/tools/validate_address", json={"arguments": {"address": RECIPIENT}}).json()
        assert data["result"]["type"] == "eoa"

    def test_tool_error_is_a_result(self, client):
        """Test that tool failures come back as error results."""
        data = client.post("/tools/get_balance", json={}).json()
        assert data["error_type"] == "MissingAddress"

    def test_unknown_tool(self, client):
        """Test that unknown tools are a 404."""
        assert client.post("/tools/drain_wallet", json={}).status_code == 404

    def test_build_transfer(self, client):
        """Test the transfer payload endpoint."""
        response = client.post(
            "/transactions/transfer", json={"from_address": SENDER, "to_address": RECIPIENT, "amount": "10"}
        )
        data = response.json()

        assert response.status_code == 200
        assert data["transaction"]["from"] == SENDER
        assert data["transaction"]["chainId"] == "0x14a34"
        assert data["summary"].startswith("Send 10.000000 USDC")

    def test_build_transfer_invalid(self, client):
        """Test that every violation is returned in the error detail."""
        response = client.post(
            "/transactions/transfer", json={"from_address": SENDER, "to_address": SENDER, "amount": "-1"}
        )

        assert response.status_code == 400
        assert response.json()["detail"]["errors"] == [
            "Cannot send to the same address",
            "Amount must be greater than 0",
        ]

    def test_build_approval(self, client):
        """Test the approval payload endpoint."""
        response = client.post(
            "/transactions/approve", json={"from_address": SENDER, "spender": RECIPIENT, "amount": "5"}
        )
        assert response.json()["transaction"]["calls"][0]["data"].startswith("0x095ea7b3")

    def test_build_batch(self, client):
        """Test the batch payload endpoint."""
        transfers = [{"to_address": RECIPIENT, "amount": "1"}, {"to_address": "0x" + "3" * 40, "amount": "2"}]
        data = client.post("/transactions/batch", json={"from_address": SENDER, "transfers": transfers}).json()

        assert len(data["transaction"]["calls"]) == 2
        assert data["total_amount"] == "3.000000"


class TestAPIDocumentation:
    """Tests for API documentation endpoints."""

    def test_openapi_json_available(self, client):
        """Test that OpenAPI JSON specification is available."""
        response = client.get("/openapi.json")
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/json"

    def test_swagger_ui_available(self, client):
        """Test that Swagger UI is available."""
        response = client.get("/docs")
        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
