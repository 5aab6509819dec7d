"""
API endpoint tests for Eind.

Tests the FastAPI endpoints for:
- Health check
- Session info and connect
- Conversations and sending
- Call control
"""

import pytest

from fastapi.testclient import TestClient

from eind.api.main import app
from eind.api.routes.dependencies import DEFAULT_NETWORK, set_session
from eind.core.config import AppConfig
from eind.core.conversations import BOT_ID
from eind.core.loopback import LoopbackMediaDevices, LoopbackTransport
from eind.core.session import PeerSession


@pytest.fixture
def api_setup(transport, media, clock):
    """Create a test client bound to a session on a fake transport."""
    session = PeerSession(transport, media, config=AppConfig(), clock=clock, local_id="eind-1")
    session.start()
    set_session(session)
    try:
        yield TestClient(app), session
    finally:
        set_session(None)


def open_peer(session, transport, remote_id="eind-2"):
    session.connect_to(remote_id)
    session.registry.handle_open(transport.connections[-1])


class TestHealthEndpoint:
    """Tests for /api/health endpoint."""

    def test_health_returns_ok(self):
        response = TestClient(app).get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestSessionRoutes:
    """Tests for /api/session/* endpoints."""

    def test_app_starts_its_own_session(self):
        set_session(None)
        with TestClient(app) as client:
            first = client.get("/api/session/")
            assert first.status_code == 200
            data = first.json()
            assert data["status"] == "Online"
            assert data["local_id"].startswith("eind-")

            second = client.get("/api/session/").json()
            assert second["local_id"] == data["local_id"]
            assert client.get("/api/conversations/").json()["conversations"][0]["id"] == BOT_ID

        assert DEFAULT_NETWORK.lookup(data["local_id"]) is None

    def test_default_session_reaches_in_process_peer(self, clock):
        set_session(None)
        peer = PeerSession(
            LoopbackTransport(DEFAULT_NETWORK),
            LoopbackMediaDevices(),
            config=AppConfig(),
            clock=clock,
            local_id="eind-lan",
        )
        peer.start()
        peer.pump()
        try:
            with TestClient(app) as client:
                response = client.post("/api/session/connect", json={"remote_id": "eind-lan"})
                assert response.json() == {"remote_id": "eind-lan", "connected": True}
                assert client.get("/api/session/").json()["connected_peers"] == ["eind-lan"]
        finally:
            peer.shutdown()

    def test_session_info(self, api_setup):
        client, _ = api_setup
        data = client.get("/api/session/").json()
        assert data["local_id"] == "eind-1"
        assert data["status"] == "Initializing..."
        assert data["trust_label"] == "End-to-end encrypted"
        assert data["connected_peers"] == []

    def test_connect(self, api_setup, transport):
        client, _ = api_setup
        response = client.post("/api/session/connect", json={"remote_id": " eind-2 "})
        assert response.status_code == 200
        assert response.json() == {"remote_id": "eind-2", "connected": False}
        assert transport.connect_requests[0]["remote_id"] == "eind-2"

    def test_connect_blank_is_400(self, api_setup):
        client, _ = api_setup
        response = client.post("/api/session/connect", json={"remote_id": "  "})
        assert response.status_code == 400

    def test_notifications(self, api_setup, transport):
        client, session = api_setup
        open_peer(session, transport)
        data = client.get("/api/session/notifications").json()
        assert data["count"] == 1
        assert data["notifications"][0]["text"] == "Connected to eind-2"


class TestConversationRoutes:
    """Tests for /api/conversations/* endpoints."""

    def test_list_starts_with_assistant(self, api_setup):
        client, _ = api_setup
        data = client.get("/api/conversations/").json()
        assert data["count"] == 1
        assert data["conversations"][0]["id"] == BOT_ID
        assert data["conversations"][0]["is_p2p"] is False
        assert data["active_id"] is None

    def test_peer_conversation_listed_first(self, api_setup, transport):
        client, session = api_setup
        open_peer(session, transport)
        session.router.route_inbound("eind-2", {"type": "text", "text": "hi"})

        data = client.get("/api/conversations/").json()
        first = data["conversations"][0]
        assert first["id"] == "eind-2"
        assert first["last_msg"] == "hi"
        assert first["unread"] == 1

    def test_get_unknown_is_404(self, api_setup):
        client, _ = api_setup
        assert client.get("/api/conversations/nope").status_code == 404

    def test_select_clears_unread(self, api_setup, transport):
        client, session = api_setup
        open_peer(session, transport)
        session.router.route_inbound("eind-2", {"type": "text", "text": "hi"})

        data = client.post("/api/conversations/eind-2/select").json()
        assert data["unread"] == 0
        assert [m["sender"] for m in data["messages"]] == ["them"]
        assert client.get("/api/conversations/").json()["active_id"] == "eind-2"

        client.post("/api/conversations/deselect")
        assert client.get("/api/conversations/").json()["active_id"] is None

    def test_send_to_assistant(self, api_setup, clock):
        client, session = api_setup
        response = client.post(
            f"/api/conversations/{BOT_ID}/messages", json={"content": "hello"}
        )
        assert response.status_code == 200
        assert response.json()["sender"] == "me"

        clock.advance(1)
        detail = client.get(f"/api/conversations/{BOT_ID}").json()
        assert [m["sender"] for m in detail["messages"]] == ["me", "them"]

    def test_send_to_open_peer(self, api_setup, transport):
        client, session = api_setup
        open_peer(session, transport)
        response = client.post(
            "/api/conversations/eind-2/messages",
            json={"type": "image", "content": "data:image/png;base64,AA", "file_name": "a.png"},
        )
        assert response.status_code == 200
        assert response.json()["type"] == "image"
        assert transport.connections[0].sent[-1]["fileName"] == "a.png"

    def test_send_offline_is_400_and_not_recorded(self, api_setup, transport):
        client, session = api_setup
        open_peer(session, transport)
        transport.connections[0]._open = False

        response = client.post("/api/conversations/eind-2/messages", json={"content": "hi"})
        assert response.status_code == 400
        assert session.store.get("eind-2").messages == []

    def test_send_unknown_is_404(self, api_setup):
        client, _ = api_setup
        response = client.post("/api/conversations/nope/messages", json={"content": "hi"})
        assert response.status_code == 404


class TestCallRoutes:
    """Tests for /api/calls/* endpoints."""

    def test_idle_state(self, api_setup):
        client, _ = api_setup
        assert client.get("/api/calls/").json()["phase"] == "idle"

    def test_start_and_end(self, api_setup, transport):
        client, session = api_setup
        open_peer(session, transport)

        response = client.post(
            "/api/calls/start", json={"conversation_id": "eind-2", "kind": "audio"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["phase"] == "dialing"
        assert data["kind"] == "audio"
        assert data["has_local_media"] is True

        assert client.post("/api/calls/end").json()["phase"] == "idle"
        assert client.post("/api/calls/end").status_code == 200

    def test_start_with_camera_denied(self, api_setup, transport, media):
        client, session = api_setup
        open_peer(session, transport)
        media.error = "Permission denied"

        response = client.post("/api/calls/start", json={"conversation_id": "eind-2"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Camera Error: Permission denied"
        assert transport.calls == []

    def test_answer_and_reject_without_call(self, api_setup):
        client, _ = api_setup
        assert client.post("/api/calls/answer").status_code == 400
        assert client.post("/api/calls/reject").status_code == 400
        assert client.post("/api/calls/cancel").status_code == 400

    def test_answer_incoming(self, api_setup, make_call):
        client, session = api_setup
        session.calls.handle_incoming(make_call("eind-2"))

        assert client.get("/api/calls/").json()["phase"] == "ringing"
        data = client.post("/api/calls/answer").json()
        assert data["phase"] == "active"
        assert data["direction"] == "incoming"
