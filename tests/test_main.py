import json

import pytest
from starlette.websockets import WebSocketDisconnect

from conftest import auth
from services.care_api import main
from services.care_api.main import ConnectionManager
from services.care_api.security import create_access_token


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy", "service": "care-api"}
    assert client.get("/api/ping").json() == {"message": "pong"}


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/does-not-exist")
    assert response.status_code == 404
    assert "error" in response.json()


def test_malformed_body_is_bad_request(client, make_user):
    staff = make_user("staff")
    response = client.put("/api/ambulance/1/status", headers=auth(staff), json={"notes": "no status"})
    assert response.status_code == 400
    assert "status" in response.json()["error"]


def test_pubsub_messages_are_routed_by_user():
    manager = ConnectionManager()
    manager.handle_pubsub_message({"type": "psubscribe", "channel": "notification:*", "data": 1})
    manager.handle_pubsub_message({
        "type": "pmessage",
        "channel": "notification:42",
        "data": json.dumps({"type": "notification", "notification": {"id": 1}}),
    })
    manager.handle_pubsub_message({"type": "pmessage", "channel": "notification:oops", "data": "{}"})

    assert manager.get_queued_messages() == [(42, {"type": "notification", "notification": {"id": 1}})]
    assert manager.get_queued_messages() == []


def test_websocket_requires_token(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws") as ws:
            ws.receive_text()


def test_websocket_registers_live_account(client, make_user, monkeypatch):
    monkeypatch.setattr(main.manager, "start_redis_listener", lambda: None)
    user = make_user("customer")

    with client.websocket_connect(f"/ws?token={create_access_token(user)}"):
        assert user.id in main.manager.active_connections


@pytest.mark.parametrize("status", ["suspended", "deleted"])
def test_websocket_refuses_closed_accounts(client, session, make_user, monkeypatch, status):
    monkeypatch.setattr(main.manager, "start_redis_listener", lambda: None)
    user = make_user("customer")
    token = create_access_token(user)
    if status == "deleted":
        session.delete(user)
    else:
        user.status = "suspended"
        session.add(user)
    session.commit()

    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect(f"/ws?token={token}") as ws:
            ws.receive_text()
