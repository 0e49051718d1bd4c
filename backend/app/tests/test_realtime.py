"""
Tests for the WebSocket endpoint and realtime fan-out.
"""
import json
import time

import pytest
from starlette.websockets import WebSocketDisconnect

from app.core.security import create_access_token
from app.main import app
from app.services.broker import user_topic


def ws_url(user):
    token = create_access_token({"user_id": user.id, "username": user.username})
    return f"/ws?token={token}"


def wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def handshake(ws):
    """Round-trip a ping so the server side is fully registered."""
    ws.send_text(json.dumps({"type": "ping"}))
    assert json.loads(ws.receive_text()) == {"type": "pong"}


def test_rejects_invalid_token(client, users):
    with client.websocket_connect("/ws?token=garbage") as ws:
        frame = ws.receive_json()
        assert frame["status"] == "Unauthorized"
        with pytest.raises(WebSocketDisconnect):
            ws.receive_text()


def test_rejects_unknown_origin(client, users):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect(ws_url(users[0]), headers={"origin": "https://evil.example.com"}):
            pass


def test_chat_message_reaches_room_members(client, users, headers):
    alice, bob, _ = users
    room_id = client.post(
        "/api/rooms", json={"name": "Chat", "isPrivate": False}, headers=headers[0]
    ).json()["data"]["room"]["id"]
    client.post(f"/api/rooms/{room_id}/join", headers=headers[1])

    with client.websocket_connect(ws_url(bob)) as ws:
        handshake(ws)
        sent = client.post(f"/api/rooms/{room_id}/messages", json={"content": "hi bob"}, headers=headers[0])
        assert sent.status_code == 201

        frame = json.loads(ws.receive_text())
        assert frame["msgType"] == "CREATE_MESSAGE"
        assert frame["data"]["content"] == "hi bob"
        assert frame["data"]["senderName"] == "alice"
        assert frame["data"]["roomId"] == room_id


def test_client_frames_are_echoed_to_all_sessions(client, users):
    bob = users[1]
    with client.websocket_connect(ws_url(bob)) as first:
        handshake(first)
        with client.websocket_connect(ws_url(bob)) as second:
            handshake(second)
            assert app.state.session_hub.session_count(bob.id) == 2

            first.send_text('{"typing": true}')
            assert first.receive_text() == '{"typing": true}'
            assert second.receive_text() == '{"typing": true}'


def test_last_disconnect_closes_subscription(client, users):
    bob = users[1]
    broker = app.state.broker
    topic = user_topic(bob.id)

    with client.websocket_connect(ws_url(bob)) as first:
        handshake(first)
        with client.websocket_connect(ws_url(bob)) as second:
            handshake(second)
            assert broker.subscriber_count(topic) == 1
        assert wait_until(lambda: app.state.session_hub.session_count(bob.id) == 1)
        assert broker.subscriber_count(topic) == 1

    assert wait_until(lambda: broker.subscriber_count(topic) == 0)
    assert not app.state.session_hub.is_online(bob.id)
