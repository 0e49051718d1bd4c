"""
Tests for backpressure and heartbeat of a single websocket session.
"""
import asyncio
import json

from fastapi import WebSocketDisconnect

from app.services.broker import user_topic
from app.services.realtime import PING_FRAME, PONG_FRAME, WebSocketSession, _deliver
from app.services.session_hub import SessionHub


class FakeWebSocket:
    """Client side of a session. Frames put on ``incoming`` reach the server."""

    def __init__(self, stuck=False):
        self.sent = []
        self.incoming = asyncio.Queue()
        self.stuck = stuck
        self.unblock = asyncio.Event()

    async def send_text(self, text):
        if self.stuck:
            await self.unblock.wait()
        self.sent.append(text)

    async def receive_text(self):
        text = await self.incoming.get()
        if text is None:
            raise WebSocketDisconnect(code=1000)
        return text

    def disconnect(self):
        self.incoming.put_nowait(None)


class RecordingBroker:
    def __init__(self):
        self.published = []

    def publish(self, topic, payload):
        self.published.append((topic, payload))


def test_overflowing_session_is_terminated_while_others_keep_receiving():
    async def scenario():
        hub = SessionHub()
        broker = RecordingBroker()
        stuck_ws, healthy_ws = FakeWebSocket(stuck=True), FakeWebSocket()
        stuck = WebSocketSession(stuck_ws, user_id=1, max_queue=2)
        healthy = WebSocketSession(healthy_ws, user_id=1, max_queue=100)
        registration = hub.add(1, stuck)
        hub.add(1, healthy)

        stuck_run = asyncio.ensure_future(stuck.run(broker, ping_interval=60))
        healthy_run = asyncio.ensure_future(healthy.run(broker, ping_interval=60))
        await asyncio.sleep(0)

        frames = [json.dumps({"n": n}) for n in range(10)]
        for frame in frames:
            registration.broadcast(_deliver(frame))
            await asyncio.sleep(0.01)

        await asyncio.wait_for(stuck_run, timeout=1)
        assert stuck.closed
        assert not healthy.closed
        assert stuck_ws.sent == []
        assert healthy_ws.sent == frames

        healthy_ws.disconnect()
        await asyncio.wait_for(healthy_run, timeout=1)
        assert healthy.closed

    asyncio.run(scenario())


def test_heartbeat_pings_and_answers_client_pings():
    async def scenario():
        broker = RecordingBroker()
        ws = FakeWebSocket()
        session = WebSocketSession(ws, user_id=7)
        run = asyncio.ensure_future(session.run(broker, ping_interval=0.05))

        await asyncio.sleep(0.18)
        assert 2 <= ws.sent.count(PING_FRAME) <= 4
        assert json.loads(PING_FRAME) == {"type": "ping"}

        ws.incoming.put_nowait(json.dumps({"type": "ping"}))
        ws.incoming.put_nowait(json.dumps({"type": "pong"}))
        ws.incoming.put_nowait('{"typing": true}')
        await asyncio.sleep(0.02)

        assert ws.sent.count(PONG_FRAME) == 1
        assert json.loads(PONG_FRAME) == {"type": "pong"}
        # Control frames stay on the connection, anything else is echoed via the bus
        assert broker.published == [(user_topic(7), '{"typing": true}')]

        ws.disconnect()
        await asyncio.wait_for(run, timeout=1)
        assert session.closed

    asyncio.run(scenario())
