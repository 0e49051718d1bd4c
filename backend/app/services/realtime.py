"""
Realtime delivery over WebSocket.

A ``WebSocketSession`` owns one client connection. Writes go through a
bounded outbox drained by a single sender task, so ``send`` never blocks the
caller (usually a bus consumer thread). A session whose outbox overflows is
terminated rather than allowed to stall other sessions.
"""
import asyncio
import json
import logging
from typing import Optional

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from app.core.config import settings
from app.services.broker import MessageBroker, user_topic
from app.services.session_hub import Registration, SessionHub

logger = logging.getLogger(__name__)

PING_FRAME = json.dumps({"type": "ping"})
PONG_FRAME = json.dumps({"type": "pong"})

_CLOSE = object()


class SessionClosed(Exception):
    pass


class WebSocketSession:

    def __init__(self, websocket: WebSocket, user_id: int, max_queue: int = None,
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        self.websocket = websocket
        self.user_id = user_id
        self.loop = loop or asyncio.get_running_loop()
        self.outbox: asyncio.Queue = asyncio.Queue(maxsize=max_queue or settings.WS_OUTBOUND_QUEUE_SIZE)
        self._terminated = asyncio.Event()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, payload: str) -> None:
        """Queue a text frame. Safe to call from any thread."""
        if self._closed:
            raise SessionClosed(f"Session of user {self.user_id} is closed")
        try:
            self.loop.call_soon_threadsafe(self._enqueue, payload)
        except RuntimeError as e:
            # event loop already shut down
            self._closed = True
            raise SessionClosed(str(e))

    def _enqueue(self, payload) -> None:
        if self._closed:
            return
        try:
            self.outbox.put_nowait(payload)
        except asyncio.QueueFull:
            logger.warning("Outbound queue full for user %s, terminating session", self.user_id)
            self.terminate()

    def terminate(self) -> None:
        """Ask the session to stop. Must run on the session's event loop."""
        self._closed = True
        self._terminated.set()

    async def _sender(self) -> None:
        while True:
            payload = await self.outbox.get()
            if payload is _CLOSE:
                return
            await self.websocket.send_text(payload)

    async def _heartbeat(self, interval: float) -> None:
        while not self._closed:
            await asyncio.sleep(interval)
            try:
                self.outbox.put_nowait(PING_FRAME)
            except asyncio.QueueFull:
                logger.warning("Ping could not be queued for user %s", self.user_id)
                return

    async def _receiver(self, broker: MessageBroker) -> None:
        topic = user_topic(self.user_id)
        while True:
            try:
                text = await self.websocket.receive_text()
            except WebSocketDisconnect:
                logger.debug("Connection closed by client (user %s)", self.user_id)
                return

            kind = _frame_type(text)
            if kind == "ping":
                self._enqueue(PONG_FRAME)
                continue
            if kind == "pong":
                continue

            logger.info("Received from user %s: %s", self.user_id, text)
            try:
                broker.publish(topic, text)
            except Exception:
                logger.exception("Failed to echo message of user %s", self.user_id)

    async def run(self, broker: MessageBroker, ping_interval: float = None) -> None:
        """Serve the connection until the client leaves, a write fails or the session is terminated."""
        tasks = [
            asyncio.ensure_future(self._receiver(broker)),
            asyncio.ensure_future(self._sender()),
            asyncio.ensure_future(self._heartbeat(ping_interval or settings.WS_PING_INTERVAL)),
            asyncio.ensure_future(self._terminated.wait()),
        ]
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                if not task.cancelled() and task.exception() is not None:
                    logger.error("Session of user %s failed: %r", self.user_id, task.exception())
        finally:
            self._closed = True
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)


def _frame_type(text: str) -> Optional[str]:
    try:
        data = json.loads(text)
    except ValueError:
        return None
    if isinstance(data, dict):
        return data.get("type")
    return None


def _deliver(payload: str):
    def write(session: WebSocketSession) -> None:
        session.send(payload)
    return write


def open_user_subscription(registration: Registration, broker: MessageBroker, user_id: int) -> None:
    """Subscribe once per user; every bus message goes to all of the user's sessions."""
    def on_message(payload: str) -> None:
        delivered = registration.broadcast(_deliver(payload))
        logger.debug("Delivered message to %d sessions of user %s", delivered, user_id)

    registration.sessions.subscription = broker.subscribe(user_topic(user_id), on_message)


def close_user_subscription(registration: Registration) -> None:
    sub = registration.sessions.subscription
    registration.sessions.subscription = None
    if sub is not None:
        sub.close()


async def serve_websocket(websocket: WebSocket, user_id: int, hub: SessionHub, broker: MessageBroker) -> None:
    """Register an accepted connection, serve it, and clean up on the way out."""
    session = WebSocketSession(websocket, user_id)
    registration = hub.add(user_id, session)
    logger.info("User %s connected", user_id)

    if registration.is_first:
        open_user_subscription(registration, broker, user_id)

    try:
        await session.run(broker)
    finally:
        logger.info("User %s disconnected", user_id)
        registration.remove(lambda: close_user_subscription(registration))
        if (websocket.client_state == WebSocketState.CONNECTED
                and websocket.application_state == WebSocketState.CONNECTED):
            try:
                await websocket.close()
            except RuntimeError:
                logger.debug("Connection of user %s already closed", user_id)
