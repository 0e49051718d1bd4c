"""
Message broker client used for per-user fan-out.

``MessageBroker`` is the contract the chat dispatcher and the realtime hub
rely on. ``InProcessBroker`` implements it for a single process: each
subscription owns a FIFO queue drained by its own consumer thread, so a slow
handler only delays its own topic.
"""
import json
import logging
import queue
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from app.core.config import settings
from app.core.exceptions import PublishError
from app.core.utils import serialize_value

logger = logging.getLogger(__name__)

Handler = Callable[[str], None]

_STOP = object()


def user_topic(user_id, env: str = None, prefix: str = None) -> str:
    """Per-user topic name, a pure function of (env, user id)."""
    env = env or settings.ENV
    prefix = prefix if prefix is not None else settings.BUS_TOPIC_PREFIX
    channel = f"user-{user_id}"
    if env in ("dev", "staging"):
        channel = f"{env}-{channel}"
    return f"{prefix}-{channel}" if prefix else channel


def encode_event(msg_type: str, data: Any) -> str:
    return json.dumps({"msgType": msg_type, "data": data}, default=serialize_value)


class Subscription(ABC):
    """Handle returned by ``MessageBroker.subscribe``."""

    topic: str

    @abstractmethod
    def close(self) -> None:
        """Unsubscribe and release the consumer. Idempotent."""

    @property
    @abstractmethod
    def closed(self) -> bool:
        pass


class MessageBroker(ABC):
    """Publish/subscribe over named topics with FIFO order per topic."""

    @abstractmethod
    def publish(self, topic: str, payload: str) -> None:
        """Deliver a payload to a topic. Returns once the bus has accepted it."""

    @abstractmethod
    def subscribe(self, topic: str, handler: Handler) -> Subscription:
        """Invoke ``handler`` for every later message on ``topic``."""

    @abstractmethod
    def close(self) -> None:
        pass

    def broadcast(self, user_ids: Iterable[int], msg_type: str, data: Any) -> List[int]:
        """
        Publish one event to each user's topic.
        Returns the ids whose publish failed; failures are logged, not raised.
        """
        payload = encode_event(msg_type, data)
        failed = []
        for user_id in user_ids:
            try:
                self.publish(user_topic(user_id), payload)
            except Exception:
                logger.exception("Error publishing %s to user %s", msg_type, user_id)
                failed.append(user_id)
        return failed


class _QueueSubscription(Subscription):

    def __init__(self, broker: "InProcessBroker", topic: str, handler: Handler):
        self.topic = topic
        self._broker = broker
        self._handler = handler
        self._queue: "queue.Queue" = queue.Queue()
        self._closed = threading.Event()
        self._thread = threading.Thread(
            target=self._consume, name=f"consumer-{topic}", daemon=True
        )

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def start(self) -> None:
        self._thread.start()
        logger.info("Subscribed to topic %s", self.topic)

    def offer(self, payload: str) -> None:
        if self.closed:
            return
        self._queue.put(payload)

    def _consume(self) -> None:
        while True:
            payload = self._queue.get()
            if payload is _STOP:
                break
            try:
                self._handler(payload)
            except Exception:
                logger.exception("Handler failed for message on %s", self.topic)
        logger.debug("Stopped consuming %s", self.topic)

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        self._broker._detach(self)
        self._queue.put(_STOP)
        if threading.current_thread() is not self._thread:
            self._thread.join(timeout=5)
        logger.info("Unsubscribed from topic %s", self.topic)


class InProcessBroker(MessageBroker):
    """Broker for the case where the API and the realtime hub share a process."""

    def __init__(self):
        self._topics: Dict[str, Set[_QueueSubscription]] = {}
        self._lock = threading.RLock()
        self._closed = False

    def publish(self, topic: str, payload: str) -> None:
        with self._lock:
            if self._closed:
                raise PublishError("Broker is closed")
            subscribers = list(self._topics.get(topic, ()))
            # Enqueue under the lock so concurrent publishers keep one order per topic
            for sub in subscribers:
                sub.offer(payload)
        logger.debug("Published to %s (%d subscribers)", topic, len(subscribers))

    def subscribe(self, topic: str, handler: Handler) -> Subscription:
        sub = _QueueSubscription(self, topic, handler)
        with self._lock:
            if self._closed:
                raise PublishError("Broker is closed")
            self._topics.setdefault(topic, set()).add(sub)
        sub.start()
        return sub

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._topics.get(topic, ()))

    def _detach(self, sub: _QueueSubscription) -> None:
        with self._lock:
            subs = self._topics.get(sub.topic)
            if subs is None:
                return
            subs.discard(sub)
            if not subs:
                del self._topics[sub.topic]

    def close(self) -> None:
        with self._lock:
            self._closed = True
            subs = [s for topic_subs in self._topics.values() for s in topic_subs]
        for sub in subs:
            sub.close()
        logger.info("Broker closed")


def create_broker(url: Optional[str] = None) -> MessageBroker:
    url = url or settings.BUS_URL
    if url.startswith("memory://"):
        return InProcessBroker()
    raise ValueError(f"Unsupported bus URL: {url}")
