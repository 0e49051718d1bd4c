"""
Web Push delivery.

A fixed pool of worker threads drains one bounded queue of
``NotificationData`` and hands each item to the push gateway. Errors are
logged and the item is dropped: push services retry on their side, and a
client-side retry risks showing the same notification twice.
"""
import json
import logging
import queue
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pywebpush import WebPushException, webpush

from app.core.config import settings
from app.core.exceptions import PushQueueClosed

logger = logging.getLogger(__name__)

_STOP = object()


@dataclass
class NotificationData:
    """One push to one browser subscription."""
    subscription: Dict[str, Any]  # {"endpoint": ..., "keys": {"auth": ..., "p256dh": ...}}
    title: str
    message: str

    def payload(self) -> str:
        return json.dumps({"title": self.title, "message": self.message})


class PushGateway:
    """Sends Web Push messages signed with the VAPID key pair."""

    def __init__(self, vapid_email: str = None, vapid_private_key: str = None, ttl: int = None):
        self.vapid_email = vapid_email if vapid_email is not None else settings.VAPID_EMAIL
        self.vapid_private_key = (
            vapid_private_key if vapid_private_key is not None else settings.VAPID_PRIVATE_KEY
        )
        self.ttl = ttl if ttl is not None else settings.PUSH_TTL

    def send(self, subscription: Dict[str, Any], payload: str):
        # The subject claim is required by some push services (Safari)
        claims = {"sub": f"mailto:{self.vapid_email}"}
        return webpush(
            subscription_info=subscription,
            data=payload,
            vapid_private_key=self.vapid_private_key,
            vapid_claims=claims,
            ttl=self.ttl,
        )


class PushWorkerPool:

    def __init__(self, gateway: Optional[PushGateway] = None, workers: int = None, queue_size: int = None):
        self.gateway = gateway or PushGateway()
        self.num_workers = workers or settings.PUSH_WORKER_COUNT
        self._queue: "queue.Queue" = queue.Queue(maxsize=queue_size or settings.PUSH_QUEUE_SIZE)
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> "PushWorkerPool":
        logger.info("Starting %d push notification workers...", self.num_workers)
        for i in range(1, self.num_workers + 1):
            thread = threading.Thread(target=self._work, args=(i,), name=f"push-worker-{i}", daemon=True)
            thread.start()
            self._threads.append(thread)
        return self

    def enqueue(self, data: NotificationData) -> None:
        """Add a push to the queue, blocking while it is full."""
        with self._lock:
            if self._closed:
                raise PushQueueClosed()
            self._queue.put(data)

    def qsize(self) -> int:
        return self._queue.qsize()

    def _work(self, worker_id: int) -> None:
        logger.info("Worker %d started", worker_id)
        while True:
            item = self._queue.get()
            if item is _STOP:
                break
            self._deliver(worker_id, item)
        logger.info("Worker %d stopped", worker_id)

    def _deliver(self, worker_id: int, item: NotificationData) -> None:
        try:
            payload = item.payload()
        except (TypeError, ValueError) as e:
            logger.error("Worker %d: Error marshalling payload: %s", worker_id, e)
            return

        try:
            response = self.gateway.send(item.subscription, payload)
        except WebPushException as e:
            logger.error("Worker %d: Push gateway rejected notification: %s", worker_id, e)
            return
        except Exception:
            logger.exception("Worker %d: Error sending notification", worker_id)
            return

        logger.info(
            "Worker %d: Sent notification! Response: %s",
            worker_id, getattr(response, "status_code", response)
        )

    def close(self, timeout: Optional[float] = None) -> None:
        """Stop accepting pushes, let the workers drain the queue, then join them."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        logger.info("Closing notification queue...")
        for _ in self._threads:
            self._queue.put(_STOP)
        for thread in self._threads:
            thread.join(timeout)
        logger.info("All workers have finished processing!")
