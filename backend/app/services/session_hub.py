"""
Realtime session hub.

Keeps ``user id -> {conn id -> session}`` for every live client connection
in this process. The first session of a user is told so (the caller then
opens the user's bus subscription); removing the last one runs the
teardown callback exactly once.
"""
import logging
import threading
import uuid
from typing import Any, Callable, Dict, NamedTuple, Optional

logger = logging.getLogger(__name__)


class UserSessions:
    """Live sessions of one user plus the resources tied to their lifetime."""

    def __init__(self, user_id):
        self.user_id = user_id
        self.subscription: Optional[Any] = None
        self._sessions: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def add(self, conn_id: str, session) -> None:
        with self._lock:
            self._sessions[conn_id] = session

    def discard(self, conn_id: str) -> int:
        """Remove a session and return how many are left."""
        with self._lock:
            self._sessions.pop(conn_id, None)
            return len(self._sessions)

    def snapshot(self):
        with self._lock:
            return list(self._sessions.values())

    def broadcast(self, callback: Callable[[Any], None]) -> int:
        """Call ``callback`` once per live session. Returns the number of successful calls."""
        delivered = 0
        for session in self.snapshot():
            try:
                callback(session)
                delivered += 1
            except Exception:
                logger.exception("Failed to deliver to a session of user %s", self.user_id)
        return delivered


class Registration(NamedTuple):
    broadcast: Callable[[Callable[[Any], None]], int]
    remove: Callable[[Optional[Callable[[], None]]], bool]
    is_first: bool
    sessions: UserSessions
    conn_id: str


class SessionHub:
    """One instance per process, created at startup and torn down at shutdown."""

    def __init__(self):
        self._users: Dict[Any, UserSessions] = {}
        self._lock = threading.Lock()

    def add(self, user_id, session) -> Registration:
        conn_id = str(uuid.uuid4())
        with self._lock:
            entry = self._users.get(user_id)
            is_first = entry is None
            if is_first:
                entry = UserSessions(user_id)
                self._users[user_id] = entry
            entry.add(conn_id, session)

        logger.info("Added connection %s for user %s (first=%s)", conn_id, user_id, is_first)
        return Registration(
            broadcast=entry.broadcast,
            remove=self._remover(user_id, conn_id, entry),
            is_first=is_first,
            sessions=entry,
            conn_id=conn_id,
        )

    def _remover(self, user_id, conn_id: str, entry: UserSessions):
        removed = threading.Event()

        def remove(on_empty: Optional[Callable[[], None]] = None) -> bool:
            """Drop this session. Returns True if it was the user's last one."""
            with self._lock:
                if removed.is_set():
                    return False
                removed.set()
                remaining = entry.discard(conn_id)
                was_last = remaining == 0 and self._users.get(user_id) is entry
                if was_last:
                    del self._users[user_id]

            logger.info("Removed connection %s of user %s", conn_id, user_id)
            if was_last:
                logger.info("Removed user %s from session hub", user_id)
                if on_empty is not None:
                    try:
                        on_empty()
                    except Exception:
                        logger.exception("Teardown failed for user %s", user_id)
            return was_last

        return remove

    def session_count(self, user_id) -> int:
        with self._lock:
            entry = self._users.get(user_id)
        return len(entry) if entry else 0

    def user_ids(self):
        with self._lock:
            return list(self._users)

    def is_online(self, user_id) -> bool:
        return self.session_count(user_id) > 0

    def close(self) -> None:
        """Drop every entry, closing subscriptions still attached."""
        with self._lock:
            entries = list(self._users.values())
            self._users.clear()
        for entry in entries:
            sub = entry.subscription
            if sub is not None:
                try:
                    sub.close()
                except Exception:
                    logger.exception("Failed to close subscription of user %s", entry.user_id)
        logger.info("Session hub closed (%d users)", len(entries))
