from __future__ import annotations

import threading
import time
from functools import lru_cache

from dualpane.services.session import CompareSession


class SessionRegistry:
    def __init__(self) -> None:
        self._sessions: dict[str, CompareSession] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, doc_id: str) -> CompareSession | None:
        with self._lock:
            session = self._sessions.get(doc_id)
        if session is not None:
            session.touch()
        return session

    def get_or_create(self, doc_id: str) -> CompareSession:
        with self._lock:
            session = self._sessions.get(doc_id)
            if session is None:
                session = CompareSession(doc_id=doc_id)
                self._sessions[doc_id] = session
        session.touch()
        return session

    def drop(self, doc_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(doc_id, None) is not None

    def drop_idle(self, max_idle_seconds: float, *, now: float | None = None) -> list[str]:
        now = time.monotonic() if now is None else now
        with self._lock:
            expired = [doc_id for doc_id, s in self._sessions.items() if now - s.last_access > max_idle_seconds]
            for doc_id in expired:
                del self._sessions[doc_id]
        return expired


@lru_cache(maxsize=1)
def get_registry() -> SessionRegistry:
    return SessionRegistry()
