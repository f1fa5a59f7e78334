from __future__ import annotations

from dataclasses import dataclass
from threading import RLock
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class SessionEntry:
    session_id: str
    transport: Any
    server: Any


class SessionRegistry:
    """
    Process-local table of live protocol sessions.

    - Entries are inserted when a session is created and removed when its transport closes.
    - Nothing is persisted; a restart drops every session.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._sessions: Dict[str, SessionEntry] = {}

    def insert(self, entry: SessionEntry) -> None:
        with self._lock:
            if entry.session_id in self._sessions:
                raise KeyError(f"Duplicate session_id: {entry.session_id}")
            self._sessions[entry.session_id] = entry

    def get(self, session_id: str) -> Optional[SessionEntry]:
        with self._lock:
            return self._sessions.get(session_id)

    def remove(self, session_id: str) -> Optional[SessionEntry]:
        with self._lock:
            return self._sessions.pop(session_id, None)

    def session_ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def clear(self) -> int:
        with self._lock:
            count = len(self._sessions)
            self._sessions.clear()
        return count

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


class InFlightMarker:
    """
    Compare-and-swap style marker keeping at most one holder per key.

    Used to reject a second concurrent analyze of the same capture.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._keys: set[str] = set()

    def try_acquire(self, key: str) -> bool:
        with self._lock:
            if key in self._keys:
                return False
            self._keys.add(key)
            return True

    def release(self, key: str) -> None:
        with self._lock:
            self._keys.discard(key)

    def snapshot(self) -> list[str]:
        with self._lock:
            return list(self._keys)
