"""In-process stores for development and tests (used when Postgres is not configured)."""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional

from cfp.core.models import Talk, User
from cfp.errors import StaleWriteError
from cfp.storage.base import DuplicateEmailError, TalkFilter


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


class MemoryTalkStore:
    """Thread-safe, insertion-ordered talk store with per-talk version checks.

    Reads and writes hand back copies, so mutating a returned talk never bypasses `save`.
    """

    def __init__(self) -> None:
        # dicts preserve insertion order; updates keep the original slot.
        self._talks: Dict[str, Talk] = {}
        self._lock = threading.Lock()

    def find_by_id(self, talk_id: str) -> Optional[Talk]:
        with self._lock:
            talk = self._talks.get(talk_id)
        return talk.model_copy() if talk is not None else None

    def find_by_filter(self, flt: TalkFilter) -> Iterator[Talk]:
        # Snapshot under the lock so iteration never sees a half-applied write.
        with self._lock:
            snapshot: List[Talk] = list(self._talks.values())
        return iter([t.model_copy() for t in snapshot if flt.matches(t)])

    def save(self, talk: Talk) -> Talk:
        now = _utcnow()
        with self._lock:
            if talk.id is None:
                stored = talk.model_copy(update={"id": _new_id(), "version": 1, "created_at": now, "updated_at": now})
                self._talks[stored.id] = stored  # type: ignore[index]
                return stored.model_copy()

            current = self._talks.get(talk.id)
            if current is None or current.version != talk.version:
                raise StaleWriteError(talk.id, talk.version)
            stored = talk.model_copy(
                update={"version": current.version + 1, "created_at": current.created_at, "updated_at": now}
            )
            self._talks[talk.id] = stored
            return stored.model_copy()

    def delete(self, talk_id: str, *, expected_version: Optional[int] = None) -> None:
        with self._lock:
            current = self._talks.get(talk_id)
            if current is None:
                if expected_version is not None:
                    raise StaleWriteError(talk_id, expected_version)
                return
            if expected_version is not None and current.version != expected_version:
                raise StaleWriteError(talk_id, expected_version)
            del self._talks[talk_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._talks)


class MemoryUserStore:
    def __init__(self) -> None:
        self._users: Dict[str, User] = {}
        self._by_email: Dict[str, str] = {}
        self._lock = threading.Lock()

    def find_by_id(self, user_id: str) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
        return user.model_copy() if user is not None else None

    def find_by_email(self, email: str) -> Optional[User]:
        key = (email or "").strip().lower()
        with self._lock:
            user = self._users.get(self._by_email.get(key, ""))
        return user.model_copy() if user is not None else None

    def add(self, user: User) -> User:
        key = user.email.strip().lower()
        with self._lock:
            if key in self._by_email:
                raise DuplicateEmailError(key)
            stored = user.model_copy(update={"id": _new_id(), "email": key, "created_at": _utcnow()})
            self._users[stored.id] = stored  # type: ignore[index]
            self._by_email[key] = stored.id  # type: ignore[assignment]
            return stored.model_copy()
