"""Postgres-backed stores (psycopg v3).

One short-lived connection per call; the talk authority never holds a connection
across its read-authorize-write sequence. Writes use `version` as a compare-and-swap
token so a concurrent status change between read and write is detected by the DB.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, Optional, Sequence

from cfp.core.models import Talk, TalkStatus, User
from cfp.errors import StaleWriteError, Unavailable
from cfp.storage.base import DuplicateEmailError, TalkFilter

logger = logging.getLogger(__name__)

_TALK_COLUMNS = "id, title, abstract, speaker_id, status, duration_minutes, notes, version, created_at, updated_at"
_USER_COLUMNS = "id, email, name, password_hash, role, bio, created_at"


def _default_connect(dsn: str):
    import psycopg  # type: ignore[import-not-found]

    return psycopg.connect(dsn)


@contextmanager
def _db_errors(op: str) -> Iterator[None]:
    """Surface connectivity problems as Unavailable; let everything else propagate."""
    import psycopg  # type: ignore[import-not-found]

    try:
        yield
    except (psycopg.OperationalError, psycopg.InterfaceError) as e:
        logger.warning("Postgres %s failed: %s", op, type(e).__name__)
        raise Unavailable("Storage is unavailable") from e


def _row_to_talk(row: Sequence[Any]) -> Talk:
    tid, title, abstract, speaker_id, status, duration, notes, version, created_at, updated_at = row
    return Talk(
        id=str(tid),
        title=title,
        abstract=abstract,
        speaker_id=str(speaker_id),
        status=TalkStatus(status),
        duration_minutes=duration,
        notes=notes,
        version=int(version),
        created_at=created_at,
        updated_at=updated_at,
    )


def _row_to_user(row: Sequence[Any]) -> User:
    uid, email, name, password_hash, role, bio, created_at = row
    return User(
        id=str(uid),
        email=email,
        name=name,
        password_hash=password_hash,
        role=role,
        bio=bio,
        created_at=created_at,
    )


class PostgresTalkStore:
    def __init__(self, dsn: str, *, connect: Optional[Callable[[str], Any]] = None) -> None:
        self._dsn = dsn
        self._connect = connect or _default_connect

    def find_by_id(self, talk_id: str) -> Optional[Talk]:
        with _db_errors("find_by_id"), self._connect(self._dsn) as conn:
            row = conn.execute(f"SELECT {_TALK_COLUMNS} FROM talks WHERE id = %s", (talk_id,)).fetchone()
        return _row_to_talk(row) if row else None

    def find_by_filter(self, flt: TalkFilter) -> Iterator[Talk]:
        conditions: List[str] = []
        params: List[Any] = []
        if flt.speaker_id is not None:
            conditions.append("speaker_id = %s")
            params.append(flt.speaker_id)
        if flt.status is not None:
            conditions.append("status = %s")
            params.append(flt.status.value)
        where = f" WHERE {' AND '.join(conditions)}" if conditions else ""
        sql = f"SELECT {_TALK_COLUMNS} FROM talks{where} ORDER BY seq ASC"

        with _db_errors("find_by_filter"), self._connect(self._dsn) as conn:
            rows = conn.execute(sql, tuple(params)).fetchall()
        return iter([_row_to_talk(r) for r in rows])

    def save(self, talk: Talk) -> Talk:
        if talk.id is None:
            return self._insert(talk)
        return self._update(talk)

    def _insert(self, talk: Talk) -> Talk:
        with _db_errors("insert"), self._connect(self._dsn) as conn:
            row = conn.execute(
                f"""
                INSERT INTO talks (id, title, abstract, speaker_id, status, duration_minutes, notes, version)
                VALUES (%s, %s, %s, %s, %s, %s, %s, 1)
                RETURNING {_TALK_COLUMNS}
                """,
                (
                    uuid.uuid4().hex,
                    talk.title,
                    talk.abstract,
                    talk.speaker_id,
                    talk.status.value,
                    talk.duration_minutes,
                    talk.notes,
                ),
            ).fetchone()
        if not row:
            raise RuntimeError("Failed to insert talk")
        return _row_to_talk(row)

    def _update(self, talk: Talk) -> Talk:
        # speaker_id is deliberately not part of the SET list.
        with _db_errors("update"), self._connect(self._dsn) as conn:
            row = conn.execute(
                f"""
                UPDATE talks
                SET title = %s,
                    abstract = %s,
                    status = %s,
                    duration_minutes = %s,
                    notes = %s,
                    version = version + 1,
                    updated_at = now()
                WHERE id = %s AND version = %s
                RETURNING {_TALK_COLUMNS}
                """,
                (
                    talk.title,
                    talk.abstract,
                    talk.status.value,
                    talk.duration_minutes,
                    talk.notes,
                    talk.id,
                    talk.version,
                ),
            ).fetchone()
        if not row:
            raise StaleWriteError(str(talk.id), talk.version)
        return _row_to_talk(row)

    def delete(self, talk_id: str, *, expected_version: Optional[int] = None) -> None:
        with _db_errors("delete"), self._connect(self._dsn) as conn:
            if expected_version is None:
                conn.execute("DELETE FROM talks WHERE id = %s", (talk_id,))
                return
            cur = conn.execute("DELETE FROM talks WHERE id = %s AND version = %s", (talk_id, expected_version))
            if cur.rowcount == 0:
                raise StaleWriteError(talk_id, expected_version)


class PostgresUserStore:
    def __init__(self, dsn: str, *, connect: Optional[Callable[[str], Any]] = None) -> None:
        self._dsn = dsn
        self._connect = connect or _default_connect

    def find_by_id(self, user_id: str) -> Optional[User]:
        with _db_errors("find_user"), self._connect(self._dsn) as conn:
            row = conn.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE id = %s", (user_id,)).fetchone()
        return _row_to_user(row) if row else None

    def find_by_email(self, email: str) -> Optional[User]:
        key = (email or "").strip().lower()
        with _db_errors("find_user"), self._connect(self._dsn) as conn:
            row = conn.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE email = %s", (key,)).fetchone()
        return _row_to_user(row) if row else None

    def add(self, user: User) -> User:
        from psycopg import errors as pg_errors  # type: ignore[import-not-found]

        try:
            with _db_errors("add_user"), self._connect(self._dsn) as conn:
                row = conn.execute(
                    f"""
                    INSERT INTO users (id, email, name, password_hash, role, bio)
                    VALUES (%s, %s, %s, %s, %s, %s)
                    RETURNING {_USER_COLUMNS}
                    """,
                    (uuid.uuid4().hex, user.email.strip().lower(), user.name, user.password_hash, user.role, user.bio),
                ).fetchone()
        except pg_errors.UniqueViolation as e:
            raise DuplicateEmailError(user.email) from e
        if not row:
            raise RuntimeError("Failed to create user")
        return _row_to_user(row)
