"""
Talk access & lifecycle authority.

Sequences the pure decisions from `cfp.authz.policy` around storage calls:
read current state, decide against exactly that state, then write with the version
that was read. A concurrent writer makes the store reject the write, which is
reported as Conflict rather than retried.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterator, Optional, Union

from cfp.auth.models import Identity
from cfp.authz.policy import Decision, decide_create, decide_modify, decide_status_change, visibility_filter
from cfp.core.models import Talk, TalkDraft, TalkPatch, TalkStatus
from cfp.errors import Conflict, InvalidInput, NotFound, StaleWriteError
from cfp.storage.base import TalkFilter, TalkStore

logger = logging.getLogger(__name__)


class TalkListing:
    """Lazy, restartable view: every iteration queries the store again."""

    def __init__(self, store: TalkStore, flt: TalkFilter) -> None:
        self._store = store
        self.filter = flt

    def __iter__(self) -> Iterator[Talk]:
        return iter(self._store.find_by_filter(self.filter))


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def _parse_duration(value: Any) -> Union[int, float, None]:
    """Accept a non-negative number or numeric string; blank means absent."""
    if value is None:
        return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            value = float(text)
        except ValueError:
            raise InvalidInput("Duration must be a number") from None
        if value.is_integer():
            value = int(value)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInput("Duration must be a number")
    if isinstance(value, float) and not math.isfinite(value):
        raise InvalidInput("Duration must be a number")
    if value < 0:
        raise InvalidInput("Duration must not be negative")
    return value


class TalkAuthority:
    def __init__(self, store: TalkStore) -> None:
        self._store = store

    def _enforce(self, decision: Decision, *, op: str, identity: Identity, talk_id: Optional[str]) -> None:
        if not decision.allowed:
            logger.info(
                "Denied %s on talk %s for subject %s (role=%s): %s",
                op,
                talk_id or "-",
                identity.subject_id,
                identity.role,
                decision.outcome.value,
            )
        decision.enforce()

    def _load(self, talk_id: str) -> Talk:
        talk = self._store.find_by_id(talk_id) if talk_id else None
        if talk is None:
            raise NotFound("Talk not found")
        return talk

    def create(self, identity: Identity, draft: TalkDraft) -> Talk:
        self._enforce(decide_create(identity), op="create", identity=identity, talk_id=None)

        if _blank(draft.title):
            raise InvalidInput("Title is required")
        if _blank(draft.abstract):
            raise InvalidInput("Abstract is required")
        duration = _parse_duration(draft.duration_minutes)

        # Owner and status come from the caller's identity and the lifecycle,
        # never from the draft.
        talk = Talk(
            title=str(draft.title).strip(),
            abstract=str(draft.abstract),
            speaker_id=identity.subject_id,
            status=TalkStatus.PENDING,
            duration_minutes=duration,
            notes=draft.notes,
        )
        saved = self._store.save(talk)
        logger.info("Talk %s submitted by %s", saved.id, identity.subject_id)
        return saved

    def list(self, identity: Identity) -> TalkListing:
        return TalkListing(self._store, visibility_filter(identity))

    def get(self, identity: Identity, talk_id: str) -> Talk:
        # Point lookups are not filtered by role or status (unlike `list`).
        _ = identity
        return self._load(talk_id)

    def update(self, identity: Identity, talk_id: str, patch: TalkPatch) -> Talk:
        talk = self._load(talk_id)
        self._enforce(decide_modify(identity, talk, action="updated"), op="update", identity=identity, talk_id=talk_id)

        changes: Dict[str, Any] = {}
        if not _blank(patch.title):
            changes["title"] = str(patch.title).strip()
        if not _blank(patch.abstract):
            changes["abstract"] = patch.abstract
        duration = _parse_duration(patch.duration_minutes)
        if duration is not None:
            changes["duration_minutes"] = duration
        if not _blank(patch.notes):
            changes["notes"] = patch.notes

        if not _blank(patch.status):
            self._enforce(
                decide_status_change(identity, patch.status), op="transition", identity=identity, talk_id=talk_id
            )
            changes["status"] = TalkStatus(patch.status)

        # Drop no-op assignments so an identical patch does not produce a write.
        changes = {k: v for k, v in changes.items() if getattr(talk, k) != v}
        if not changes:
            return talk

        try:
            saved = self._store.save(talk.model_copy(update=changes))
        except StaleWriteError:
            logger.info("Concurrent write detected for talk %s (subject %s)", talk_id, identity.subject_id)
            raise Conflict("Talk was modified by another request") from None

        if "status" in changes:
            logger.info(
                "Talk %s status %s -> %s by %s", talk_id, talk.status.value, saved.status.value, identity.subject_id
            )
        else:
            logger.info("Talk %s updated by %s (%s)", talk_id, identity.subject_id, ", ".join(sorted(changes)))
        return saved

    def delete(self, identity: Identity, talk_id: str) -> None:
        talk = self._load(talk_id)
        self._enforce(decide_modify(identity, talk, action="deleted"), op="delete", identity=identity, talk_id=talk_id)

        try:
            self._store.delete(talk_id, expected_version=talk.version)
        except StaleWriteError:
            raise Conflict("Talk was modified by another request") from None
        logger.info("Talk %s deleted by %s", talk_id, identity.subject_id)
