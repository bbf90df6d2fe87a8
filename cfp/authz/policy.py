from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from cfp.auth.models import Identity
from cfp.core.models import Talk, TalkStatus
from cfp.errors import Conflict, Forbidden, InvalidInput, TalkServiceError
from cfp.storage.base import TalkFilter


class Outcome(str, Enum):
    ALLOW = "allow"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    INVALID_INPUT = "invalid_input"


_DENIALS = {
    Outcome.FORBIDDEN: Forbidden,
    Outcome.CONFLICT: Conflict,
    Outcome.INVALID_INPUT: InvalidInput,
}


@dataclass(frozen=True)
class Decision:
    outcome: Outcome
    reason: str = ""

    @property
    def allowed(self) -> bool:
        return self.outcome == Outcome.ALLOW

    def to_error(self) -> Optional[TalkServiceError]:
        if self.allowed:
            return None
        return _DENIALS[self.outcome](self.reason)

    def enforce(self) -> None:
        err = self.to_error()
        if err is not None:
            raise err


ALLOW = Decision(Outcome.ALLOW)


def decide_create(identity: Identity) -> Decision:
    if not identity.is_speaker:
        return Decision(Outcome.FORBIDDEN, "Access denied. Speakers only.")
    return ALLOW


def visibility_filter(identity: Identity) -> TalkFilter:
    """
    Which talks an identity sees when enumerating.

    - organizer: everything
    - speaker: own talks, any status
    - attendee or any unrecognised role: approved talks only
    """
    if identity.is_organizer:
        return TalkFilter()
    if identity.is_speaker:
        return TalkFilter(speaker_id=identity.subject_id)
    return TalkFilter(status=TalkStatus.APPROVED)


def decide_modify(identity: Identity, talk: Talk, *, action: str = "updated") -> Decision:
    """Ownership/role gate shared by update and delete."""
    is_organizer = identity.is_organizer
    is_owner = talk.speaker_id == identity.subject_id

    if not is_organizer and not is_owner:
        return Decision(Outcome.FORBIDDEN, "User not authorized")
    if is_owner and not is_organizer and talk.status != TalkStatus.PENDING:
        return Decision(Outcome.CONFLICT, f"Talk cannot be {action} once it has been reviewed.")
    return ALLOW


def decide_status_change(identity: Identity, requested: str) -> Decision:
    if not identity.is_organizer:
        return Decision(Outcome.FORBIDDEN, "Only organizers can change the status")
    if TalkStatus.parse(requested) is None:
        return Decision(Outcome.INVALID_INPUT, "Invalid status")
    return ALLOW
