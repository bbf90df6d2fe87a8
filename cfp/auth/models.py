from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    ATTENDEE = "attendee"
    SPEAKER = "speaker"
    ORGANIZER = "organizer"

    @classmethod
    def values(cls) -> tuple:
        return tuple(r.value for r in cls)


@dataclass(frozen=True)
class Identity:
    """Authenticated caller, recovered from a verified bearer token."""

    subject_id: str
    email: str
    # Kept as the raw claim: unknown roles are legal and get attendee visibility.
    role: str

    @property
    def is_organizer(self) -> bool:
        return self.role == Role.ORGANIZER.value

    @property
    def is_speaker(self) -> bool:
        return self.role == Role.SPEAKER.value
