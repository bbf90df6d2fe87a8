"""Store contracts consumed by the talk authority and the account service."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional, Protocol

from cfp.core.models import Talk, TalkStatus, User


@dataclass(frozen=True)
class TalkFilter:
    """
    Declarative predicate over talks.

    Kept declarative (instead of an arbitrary callable) so SQL-backed stores can
    translate it into a WHERE clause. `None` fields do not constrain.
    """

    speaker_id: Optional[str] = None
    status: Optional[TalkStatus] = None

    def matches(self, talk: Talk) -> bool:
        if self.speaker_id is not None and talk.speaker_id != self.speaker_id:
            return False
        if self.status is not None and talk.status != self.status:
            return False
        return True


class TalkStore(Protocol):
    def find_by_id(self, talk_id: str) -> Optional[Talk]: ...

    def find_by_filter(self, flt: TalkFilter) -> Iterator[Talk]:
        """Yield matching talks in insertion order."""
        ...

    def save(self, talk: Talk) -> Talk:
        """
        Insert (no id yet) or update (compare-and-swap on `talk.version`).

        Returns the stored talk with id, timestamps and the new version.
        Raises StaleWriteError when the stored version differs from `talk.version`.
        """
        ...

    def delete(self, talk_id: str, *, expected_version: Optional[int] = None) -> None: ...


class UserStore(Protocol):
    def find_by_id(self, user_id: str) -> Optional[User]: ...

    def find_by_email(self, email: str) -> Optional[User]: ...

    def add(self, user: User) -> User:
        """Insert a new account; raises DuplicateEmailError if the email is taken."""
        ...


class DuplicateEmailError(Exception):
    pass
