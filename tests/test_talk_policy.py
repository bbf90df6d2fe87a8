from __future__ import annotations

import pytest

from cfp.auth.models import Identity
from cfp.authz.policy import Outcome, decide_create, decide_modify, decide_status_change, visibility_filter
from cfp.core.models import Talk, TalkStatus
from cfp.errors import Conflict, Forbidden, InvalidInput


def _who(role: str, sub: str = "u1") -> Identity:
    return Identity(subject_id=sub, email=f"{sub}@example.com", role=role)


def _talk(status: TalkStatus = TalkStatus.PENDING, owner: str = "u1") -> Talk:
    return Talk(id="t1", title="T", abstract="A", speaker_id=owner, status=status, version=1)


@pytest.mark.parametrize(
    "role, speaker, organizer",
    [("speaker", True, False), ("organizer", False, True), ("Speaker", False, False), ("volunteer", False, False)],
)
def test_identity_role_predicates_match_exact_claim(role: str, speaker: bool, organizer: bool) -> None:
    who = _who(role)
    assert who.is_speaker is speaker
    assert who.is_organizer is organizer


@pytest.mark.parametrize("role", ["attendee", "organizer", "volunteer", ""])
def test_create_forbidden_for_non_speakers(role: str) -> None:
    d = decide_create(_who(role))
    assert d.outcome == Outcome.FORBIDDEN
    assert isinstance(d.to_error(), Forbidden)


def test_create_allowed_for_speaker() -> None:
    d = decide_create(_who("speaker"))
    assert d.allowed
    assert d.to_error() is None
    d.enforce()


def test_visibility_filter_by_role() -> None:
    org = visibility_filter(_who("organizer"))
    assert org.speaker_id is None and org.status is None

    spk = visibility_filter(_who("speaker", "s9"))
    assert spk.speaker_id == "s9" and spk.status is None

    for role in ("attendee", "volunteer"):
        f = visibility_filter(_who(role))
        assert f.status == TalkStatus.APPROVED and f.speaker_id is None


@pytest.mark.parametrize("status", list(TalkStatus))
def test_organizer_may_modify_at_any_status(status: TalkStatus) -> None:
    assert decide_modify(_who("organizer", "org"), _talk(status, owner="u1")).allowed


def test_owner_may_modify_while_pending() -> None:
    assert decide_modify(_who("speaker", "u1"), _talk(TalkStatus.PENDING, owner="u1")).allowed


@pytest.mark.parametrize("status", [TalkStatus.APPROVED, TalkStatus.REJECTED])
def test_owner_conflict_after_review(status: TalkStatus) -> None:
    d = decide_modify(_who("speaker", "u1"), _talk(status, owner="u1"), action="deleted")
    assert d.outcome == Outcome.CONFLICT
    assert "deleted" in d.reason
    with pytest.raises(Conflict):
        d.enforce()


@pytest.mark.parametrize("role", ["speaker", "attendee"])
@pytest.mark.parametrize("status", list(TalkStatus))
def test_non_owner_non_organizer_forbidden(role: str, status: TalkStatus) -> None:
    d = decide_modify(_who(role, "intruder"), _talk(status, owner="u1"))
    assert d.outcome == Outcome.FORBIDDEN


def test_organizer_owning_a_reviewed_talk_is_not_blocked() -> None:
    # Ownership restrictions never apply to organizers, even on their own talks.
    assert decide_modify(_who("organizer", "u1"), _talk(TalkStatus.APPROVED, owner="u1")).allowed


def test_status_change_rules() -> None:
    assert decide_status_change(_who("organizer"), "approved").allowed
    assert decide_status_change(_who("organizer"), "pending").allowed

    d = decide_status_change(_who("organizer"), "archived")
    assert d.outcome == Outcome.INVALID_INPUT
    assert isinstance(d.to_error(), InvalidInput)

    # Role is checked before the value.
    assert decide_status_change(_who("speaker"), "archived").outcome == Outcome.FORBIDDEN
    assert decide_status_change(_who("speaker"), "approved").outcome == Outcome.FORBIDDEN


def test_status_values_are_exact() -> None:
    assert decide_status_change(_who("organizer"), "Approved").outcome == Outcome.INVALID_INPUT
