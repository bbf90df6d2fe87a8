from __future__ import annotations

import pytest

from cfp.core.models import Talk, TalkStatus, User
from cfp.errors import StaleWriteError
from cfp.storage.base import DuplicateEmailError, TalkFilter
from cfp.storage.memory_store import MemoryTalkStore, MemoryUserStore


def _talk(title: str, owner: str = "s1") -> Talk:
    return Talk(title=title, abstract="abs", speaker_id=owner)


def test_save_assigns_id_version_and_timestamps() -> None:
    store = MemoryTalkStore()
    t = store.save(_talk("a"))
    assert t.id and t.version == 1
    assert t.created_at == t.updated_at


def test_update_keeps_insertion_slot_and_created_at() -> None:
    store = MemoryTalkStore()
    a = store.save(_talk("a"))
    store.save(_talk("b"))
    a2 = store.save(a.model_copy(update={"title": "a-edited"}))

    assert a2.version == 2
    assert a2.created_at == a.created_at
    assert [t.title for t in store.find_by_filter(TalkFilter())] == ["a-edited", "b"]


def test_stale_version_is_rejected() -> None:
    store = MemoryTalkStore()
    a = store.save(_talk("a"))
    store.save(a.model_copy(update={"title": "first"}))
    with pytest.raises(StaleWriteError):
        store.save(a.model_copy(update={"title": "second"}))
    assert store.find_by_id(a.id).title == "first"


def test_filter_by_owner_and_status() -> None:
    store = MemoryTalkStore()
    a = store.save(_talk("a", "s1"))
    store.save(_talk("b", "s2"))
    store.save(a.model_copy(update={"status": TalkStatus.APPROVED}))

    assert [t.title for t in store.find_by_filter(TalkFilter(speaker_id="s2"))] == ["b"]
    assert [t.title for t in store.find_by_filter(TalkFilter(status=TalkStatus.APPROVED))] == ["a"]
    assert list(store.find_by_filter(TalkFilter(speaker_id="s2", status=TalkStatus.APPROVED))) == []


def test_delete_with_expected_version() -> None:
    store = MemoryTalkStore()
    a = store.save(_talk("a"))
    with pytest.raises(StaleWriteError):
        store.delete(a.id, expected_version=a.version + 1)
    store.delete(a.id, expected_version=a.version)
    assert store.find_by_id(a.id) is None
    # Unconditional delete of a missing id is a no-op.
    store.delete(a.id)


def test_user_store_emails_are_case_insensitive() -> None:
    users = MemoryUserStore()
    u = users.add(User(email="Ada@Example.com", name="Ada", password_hash="x"))
    assert u.email == "ada@example.com"
    assert users.find_by_email("ADA@example.COM").id == u.id
    assert users.find_by_id(u.id).name == "Ada"
    with pytest.raises(DuplicateEmailError):
        users.add(User(email="ada@example.com", name="Other", password_hash="y"))


def test_returned_talks_are_detached_from_the_store() -> None:
    store = MemoryTalkStore()
    saved = store.save(_talk("a"))
    saved.title = "changed-after-save"

    fetched = store.find_by_id(saved.id)
    fetched.title = "changed-after-read"
    listed = next(store.find_by_filter(TalkFilter()))
    listed.status = TalkStatus.APPROVED

    current = store.find_by_id(saved.id)
    assert current.title == "a"
    assert current.status == TalkStatus.PENDING
    assert current.version == 1


def test_returned_users_are_detached_from_the_store() -> None:
    users = MemoryUserStore()
    u = users.add(User(email="ada@example.com", name="Ada", password_hash="x"))
    users.find_by_email("ada@example.com").role = "organizer"
    u.role = "organizer"
    assert users.find_by_id(u.id).role == "attendee"
