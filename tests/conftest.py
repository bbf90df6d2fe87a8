"""
Pytest config.

Local imports like `import cfp` rely on the repo root being on sys.path; when a global
`pytest` entrypoint is used that doesn't happen reliably during collection, so we pin
it here.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()

TEST_SECRET = "test-secret-key-for-testing-purposes-only"


def _clear_caches() -> None:
    from cfp.api.services import get_services
    from cfp.auth.config import load_auth_config
    from cfp.storage.config import load_store_config

    load_auth_config.cache_clear()
    load_store_config.cache_clear()
    get_services.cache_clear()


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch: pytest.MonkeyPatch):
    """
    Every test starts from a memory backend and a known signing key.

    Config loaders and the service graph are lru-cached process state, so they are
    cleared before and after each test.
    """
    monkeypatch.setenv("AUTH_TOKEN_SECRET", TEST_SECRET)
    monkeypatch.setenv("STORE_BACKEND", "memory")
    monkeypatch.setenv("AUTH_BCRYPT_ROUNDS", "4")
    monkeypatch.delenv("JWT_SECRET", raising=False)
    monkeypatch.delenv("AUTH_SIGNUP_ROLES", raising=False)
    monkeypatch.delenv("DB_AUTO_MIGRATE", raising=False)
    _clear_caches()
    yield
    _clear_caches()


@pytest.fixture
def speaker():
    from cfp.auth.models import Identity

    return Identity(subject_id="spk-1", email="speaker@example.com", role="speaker")


@pytest.fixture
def other_speaker():
    from cfp.auth.models import Identity

    return Identity(subject_id="spk-2", email="other@example.com", role="speaker")


@pytest.fixture
def organizer():
    from cfp.auth.models import Identity

    return Identity(subject_id="org-1", email="organizer@example.com", role="organizer")


@pytest.fixture
def attendee():
    from cfp.auth.models import Identity

    return Identity(subject_id="att-1", email="attendee@example.com", role="attendee")


@pytest.fixture
def talk_store():
    from cfp.storage.memory_store import MemoryTalkStore

    return MemoryTalkStore()


@pytest.fixture
def authority(talk_store):
    from cfp.talks.authority import TalkAuthority

    return TalkAuthority(talk_store)
