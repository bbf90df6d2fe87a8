from __future__ import annotations

import pytest

from cfp.auth.config import AuthConfig
from cfp.auth.local import AccountService, hash_password, verify_password
from cfp.auth.tokens import TokenIssuer, TokenVerifier
from cfp.errors import Conflict, Forbidden, InvalidCredential, InvalidInput, NotFound
from cfp.storage.memory_store import MemoryUserStore

SECRET = "accounts-test-signing-key-0123456789"


def _cfg(signup_roles=("attendee", "speaker")) -> AuthConfig:
    return AuthConfig(
        token_secret=SECRET,
        token_algorithm="HS256",
        token_ttl_seconds=3600,
        token_leeway_seconds=0,
        signup_roles=list(signup_roles),
        bcrypt_rounds=4,
    )


@pytest.fixture
def accounts() -> AccountService:
    return AccountService(MemoryUserStore(), TokenIssuer(SECRET), _cfg())


def test_password_hash_round_trip() -> None:
    h = hash_password("hunter22", rounds=4)
    assert h != "hunter22"
    assert verify_password("hunter22", h)
    assert not verify_password("hunter23", h)
    assert not verify_password("hunter22", "not-a-bcrypt-hash")


def test_signup_then_login_issues_verifiable_token(accounts: AccountService) -> None:
    user = accounts.signup(name="Ada", email="Ada@Example.com", password="secret1", role="speaker")
    assert user.role == "speaker"
    assert user.password_hash != "secret1"

    token = accounts.login(email="ada@example.com", password="secret1")
    who = TokenVerifier(SECRET).verify(token)
    assert who.subject_id == user.id
    assert who.email == "ada@example.com"
    assert who.role == "speaker"


def test_signup_defaults_to_attendee(accounts: AccountService) -> None:
    assert accounts.signup(name="Bo", email="bo@example.com", password="secret1").role == "attendee"


@pytest.mark.parametrize(
    "kw",
    [
        {"name": "", "email": "a@example.com", "password": "secret1"},
        {"name": "A", "email": "not-an-email", "password": "secret1"},
        {"name": "A", "email": "a@example.com", "password": "short"},
        {"name": "A", "email": "a@example.com", "password": "secret1", "role": "superuser"},
    ],
)
def test_signup_invalid_input(accounts: AccountService, kw) -> None:
    with pytest.raises(InvalidInput):
        accounts.signup(**kw)


def test_signup_cannot_self_grant_organizer(accounts: AccountService) -> None:
    with pytest.raises(Forbidden):
        accounts.signup(name="Eve", email="eve@example.com", password="secret1", role="organizer")


def test_signup_organizer_when_allowed() -> None:
    svc = AccountService(MemoryUserStore(), TokenIssuer(SECRET), _cfg(("attendee", "speaker", "organizer")))
    assert svc.signup(name="O", email="o@example.com", password="secret1", role="organizer").role == "organizer"


def test_signup_duplicate_email_conflict(accounts: AccountService) -> None:
    accounts.signup(name="Ada", email="ada@example.com", password="secret1")
    with pytest.raises(Conflict):
        accounts.signup(name="Ada2", email="ADA@example.com", password="secret2")


def test_login_failures_do_not_reveal_which_part_was_wrong(accounts: AccountService) -> None:
    accounts.signup(name="Ada", email="ada@example.com", password="secret1")
    with pytest.raises(InvalidCredential) as unknown:
        accounts.login(email="nobody@example.com", password="secret1")
    with pytest.raises(InvalidCredential) as wrong:
        accounts.login(email="ada@example.com", password="nope-nope")
    assert unknown.value.message == wrong.value.message

    with pytest.raises(InvalidInput):
        accounts.login(email="", password="x")


def test_me_returns_account_and_not_found_when_missing(accounts: AccountService) -> None:
    from cfp.auth.models import Identity

    user = accounts.signup(name="Ada", email="ada@example.com", password="secret1")
    who = TokenVerifier(SECRET).verify(accounts.login(email="ada@example.com", password="secret1"))
    assert accounts.me(who).id == user.id
    assert "password_hash" not in accounts.me(who).public_dict()

    with pytest.raises(NotFound):
        accounts.me(Identity(subject_id="ghost", email="g@example.com", role="attendee"))
