from __future__ import annotations

import logging
import re
from typing import Optional

import bcrypt

from cfp.auth.config import AuthConfig
from cfp.auth.models import Identity, Role
from cfp.auth.tokens import TokenIssuer
from cfp.core.models import User
from cfp.errors import Conflict, Forbidden, InvalidCredential, InvalidInput, NotFound
from cfp.storage.base import DuplicateEmailError, UserStore

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def hash_password(password: str, *, rounds: int = 12) -> str:
    """
    Hash password with bcrypt.

    Args:
        password: Plain text password
        rounds: bcrypt cost factor

    Returns:
        Bcrypt hash string
    """
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash with constant-time comparison.

    An unparseable hash counts as a mismatch.
    """
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def identity_for(user: User) -> Identity:
    return Identity(subject_id=str(user.id), email=user.email, role=user.role)


class AccountService:
    """Self-service signup, password login and profile lookup."""

    def __init__(self, users: UserStore, issuer: TokenIssuer, cfg: AuthConfig) -> None:
        self._users = users
        self._issuer = issuer
        self._cfg = cfg

    def signup(
        self,
        *,
        name: Optional[str],
        email: Optional[str],
        password: Optional[str],
        role: Optional[str] = None,
    ) -> User:
        """
        Register a new account (no token is issued; the client logs in next).

        Raises:
            InvalidInput: missing name, malformed email, short password or unknown role
            Forbidden: role exists but is not open to self-signup
            Conflict: email already registered
        """
        name = (name or "").strip()
        email = (email or "").strip().lower()
        password = password or ""
        role = (role or "").strip().lower() or Role.ATTENDEE.value

        if not name:
            raise InvalidInput("Name is required")
        if not _EMAIL_RE.match(email):
            raise InvalidInput("A valid email is required")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise InvalidInput(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if role not in Role.values():
            raise InvalidInput("Invalid role")
        if role not in self._cfg.signup_roles:
            raise Forbidden(f"Role {role!r} cannot be chosen at signup")

        try:
            user = self._users.add(
                User(
                    email=email,
                    name=name,
                    password_hash=hash_password(password, rounds=self._cfg.bcrypt_rounds),
                    role=role,
                )
            )
        except DuplicateEmailError:
            raise Conflict("User already exists") from None

        logger.info("Registered user %s (role=%s)", user.id, user.role)
        return user

    def login(self, *, email: Optional[str], password: Optional[str]) -> str:
        """Check credentials and return a signed bearer token."""
        email = (email or "").strip().lower()
        if not email or not password:
            raise InvalidInput("Email and password are required")

        user = self._users.find_by_email(email)
        # Same error for unknown email and wrong password.
        if user is None or not verify_password(password, user.password_hash):
            logger.info("Failed login attempt")
            raise InvalidCredential("Invalid credentials")

        return self._issuer.issue(identity_for(user))

    def me(self, identity: Identity) -> User:
        user = self._users.find_by_id(identity.subject_id)
        if user is None:
            raise NotFound("User not found")
        return user
