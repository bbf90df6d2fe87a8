"""
Authentication configuration for the talk review API.

Design goals:
- Stateless bearer tokens (HMAC-signed JWT); no server-side session store.
- The signing key is read once and then treated as immutable process state.
- Self-signup cannot grant privileged roles unless explicitly allowed.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional

DEFAULT_SIGNUP_ROLES = ["attendee", "speaker"]


@dataclass(frozen=True)
class AuthConfig:
    # Token signing
    token_secret: Optional[str]  # Required to issue/verify tokens
    token_algorithm: str
    token_ttl_seconds: int
    token_leeway_seconds: int

    # Accounts
    signup_roles: List[str]  # Roles a user may pick for themselves at signup
    bcrypt_rounds: int

    @property
    def signing_enabled(self) -> bool:
        return bool(self.token_secret)


def _parse_csv(value: str) -> List[str]:
    items = [x.strip().lower() for x in (value or "").split(",")]
    return [x for x in items if x]


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(float(raw))
    except ValueError:
        return default


@lru_cache(maxsize=1)
def load_auth_config() -> AuthConfig:
    """
    Load authentication configuration from environment variables.

    AUTH_TOKEN_SECRET is preferred; JWT_SECRET is accepted for deployments that
    already export the legacy name.
    """
    secret = (os.getenv("AUTH_TOKEN_SECRET", "") or "").strip() or (os.getenv("JWT_SECRET", "") or "").strip()

    ttl = _env_int("AUTH_TOKEN_TTL_SECONDS", 3600)  # 1h default
    if ttl <= 60:
        ttl = 60

    signup_roles = _parse_csv(os.getenv("AUTH_SIGNUP_ROLES", "")) or list(DEFAULT_SIGNUP_ROLES)

    return AuthConfig(
        token_secret=secret or None,
        token_algorithm=(os.getenv("AUTH_TOKEN_ALGORITHM", "") or "HS256").strip(),
        token_ttl_seconds=ttl,
        token_leeway_seconds=max(0, _env_int("AUTH_TOKEN_LEEWAY_SECONDS", 0)),
        signup_roles=signup_roles,
        bcrypt_rounds=max(4, min(_env_int("AUTH_BCRYPT_ROUNDS", 12), 16)),
    )
