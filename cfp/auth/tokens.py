from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

import jwt  # PyJWT

from cfp.auth.config import AuthConfig
from cfp.auth.models import Identity
from cfp.errors import InvalidCredential, MissingCredential

# `none` is never accepted, whatever the config says.
_HMAC_ALGORITHMS = ("HS256", "HS384", "HS512")


def _check_algorithm(algorithm: str) -> str:
    alg = (algorithm or "").strip().upper()
    if alg not in _HMAC_ALGORITHMS:
        raise ValueError(f"Unsupported token algorithm: {algorithm!r}")
    return alg


class TokenIssuer:
    """Signs `{sub, email, role}` claims with an expiry."""

    def __init__(self, secret: str, *, algorithm: str = "HS256", ttl_seconds: int = 3600) -> None:
        if not secret:
            raise ValueError("token secret is required")
        self._secret = secret
        self._algorithm = _check_algorithm(algorithm)
        self._ttl_seconds = int(ttl_seconds)

    def issue(self, identity: Identity, *, now: Optional[float] = None, ttl_seconds: Optional[int] = None) -> str:
        iat = int(now if now is not None else time.time())
        ttl = self._ttl_seconds if ttl_seconds is None else int(ttl_seconds)
        payload: Dict[str, Any] = {
            "sub": identity.subject_id,
            "email": identity.email,
            "role": identity.role,
            "iat": iat,
            "exp": iat + ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)


class TokenVerifier:
    """
    Stateless bearer-token verifier.

    The key is injected once at construction and never changes afterwards.
    No database lookup is made: the claims are trusted as of issuance.
    """

    def __init__(self, secret: str, *, algorithm: str = "HS256", leeway_seconds: int = 0) -> None:
        if not secret:
            raise ValueError("token secret is required")
        self._secret = secret
        self._algorithms: List[str] = [_check_algorithm(algorithm)]
        self._leeway = max(0, int(leeway_seconds))

    def verify(self, token: Optional[str]) -> Identity:
        """
        Decode and validate a token.

        Raises:
            MissingCredential: no token presented
            InvalidCredential: bad signature, undecodable, expired, or missing claims
        """
        raw = (token or "").strip()
        if not raw:
            raise MissingCredential()

        try:
            claims = jwt.decode(
                raw,
                key=self._secret,
                algorithms=self._algorithms,
                leeway=self._leeway,
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise InvalidCredential("Token has expired") from None
        except jwt.InvalidTokenError:
            raise InvalidCredential() from None

        if not isinstance(claims, dict):
            raise InvalidCredential()

        subject_id = claims.get("sub")
        email = claims.get("email")
        role = claims.get("role")
        if not isinstance(subject_id, str) or not subject_id:
            raise InvalidCredential("Token is missing the subject claim")
        if not isinstance(email, str) or not email:
            raise InvalidCredential("Token is missing the email claim")
        if not isinstance(role, str) or not role:
            raise InvalidCredential("Token is missing the role claim")

        return Identity(subject_id=subject_id, email=email, role=role)


def build_issuer(cfg: AuthConfig) -> TokenIssuer:
    if not cfg.token_secret:
        raise RuntimeError("Token signing is not configured (AUTH_TOKEN_SECRET)")
    return TokenIssuer(cfg.token_secret, algorithm=cfg.token_algorithm, ttl_seconds=cfg.token_ttl_seconds)


def build_verifier(cfg: AuthConfig) -> TokenVerifier:
    if not cfg.token_secret:
        raise RuntimeError("Token signing is not configured (AUTH_TOKEN_SECRET)")
    return TokenVerifier(cfg.token_secret, algorithm=cfg.token_algorithm, leeway_seconds=cfg.token_leeway_seconds)
