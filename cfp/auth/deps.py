from __future__ import annotations

from typing import Optional

from fastapi import Request

from cfp.auth.models import Identity
from cfp.auth.tokens import TokenVerifier

LEGACY_TOKEN_HEADER = "x-auth-token"


def extract_token(request: Request) -> Optional[str]:
    """
    Pull a bearer token from the request.

    `Authorization: Bearer <token>` wins; the legacy `x-auth-token` header is still
    honoured for older clients.
    """
    authz = (request.headers.get("authorization") or "").strip()
    if authz:
        scheme, _, value = authz.partition(" ")
        if scheme.lower() == "bearer" and value.strip():
            return value.strip()
    legacy = (request.headers.get(LEGACY_TOKEN_HEADER) or "").strip()
    return legacy or None


def authenticate_request(request: Request, verifier: TokenVerifier) -> Identity:
    """
    Authenticate a request and return its Identity.

    Raises MissingCredential / InvalidCredential; never returns None.
    """
    return verifier.verify(extract_token(request))
