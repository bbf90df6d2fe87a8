"""Typed failures shared by the credential verifier, the talk authority and the stores.

Every failure carries a stable `kind` string so transports can map it without
inspecting the class hierarchy. Only `Unavailable` is worth retrying.
"""

from __future__ import annotations


class TalkServiceError(Exception):
    kind: str = "error"
    retryable: bool = False

    def __init__(self, message: str = "") -> None:
        self.message = message or self.kind
        super().__init__(self.message)


class AuthError(TalkServiceError):
    """Caller is not authenticated (distinct from being denied)."""

    kind = "auth_error"


class MissingCredential(AuthError):
    kind = "missing_credential"

    def __init__(self, message: str = "No token, authorization denied") -> None:
        super().__init__(message)


class InvalidCredential(AuthError):
    kind = "invalid_credential"

    def __init__(self, message: str = "Token is not valid") -> None:
        super().__init__(message)


class Forbidden(TalkServiceError):
    kind = "forbidden"


class NotFound(TalkServiceError):
    kind = "not_found"


class Conflict(TalkServiceError):
    kind = "conflict"


class InvalidInput(TalkServiceError):
    kind = "invalid_input"


class Unavailable(TalkServiceError):
    kind = "unavailable"
    retryable = True


class StaleWriteError(Exception):
    """Raised by a store when a compare-and-swap write finds a newer version."""

    def __init__(self, entity_id: str, expected_version: int) -> None:
        self.entity_id = entity_id
        self.expected_version = expected_version
        super().__init__(f"stale write for {entity_id} (expected version {expected_version})")
