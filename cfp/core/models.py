"""Domain models for talks and accounts.

Design note:
- Drafts and patches are permissive (`extra="allow"`) because callers forward whole
  request bodies; unknown keys such as `speaker_id` are ignored by the authority.
- Content validation (non-empty title, non-negative duration) is NOT done here. It
  lives in the authority so that a draft built by any caller goes through the same
  checks before anything is persisted.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BaseModelAllowExtra(BaseModel):
    model_config = ConfigDict(extra="allow")


class BaseModelStrict(BaseModel):
    model_config = ConfigDict(extra="forbid")


class TalkStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @classmethod
    def parse(cls, value: str) -> Optional["TalkStatus"]:
        try:
            return cls(value)
        except ValueError:
            return None


class Talk(BaseModelStrict):
    id: Optional[str] = None
    title: str
    abstract: str
    speaker_id: str
    status: TalkStatus = TalkStatus.PENDING
    # Any non-negative number (fractional minutes allowed).
    duration_minutes: Union[int, float, None] = None
    notes: Optional[str] = None
    # Bumped by the store on every write; used for compare-and-swap.
    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def _ensure_timezone_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        if isinstance(v, datetime) and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class TalkDraft(BaseModelAllowExtra):
    title: Optional[str] = None
    abstract: Optional[str] = None
    # Left untyped so a non-numeric value reaches the authority as InvalidInput.
    duration_minutes: Any = None
    notes: Optional[str] = None


class TalkPatch(BaseModelAllowExtra):
    title: Optional[str] = None
    abstract: Optional[str] = None
    duration_minutes: Any = None
    notes: Optional[str] = None
    # Raw string on purpose: values outside the enum must reach the authority.
    status: Optional[str] = None


class User(BaseModelStrict):
    id: Optional[str] = None
    email: str
    name: str
    password_hash: str = Field(repr=False)
    role: str = "attendee"
    bio: Optional[str] = None
    created_at: Optional[datetime] = None

    def public_dict(self) -> dict:
        return self.model_dump(mode="json", exclude={"password_hash"})
