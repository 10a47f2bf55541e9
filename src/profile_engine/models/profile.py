"""Profile records derived from identities and owned by this package."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, field_validator


class Role(StrEnum):
    PARENT = "parent"
    TEACHER = "teacher"
    SPECIALIST = "specialist"
    ADMIN = "admin"


DEFAULT_ROLE = Role.PARENT


def coerce_role(value: Any) -> Role:
    """Map arbitrary input onto the closed role set.

    Exact member values pass through; anything else (missing, unknown,
    differently cased, non-string) becomes DEFAULT_ROLE. Never raises.
    """
    if isinstance(value, Role):
        return value
    if isinstance(value, str):
        try:
            return Role(value)
        except ValueError:
            pass
    return DEFAULT_ROLE


def _require_display_name(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("display_name must not be empty")
    return value


class Profile(BaseModel):
    """Application-level record for one identity. ``id`` is the identity id."""

    id: str
    email: str | None = None
    display_name: str
    role: Role = DEFAULT_ROLE
    is_active: bool = True
    created_at: datetime
    updated_at: datetime

    @field_validator("display_name")
    @classmethod
    def _display_name_not_blank(cls, value: str) -> str:
        return _require_display_name(value)

    @field_validator("role", mode="before")
    @classmethod
    def _coerce_role(cls, value: Any) -> Role:
        return coerce_role(value)


class ProfileUpdate(BaseModel):
    """Partial update requested by an external caller.

    ``id`` is accepted only so the access policy can refuse an attempt to
    reassign the profile to another identity.
    """

    id: str | None = None
    display_name: str | None = None
    role: Role | None = None
    is_active: bool | None = None

    @field_validator("display_name")
    @classmethod
    def _display_name_not_blank(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _require_display_name(value)

    @field_validator("role", mode="before")
    @classmethod
    def _coerce_role(cls, value: Any) -> Role | None:
        if value is None:
            return None
        return coerce_role(value)

    def fields(self) -> dict[str, Any]:
        """Mutable columns that were actually supplied."""
        return self.model_dump(exclude_none=True, exclude={"id"})

    def apply_to(self, profile: Profile) -> Profile:
        """The row as it would look after this update, before persisting."""
        changes = self.fields()
        if self.id is not None:
            changes["id"] = self.id
        return profile.model_copy(update=changes)
