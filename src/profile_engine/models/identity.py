"""Identity records owned by the external authentication provider."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Identity(BaseModel):
    """An authentication identity. Read-only to this package.

    ``metadata`` is user-supplied and never schema-validated; derivation code
    must treat every key as optional and every value as untrusted.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    email: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    @property
    def has_email(self) -> bool:
        return bool(self.email and self.email.strip())


class Actor(BaseModel):
    """The authenticated identity on whose behalf an external request runs."""

    model_config = ConfigDict(frozen=True)

    id: str
