"""Profile store interface.

Insert must be a single atomic operation that detects an existing profile
for the same identity; callers rely on DuplicateProfileError instead of
checking first.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from profile_engine.models.profile import Profile


class ProfileStore(ABC):
    @abstractmethod
    async def insert(self, profile: Profile) -> None:
        """Create the profile, or raise DuplicateProfileError if one exists."""

    @abstractmethod
    async def get_by_id(self, profile_id: str) -> Profile:
        """Return the profile or raise ProfileNotFoundError."""

    @abstractmethod
    async def update(self, profile_id: str, fields: dict[str, Any]) -> Profile:
        """Apply ``fields`` and advance ``updated_at``. Raises ProfileNotFoundError."""

    @abstractmethod
    async def count(self) -> int: ...

    @abstractmethod
    async def ping(self) -> None:
        """Raise StoreUnavailableError if the store cannot be reached."""
