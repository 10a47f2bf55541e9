"""SQLite-backed profile store."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from profile_engine.errors import ProfileNotFoundError
from profile_engine.models.profile import Profile
from profile_engine.profiles.base import ProfileStore
from profile_engine.storage.sqlite import StorageEngine, to_timestamp, utcnow

_UPDATABLE = frozenset({"display_name", "role", "is_active"})


def _row_to_profile(row: dict) -> Profile:
    return Profile(
        id=row["id"],
        email=row["email"],
        display_name=row["display_name"],
        role=row["role"],
        is_active=bool(row["is_active"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


class SqliteProfileStore(ProfileStore):
    def __init__(self, storage: StorageEngine) -> None:
        self._storage = storage

    async def insert(self, profile: Profile) -> None:
        # Plain INSERT: the primary key detects a concurrent or repeated
        # provisioning attempt atomically.
        await self._storage.execute(
            """INSERT INTO profiles
               (id, email, display_name, role, is_active, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                profile.id,
                profile.email,
                profile.display_name,
                profile.role.value,
                int(profile.is_active),
                to_timestamp(profile.created_at),
                to_timestamp(profile.updated_at),
            ),
            conflict_id=profile.id,
        )

    async def get_by_id(self, profile_id: str) -> Profile:
        row = await self._storage.fetchone("SELECT * FROM profiles WHERE id = ?", (profile_id,))
        if row is None:
            raise ProfileNotFoundError(profile_id)
        return _row_to_profile(row)

    async def update(self, profile_id: str, fields: dict[str, Any]) -> Profile:
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"Not updatable: {', '.join(sorted(unknown))}")

        updates: list[str] = ["updated_at = ?"]
        params: list = [to_timestamp(utcnow())]
        for column in sorted(fields):
            value = fields[column]
            if column == "role":
                value = str(value)
            elif column == "is_active":
                value = int(value)
            updates.append(f"{column} = ?")
            params.append(value)
        params.append(profile_id)

        cursor = await self._storage.execute(
            f"UPDATE profiles SET {', '.join(updates)} WHERE id = ?",
            params,
        )
        if cursor.rowcount == 0:
            raise ProfileNotFoundError(profile_id)
        return await self.get_by_id(profile_id)

    async def count(self) -> int:
        row = await self._storage.fetchone("SELECT COUNT(*) AS n FROM profiles")
        return row["n"] if row else 0

    async def ping(self) -> None:
        await self._storage.ping()
