"""Local identity store backed by SQLite storage.

Stands in for the external authentication provider: identities are created
here, persisted durably, and only then announced to subscribers. The hook
catalogue lives in the same database, so an installed or disabled hook
outlives the process that configured it.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import AsyncIterator
from datetime import datetime
from typing import Any

from profile_engine.errors import IdentityNotFoundError
from profile_engine.identity.base import IdentityStore
from profile_engine.models.identity import Identity
from profile_engine.storage.sqlite import StorageEngine, to_timestamp, utcnow

logger = logging.getLogger(__name__)

_WITHOUT_PROFILE = """
    SELECT i.* FROM identities i
    LEFT JOIN profiles p ON p.id = i.id
    WHERE p.id IS NULL
"""


def _row_to_identity(row: dict) -> Identity:
    metadata = row.get("metadata") or "{}"
    return Identity(
        id=row["id"],
        email=row["email"],
        metadata=json.loads(metadata) if isinstance(metadata, str) else metadata,
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class LocalIdentityStore(IdentityStore):
    """Reads and creates identities in the local SQLite database."""

    def __init__(self, storage: StorageEngine) -> None:
        super().__init__()
        self._storage = storage

    async def create(
        self,
        *,
        email: str | None,
        metadata: dict[str, Any] | None = None,
        identity_id: str | None = None,
        created_at: datetime | None = None,
    ) -> Identity:
        """Persist a new identity, then fire the creation hooks.

        Returns as soon as the identity is durable; hook outcomes never
        affect the return value.
        """
        identity = Identity(
            id=identity_id or str(uuid.uuid4()),
            email=email,
            metadata=metadata or {},
            created_at=created_at or utcnow(),
        )
        await self._storage.execute(
            "INSERT INTO identities (id, email, metadata, created_at) VALUES (?, ?, ?, ?)",
            (
                identity.id,
                identity.email,
                json.dumps(identity.metadata, default=str),
                to_timestamp(identity.created_at),
            ),
        )
        logger.debug("Identity %s created", identity.id, extra={"identity_id": identity.id})
        await self._dispatch(identity)
        return identity

    async def redeliver(self, identity_id: str) -> Identity:
        """Fire the creation event again for an existing identity."""
        identity = await self.get_by_id(identity_id)
        await self._dispatch(identity)
        return identity

    async def get_by_id(self, identity_id: str) -> Identity:
        row = await self._storage.fetchone("SELECT * FROM identities WHERE id = ?", (identity_id,))
        if row is None:
            raise IdentityNotFoundError(identity_id)
        return _row_to_identity(row)

    async def list_without_profile(
        self, after: datetime | None = None, *, batch_size: int = 100
    ) -> AsyncIterator[Identity]:
        last: tuple[str, str] | None = None
        while True:
            query = _WITHOUT_PROFILE
            params: list = []
            if after is not None:
                query += " AND i.created_at > ?"
                params.append(to_timestamp(after))
            if last is not None:
                query += " AND (i.created_at > ? OR (i.created_at = ? AND i.id > ?))"
                params.extend([last[0], last[0], last[1]])
            query += " ORDER BY i.created_at, i.id LIMIT ?"
            params.append(batch_size)

            rows = await self._storage.fetchall(query, params)
            for row in rows:
                yield _row_to_identity(row)
            if len(rows) < batch_size:
                return
            last = (rows[-1]["created_at"], rows[-1]["id"])

    async def count_without_profile(self) -> int:
        row = await self._storage.fetchone(f"SELECT COUNT(*) AS n FROM ({_WITHOUT_PROFILE})")
        return row["n"] if row else 0

    async def count_without_profile_or_email(self) -> int:
        row = await self._storage.fetchone(
            f"SELECT COUNT(*) AS n FROM ({_WITHOUT_PROFILE}) "
            "WHERE email IS NULL OR trim(email) = ''"
        )
        return row["n"] if row else 0

    async def ping(self) -> None:
        await self._storage.ping()

    # ----- Hook catalogue -----

    async def hooks(self) -> dict[str, bool]:
        rows = await self._storage.fetchall("SELECT name, enabled FROM hooks ORDER BY name")
        return {row["name"]: bool(row["enabled"]) for row in rows}

    async def install_hook(self, name: str) -> None:
        await self._storage.execute(
            "INSERT INTO hooks (name, enabled) VALUES (?, 1) ON CONFLICT(name) DO NOTHING",
            (name,),
        )
        logger.debug("Hook %s installed", name, extra={"hook": name})

    async def remove_hook(self, name: str) -> None:
        await self._storage.execute("DELETE FROM hooks WHERE name = ?", (name,))

    async def _set_hook_enabled(self, name: str, enabled: bool) -> bool:
        cursor = await self._storage.execute(
            "UPDATE hooks SET enabled = ? WHERE name = ?", (int(enabled), name)
        )
        return cursor.rowcount > 0
