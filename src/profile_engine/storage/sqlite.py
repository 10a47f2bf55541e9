"""SQLite persistence for identities and profiles.

Both tables live in one database so the Reconciler's drift scan can be a
single anti-join, the same way the provider's identity table and the
application's profile table share one Postgres instance in production.

The connection runs in autocommit mode: every write is a single statement
that either lands or does not, so a call abandoned on timeout never leaves
an open transaction on the shared connection.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from datetime import UTC, datetime
from pathlib import Path
from typing import TypeVar

import aiosqlite

from profile_engine.errors import (
    DuplicateProfileError,
    PermanentStoreError,
    StoreUnavailableError,
    TransientStoreError,
)
from profile_engine.models.profile import Role

T = TypeVar("T")

_ROLE_VALUES = ", ".join(f"'{role.value}'" for role in Role)

_SCHEMA = f"""
-- Authentication identities (owned by the external provider)
CREATE TABLE IF NOT EXISTS identities (
    id TEXT PRIMARY KEY,
    email TEXT,
    metadata JSON NOT NULL DEFAULT '{{}}',
    created_at TIMESTAMP NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_identities_created_at ON identities (created_at, id);

-- Profiles (one per identity, never deleted here)
CREATE TABLE IF NOT EXISTS profiles (
    id TEXT PRIMARY KEY REFERENCES identities(id),
    email TEXT,
    display_name TEXT NOT NULL CHECK (length(trim(display_name)) > 0),
    role TEXT NOT NULL DEFAULT 'parent' CHECK (role IN ({_ROLE_VALUES})),
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TIMESTAMP NOT NULL,
    updated_at TIMESTAMP NOT NULL
);

-- Creation-event hooks installed on the identities table
CREATE TABLE IF NOT EXISTS hooks (
    name TEXT PRIMARY KEY,
    enabled INTEGER NOT NULL DEFAULT 1
);
"""

_TRANSIENT_MARKERS = ("locked", "busy")
_PROFILE_CONFLICT = "UNIQUE constraint failed: profiles.id"


class StorageEngine:
    """Async SQLite storage shared by the identity and profile store adapters."""

    def __init__(self, db_path: Path, *, timeout: float = 5.0) -> None:
        self.db_path = db_path
        self.timeout = timeout
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open connection and create schema."""
        try:
            self._db = await aiosqlite.connect(
                str(self.db_path), timeout=self.timeout, isolation_level=None
            )
        except aiosqlite.Error as exc:
            raise StoreUnavailableError(f"Cannot open {self.db_path}: {exc}") from exc
        self._db.row_factory = aiosqlite.Row
        await self._db.execute("PRAGMA foreign_keys = ON")
        await self._db.executescript(_SCHEMA)

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def is_open(self) -> bool:
        return self._db is not None

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise StoreUnavailableError("StorageEngine not initialized, call initialize() first")
        return self._db

    async def guard(self, operation: Awaitable[T], *, conflict_id: str | None = None) -> T:
        """Await a store call under the configured timeout, translating driver errors.

        ``conflict_id`` names the profile being inserted; a primary key
        conflict on it becomes DuplicateProfileError.
        """
        try:
            return await asyncio.wait_for(operation, timeout=self.timeout)
        except TimeoutError as exc:
            raise TransientStoreError(f"Store call exceeded {self.timeout}s") from exc
        except aiosqlite.IntegrityError as exc:
            if conflict_id is not None and _PROFILE_CONFLICT in str(exc):
                raise DuplicateProfileError(conflict_id) from exc
            raise PermanentStoreError(str(exc)) from exc
        except aiosqlite.OperationalError as exc:
            message = str(exc).lower()
            if any(marker in message for marker in _TRANSIENT_MARKERS):
                raise TransientStoreError(str(exc)) from exc
            raise PermanentStoreError(str(exc)) from exc
        except ValueError as exc:
            # aiosqlite raises ValueError once its connection has been closed
            if "closed" in str(exc).lower() or "no active connection" in str(exc).lower():
                raise StoreUnavailableError(str(exc)) from exc
            raise
        except aiosqlite.Error as exc:
            raise PermanentStoreError(str(exc)) from exc

    async def execute(
        self, sql: str, params: tuple | list = (), *, conflict_id: str | None = None
    ) -> aiosqlite.Cursor:
        """Execute one write statement; it commits on its own."""
        db = self.db

        async def _write() -> aiosqlite.Cursor:
            return await db.execute(sql, params)

        return await self.guard(_write(), conflict_id=conflict_id)

    async def fetchone(self, sql: str, params: tuple | list = ()) -> dict | None:
        db = self.db

        async def _read() -> dict | None:
            cursor = await db.execute(sql, params)
            row = await cursor.fetchone()
            return dict(row) if row else None

        return await self.guard(_read())

    async def fetchall(self, sql: str, params: tuple | list = ()) -> list[dict]:
        db = self.db

        async def _read() -> list[dict]:
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]

        return await self.guard(_read())

    async def ping(self) -> None:
        """Raise StoreUnavailableError unless a trivial query succeeds."""
        try:
            await self.fetchone("SELECT 1 AS ok")
        except StoreUnavailableError:
            raise
        except (TransientStoreError, PermanentStoreError) as exc:
            raise StoreUnavailableError(str(exc)) from exc


def utcnow() -> datetime:
    return datetime.now(UTC)


def to_timestamp(value: datetime) -> str:
    """Serialize as a UTC ISO-8601 string so that text ordering is time ordering."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()
