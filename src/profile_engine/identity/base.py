"""Pluggable identity store interface.

The identity store is the source of truth for authentication identities.
This package never writes identities through it except in the local
implementation, which stands in for the external provider. Subscribers to
the creation event are delivered at least once.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import datetime
from typing import Any

from profile_engine.errors import StoreError
from profile_engine.models.identity import Identity

logger = logging.getLogger(__name__)

IdentityCallback = Callable[[Identity], Awaitable[Any]]


class IdentityStore(ABC):
    """Abstract interface for reading identities and subscribing to their creation."""

    def __init__(self) -> None:
        self._hooks: dict[str, IdentityCallback] = {}
        self._pending: set[asyncio.Task] = set()

    @abstractmethod
    async def get_by_id(self, identity_id: str) -> Identity:
        """Return the identity or raise IdentityNotFoundError."""

    @abstractmethod
    def list_without_profile(
        self, after: datetime | None = None, *, batch_size: int = 100
    ) -> AsyncIterator[Identity]:
        """Lazily yield identities that have no profile, oldest first.

        Finite and restartable: each call starts a fresh scan, and ``after``
        resumes strictly after the given creation time.
        """

    @abstractmethod
    async def count_without_profile(self) -> int:
        """Number of identities lacking a profile (the drift metric)."""

    @abstractmethod
    async def count_without_profile_or_email(self) -> int:
        """Drifted identities that provisioning defers because they have no email."""

    @abstractmethod
    async def ping(self) -> None:
        """Raise StoreUnavailableError if the store cannot be reached."""

    # ----- Creation event -----

    def on_create(self, callback: IdentityCallback, *, name: str) -> None:
        """Attach ``callback`` in this process under a hook name.

        It only fires while the hook is installed and enabled in the store's
        persisted catalogue (see ``install_hook``).
        """
        self._hooks[name] = callback

    @abstractmethod
    async def hooks(self) -> dict[str, bool]:
        """Installed hook names mapped to whether they currently fire."""

    @abstractmethod
    async def install_hook(self, name: str) -> None:
        """Persist ``name`` as installed; an existing entry keeps its enabled flag."""

    @abstractmethod
    async def remove_hook(self, name: str) -> None:
        """Drop ``name`` from the catalogue; a no-op when it is not installed."""

    @abstractmethod
    async def _set_hook_enabled(self, name: str, enabled: bool) -> bool:
        """Flip the enabled flag, returning False when ``name`` is not installed."""

    async def enable_hook(self, name: str) -> None:
        if not await self._set_hook_enabled(name, True):
            raise KeyError(name)

    async def disable_hook(self, name: str) -> None:
        if not await self._set_hook_enabled(name, False):
            raise KeyError(name)

    async def _dispatch(self, identity: Identity) -> None:
        """Fire every attached hook that is installed and enabled, without waiting."""
        if not self._hooks:
            return
        try:
            catalogue = await self.hooks()
        except StoreError:
            # The identity is already durable; the Reconciler picks it up later.
            logger.exception(
                "Hook catalogue unreadable, creation event for identity %s not delivered",
                identity.id,
                extra={"identity_id": identity.id},
            )
            return
        for name, callback in self._hooks.items():
            if not catalogue.get(name):
                continue
            task = asyncio.create_task(self._run_hook(name, callback, identity))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _run_hook(self, name: str, callback: IdentityCallback, identity: Identity) -> Any:
        try:
            return await callback(identity)
        except Exception:
            # Hook failures never reach the identity-creation path.
            logger.exception(
                "Hook %s failed for identity %s",
                name,
                identity.id,
                extra={"identity_id": identity.id, "hook": name},
            )
            return None

    async def drain(self) -> None:
        """Wait for every hook dispatched so far to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))
