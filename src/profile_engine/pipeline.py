"""Wiring of storage, stores, provisioning, policy and verification.

``open_engine`` is the one place that decides which components talk to the
profile store directly (Provisioner, Reconciler) and which go through the
access policy (ProfileService).
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from profile_engine.config import Settings, get_settings
from profile_engine.identity.local import LocalIdentityStore
from profile_engine.policy.enforcer import AccessPolicyEnforcer
from profile_engine.profiles.sqlite import SqliteProfileStore
from profile_engine.provisioning.provisioner import Provisioner
from profile_engine.reconciler.backfill import Reconciler
from profile_engine.service import ProfileService
from profile_engine.storage.sqlite import StorageEngine
from profile_engine.verify.checks import Verifier


@dataclass
class ProfileEngine:
    storage: StorageEngine
    identities: LocalIdentityStore
    profiles: SqliteProfileStore
    provisioner: Provisioner
    reconciler: Reconciler
    enforcer: AccessPolicyEnforcer
    service: ProfileService
    verifier: Verifier


def build_engine(storage: StorageEngine, settings: Settings) -> ProfileEngine:
    """Assemble every component over an already-constructed storage engine."""
    identities = LocalIdentityStore(storage)
    profiles = SqliteProfileStore(storage)
    enforcer = AccessPolicyEnforcer()
    return ProfileEngine(
        storage=storage,
        identities=identities,
        profiles=profiles,
        provisioner=Provisioner(profiles),
        reconciler=Reconciler(
            identities,
            profiles,
            batch_size=settings.backfill_batch_size,
            concurrency=settings.backfill_concurrency,
        ),
        enforcer=enforcer,
        service=ProfileService(profiles, enforcer),
        verifier=Verifier(identities, profiles, enforcer),
    )


@asynccontextmanager
async def open_engine(
    settings: Settings | None = None, *, install_hook: bool = True
) -> AsyncIterator[ProfileEngine]:
    """Open storage, install the provisioning hook, and close on exit.

    Outstanding hook tasks are drained before the connection closes.
    """
    settings = settings or get_settings()
    storage = StorageEngine(settings.db_path, timeout=settings.store_timeout)
    await storage.initialize()
    engine = build_engine(storage, settings)
    if install_hook:
        await engine.provisioner.install(engine.identities)
    try:
        yield engine
    finally:
        try:
            await engine.identities.drain()
        finally:
            await storage.close()
