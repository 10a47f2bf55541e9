"""Batch repair of drift between the identity store and the profile store.

Finds identities without a profile, oldest first, and creates the missing
profiles with the same derivation the Provisioner uses. Each identity is
handled on its own: one bad row never stops the batch. Safe to run while the
Provisioner is active and while another backfill is running.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from profile_engine.errors import (
    DuplicateProfileError,
    PermanentStoreError,
    StoreUnavailableError,
    TransientStoreError,
)
from profile_engine.identity.base import IdentityStore
from profile_engine.models.identity import Identity
from profile_engine.models.outcome import BackfillResult, ProvisionOutcome
from profile_engine.profiles.base import ProfileStore
from profile_engine.provisioning.derive import derive_profile
from profile_engine.storage.sqlite import utcnow

logger = logging.getLogger(__name__)


class Reconciler:
    def __init__(
        self,
        identity_store: IdentityStore,
        profile_store: ProfileStore,
        *,
        batch_size: int = 100,
        concurrency: int = 1,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._identities = identity_store
        self._profiles = profile_store
        self.batch_size = batch_size
        self.concurrency = concurrency

    async def backfill_missing_profiles(
        self, *, after: datetime | None = None, limit: int | None = None
    ) -> BackfillResult:
        """Create a profile for every identity still lacking one.

        Raises StoreUnavailableError only when a store cannot be reached at
        all; every per-row failure is counted in ``errors`` instead.
        """
        await self._identities.ping()
        await self._profiles.ping()

        result = BackfillResult()
        if limit is not None and limit <= 0:
            return result
        semaphore = asyncio.Semaphore(self.concurrency)
        batch: list[Identity] = []

        async for identity in self._identities.list_without_profile(
            after, batch_size=self.batch_size
        ):
            batch.append(identity)
            if limit is not None and result.total + len(batch) >= limit:
                break
            if len(batch) >= self.batch_size:
                await self._process_batch(batch, semaphore, result)
                batch = []

        if batch:
            await self._process_batch(batch, semaphore, result)

        logger.info(
            "Backfill finished: %d created, %d errors, %d skipped, %d duplicates",
            result.created,
            result.errors,
            result.skipped,
            result.duplicates,
            extra={"created": result.created, "errors": result.errors},
        )
        return result

    async def _process_batch(
        self,
        batch: list[Identity],
        semaphore: asyncio.Semaphore,
        result: BackfillResult,
    ) -> None:
        async def _one(identity: Identity) -> ProvisionOutcome:
            async with semaphore:
                return await self._backfill_one(identity)

        outcomes = await asyncio.gather(*(_one(identity) for identity in batch))
        for outcome in outcomes:
            result.record(outcome)

    async def _backfill_one(self, identity: Identity) -> ProvisionOutcome:
        extra = {"identity_id": identity.id}
        try:
            profile = derive_profile(identity, now=utcnow(), created_at=identity.created_at)
        except ValueError as exc:
            logger.warning(
                "Cannot derive profile for identity %s: %s", identity.id, exc, extra=extra
            )
            return ProvisionOutcome.PERMANENT_ERROR
        if profile is None:
            logger.debug("Identity %s has no email, deferring", identity.id, extra=extra)
            return ProvisionOutcome.SKIPPED_NO_EMAIL

        try:
            await self._profiles.insert(profile)
        except DuplicateProfileError:
            logger.debug("Profile for identity %s appeared concurrently", identity.id, extra=extra)
            return ProvisionOutcome.DUPLICATE
        except StoreUnavailableError:
            raise
        except TransientStoreError as exc:
            logger.warning(
                "Transient error backfilling identity %s: %s", identity.id, exc, extra=extra
            )
            return ProvisionOutcome.TRANSIENT_ERROR
        except PermanentStoreError as exc:
            logger.warning("Error backfilling identity %s: %s", identity.id, exc, extra=extra)
            return ProvisionOutcome.PERMANENT_ERROR

        logger.info("Backfilled profile for identity %s", identity.id, extra=extra)
        return ProvisionOutcome.CREATED
