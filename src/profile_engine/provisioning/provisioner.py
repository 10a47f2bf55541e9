"""Event-driven provisioning: one profile per newly created identity.

The Provisioner holds no state between calls, so redelivered creation events
and races with the Reconciler resolve at the store's uniqueness constraint.
It is one of the two trusted writers and calls the profile store directly,
never through the access policy.
"""

from __future__ import annotations

import logging

from profile_engine.errors import (
    DuplicateProfileError,
    PermanentStoreError,
    StoreUnavailableError,
    TransientStoreError,
)
from profile_engine.identity.base import IdentityStore
from profile_engine.models.identity import Identity
from profile_engine.models.outcome import ProvisionOutcome, ProvisionResult
from profile_engine.profiles.base import ProfileStore
from profile_engine.provisioning.derive import derive_profile
from profile_engine.storage.sqlite import utcnow

logger = logging.getLogger(__name__)

HOOK_NAME = "on_identity_created"


class Provisioner:
    def __init__(self, profile_store: ProfileStore) -> None:
        self._profiles = profile_store

    async def install(self, identity_store: IdentityStore) -> None:
        """Attach to the creation event and record the hook as installed.

        A hook an operator has disabled stays disabled.
        """
        identity_store.on_create(self.on_identity_created, name=HOOK_NAME)
        await identity_store.install_hook(HOOK_NAME)

    async def on_identity_created(self, identity: Identity) -> ProvisionResult:
        """Create the profile for ``identity`` exactly once.

        Never raises for store failures: the result carries the outcome and
        the identity stays eligible for the next backfill.
        """
        try:
            profile = derive_profile(identity, now=utcnow())
        except ValueError as exc:
            return self._record(identity, ProvisionOutcome.PERMANENT_ERROR, str(exc))
        if profile is None:
            return self._record(identity, ProvisionOutcome.SKIPPED_NO_EMAIL)

        try:
            await self._profiles.insert(profile)
        except DuplicateProfileError:
            return self._record(identity, ProvisionOutcome.DUPLICATE)
        except (TransientStoreError, StoreUnavailableError) as exc:
            return self._record(identity, ProvisionOutcome.TRANSIENT_ERROR, str(exc))
        except PermanentStoreError as exc:
            return self._record(identity, ProvisionOutcome.PERMANENT_ERROR, str(exc))

        return self._record(identity, ProvisionOutcome.CREATED)

    def _record(
        self, identity: Identity, outcome: ProvisionOutcome, detail: str | None = None
    ) -> ProvisionResult:
        extra = {"identity_id": identity.id, "outcome": outcome.value}
        if outcome == ProvisionOutcome.CREATED:
            logger.info("Profile created for identity %s", identity.id, extra=extra)
        elif outcome == ProvisionOutcome.SKIPPED_NO_EMAIL:
            logger.info(
                "Identity %s has no email, skipping profile creation", identity.id, extra=extra
            )
        elif outcome == ProvisionOutcome.DUPLICATE:
            logger.info("Profile already exists for identity %s", identity.id, extra=extra)
        else:
            logger.warning(
                "Error creating profile for identity %s: %s", identity.id, detail, extra=extra
            )
        return ProvisionResult(identity_id=identity.id, outcome=outcome, detail=detail)
