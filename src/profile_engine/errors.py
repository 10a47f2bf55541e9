"""Error taxonomy for provisioning, reconciliation, and access control.

Store adapters translate driver exceptions into these types so that the
Provisioner and Reconciler can decide what is fatal and what is per-row.
"""

from __future__ import annotations


class ProfileEngineError(Exception):
    """Base class for all profile engine errors."""


class StoreError(ProfileEngineError):
    """A store call failed."""


class TransientStoreError(StoreError):
    """Store temporarily unavailable or timed out. Safe to retry later."""


class PermanentStoreError(StoreError):
    """Data rejected by the store's own constraints. Retrying will not help."""


class StoreUnavailableError(StoreError):
    """The store cannot be reached at all (no connection or session)."""


class DuplicateProfileError(ProfileEngineError):
    """A profile already exists for this identity.

    Expected outcome of redelivered events and Provisioner/Reconciler races.
    """

    def __init__(self, profile_id: str) -> None:
        super().__init__(f"Profile already exists for identity {profile_id}")
        self.profile_id = profile_id


class ProfileNotFoundError(ProfileEngineError):
    def __init__(self, profile_id: str) -> None:
        super().__init__(f"No profile for identity {profile_id}")
        self.profile_id = profile_id


class IdentityNotFoundError(ProfileEngineError):
    def __init__(self, identity_id: str) -> None:
        super().__init__(f"No identity with id {identity_id}")
        self.identity_id = identity_id


class AccessDeniedError(ProfileEngineError):
    """The access policy denied an externally-triggered operation."""

    def __init__(self, actor_id: str | None, operation: str, target_id: str) -> None:
        who = actor_id or "anonymous"
        super().__init__(f"{who} may not {operation} profile {target_id}")
        self.actor_id = actor_id
        self.operation = operation
        self.target_id = target_id
