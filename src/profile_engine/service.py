"""Access-controlled profile operations for external callers.

Reads and updates check the row key against the access policy before the
store is touched, then check the fetched row. Another identity's profile is
denied whether or not it exists, so a denial reveals nothing about the
store.
"""

from __future__ import annotations

from profile_engine.models.identity import Actor
from profile_engine.models.profile import Profile, ProfileUpdate
from profile_engine.policy.enforcer import AccessPolicyEnforcer
from profile_engine.policy.rules import Operation
from profile_engine.profiles.base import ProfileStore


class ProfileService:
    def __init__(self, profile_store: ProfileStore, enforcer: AccessPolicyEnforcer) -> None:
        self._profiles = profile_store
        self._enforcer = enforcer

    async def get_profile(self, actor: Actor | None, profile_id: str) -> Profile:
        self._enforcer.check_key(actor, Operation.READ, profile_id)
        profile = await self._profiles.get_by_id(profile_id)
        self._enforcer.check(actor, Operation.READ, profile)
        return profile

    async def update_profile(
        self, actor: Actor | None, profile_id: str, changes: ProfileUpdate
    ) -> Profile:
        """Apply ``changes`` if the actor owns the profile and keeps it owned.

        A change that would move the profile to another identity id is denied.
        """
        self._enforcer.check_key(actor, Operation.UPDATE, profile_id)
        current = await self._profiles.get_by_id(profile_id)
        self._enforcer.check(actor, Operation.UPDATE, current, new_row=changes.apply_to(current))
        fields = changes.fields()
        if not fields:
            return current
        return await self._profiles.update(profile_id, fields)

    async def create_profile(self, actor: Actor | None, profile: Profile) -> Profile:
        """Insert a profile on behalf of an external caller.

        Allowed for any authenticated actor; an existing profile for the same
        identity surfaces as DuplicateProfileError from the store.
        """
        self._enforcer.check(actor, Operation.CREATE, profile)
        await self._profiles.insert(profile)
        return profile
