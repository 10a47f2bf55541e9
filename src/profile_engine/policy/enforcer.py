"""Access policy evaluation for externally triggered profile operations.

The Provisioner and Reconciler write the profile store directly and never
come through here. Every other entry point must call ``check`` (or
``evaluate``) explicitly before touching a profile.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from profile_engine.errors import AccessDeniedError
from profile_engine.models.identity import Actor
from profile_engine.models.profile import Profile
from profile_engine.policy.rules import PROFILE_POLICIES, Decision, Operation, Policy

logger = logging.getLogger(__name__)


class AccessPolicyEnforcer:
    def __init__(self, policies: Iterable[Policy] = PROFILE_POLICIES) -> None:
        self._policies: tuple[Policy, ...] = tuple(policies)

    def active_policies(self, table: str = "profiles") -> list[Policy]:
        return [policy for policy in self._policies if policy.table == table]

    @property
    def policy_count(self) -> int:
        return len(self.active_policies())

    def evaluate(
        self,
        actor: Actor | None,
        operation: Operation | str,
        target: Profile,
        *,
        new_row: Profile | None = None,
    ) -> Decision:
        """Decide whether ``actor`` may perform ``operation`` on ``target``.

        Unauthenticated actors and operations without a matching policy are
        denied. For updates, ``new_row`` is the row as it would be stored.
        """
        if actor is None:
            return Decision.DENY
        try:
            operation = Operation(operation)
        except ValueError:
            return Decision.DENY

        for policy in self._policies:
            if policy.operation != operation:
                continue
            if policy.permits(actor, target, new_row):
                return Decision.ALLOW
        return Decision.DENY

    def evaluate_key(
        self, actor: Actor | None, operation: Operation | str, target_id: str
    ) -> Decision:
        """Decide from the row key alone whether the row is within the actor's reach.

        Allowing here is necessary but not sufficient: ``evaluate`` still runs
        on the fetched row.
        """
        if actor is None:
            return Decision.DENY
        try:
            operation = Operation(operation)
        except ValueError:
            return Decision.DENY

        for policy in self._policies:
            if policy.operation == operation and policy.may_reach(actor, target_id):
                return Decision.ALLOW
        return Decision.DENY

    def check(
        self,
        actor: Actor | None,
        operation: Operation | str,
        target: Profile,
        *,
        new_row: Profile | None = None,
    ) -> None:
        """Raise AccessDeniedError unless the operation is allowed."""
        if self.evaluate(actor, operation, target, new_row=new_row) == Decision.DENY:
            self._deny(actor, operation, target.id)

    def check_key(self, actor: Actor | None, operation: Operation | str, target_id: str) -> None:
        """Raise AccessDeniedError unless ``target_id`` is within the actor's reach."""
        if self.evaluate_key(actor, operation, target_id) == Decision.DENY:
            self._deny(actor, operation, target_id)

    def _deny(self, actor: Actor | None, operation: Operation | str, target_id: str) -> None:
        actor_id = actor.id if actor else None
        logger.info(
            "Denied %s on profile %s for %s",
            operation,
            target_id,
            actor_id or "anonymous",
            extra={"identity_id": actor_id, "target_id": target_id},
        )
        raise AccessDeniedError(actor_id, str(operation), target_id)
