"""Declarative row-level access rules for the profiles table.

Each Policy mirrors a database row-level security policy: ``using`` decides
whether the actor may touch the existing row, ``with_check`` whether the
row it would leave behind is acceptable. Ownership is the only predicate.

``reach`` is the same ownership test applied to the row key alone. It runs
before the row is fetched, so a row the actor may not see is never read and
looks the same as a row that does not exist.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from profile_engine.models.identity import Actor
from profile_engine.models.profile import Profile


class Operation(StrEnum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class Decision(StrEnum):
    ALLOW = "allow"
    DENY = "deny"


RowPredicate = Callable[[Actor, Profile], bool]
KeyPredicate = Callable[[Actor, str], bool]


def _always(actor: Actor, row: Profile) -> bool:
    return True


def _owns(actor: Actor, row: Profile) -> bool:
    return actor.id == row.id


def _owns_key(actor: Actor, target_id: str) -> bool:
    return actor.id == target_id


@dataclass(frozen=True)
class Policy:
    name: str
    operation: Operation
    using: RowPredicate
    with_check: RowPredicate | None = None
    reach: KeyPredicate | None = None
    table: str = "profiles"

    def may_reach(self, actor: Actor, target_id: str) -> bool:
        return self.reach is None or self.reach(actor, target_id)

    def permits(self, actor: Actor, target: Profile, new_row: Profile | None = None) -> bool:
        if not self.using(actor, target):
            return False
        if self.with_check is not None:
            return self.with_check(actor, new_row if new_row is not None else target)
        return True


# Create is open to any authenticated actor: the trusted writers are the
# only legitimate creators and duplicate rows are rejected by the store.
PROFILE_POLICIES: tuple[Policy, ...] = (
    Policy(
        name="Enable insert for authenticated users",
        operation=Operation.CREATE,
        using=_always,
    ),
    Policy(
        name="Enable select for users based on user_id",
        operation=Operation.READ,
        using=_owns,
        reach=_owns_key,
    ),
    Policy(
        name="Enable update for users based on user_id",
        operation=Operation.UPDATE,
        using=_owns,
        with_check=_owns,
        reach=_owns_key,
    ),
)
