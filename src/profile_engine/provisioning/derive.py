"""Pure derivation of a profile from an identity.

Shared by the event-driven Provisioner and the batch Reconciler so both
paths produce identical rows. Nothing here performs I/O.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

from profile_engine.models.identity import Identity
from profile_engine.models.profile import Profile, Role, coerce_role

Derivation = Callable[..., Profile | None]

# Registered derivation functions by name. The Verifier reports whether the
# provisioning derivation is present.
DERIVATIONS: dict[str, Derivation] = {}

PROVISIONING_DERIVATION = "handle_new_identity"

_NAME_KEYS = ("full_name", "name")


def register_derivation(name: str) -> Callable[[Derivation], Derivation]:
    def decorator(func: Derivation) -> Derivation:
        DERIVATIONS[name] = func
        return func

    return decorator


def get_derivation(name: str = PROVISIONING_DERIVATION) -> Derivation | None:
    return DERIVATIONS.get(name)


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def derive_display_name(identity: Identity) -> str:
    """First non-blank of full_name, name, then the email's local part.

    Falls back to the whole email and finally the identity id so the result
    is never empty.
    """
    for key in _NAME_KEYS:
        candidate = _text(identity.metadata.get(key))
        if candidate:
            return candidate

    email = _text(identity.email)
    local_part = email.split("@", 1)[0].strip()
    return local_part or email or identity.id


def derive_role(identity: Identity) -> Role:
    return coerce_role(identity.metadata.get("role"))


@register_derivation(PROVISIONING_DERIVATION)
def derive_profile(
    identity: Identity,
    *,
    now: datetime,
    created_at: datetime | None = None,
) -> Profile | None:
    """Build the profile for ``identity``, or None when it has no email.

    ``created_at`` lets the Reconciler date a backfilled profile from the
    identity rather than from the repair run.
    """
    if not identity.has_email:
        return None
    return Profile(
        id=identity.id,
        email=identity.email,
        display_name=derive_display_name(identity),
        role=derive_role(identity),
        is_active=True,
        created_at=created_at or now,
        updated_at=now,
    )
