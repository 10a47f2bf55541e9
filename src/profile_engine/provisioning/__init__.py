"""Profile derivation and the event-driven Provisioner."""

from profile_engine.provisioning.derive import (
    DERIVATIONS,
    PROVISIONING_DERIVATION,
    derive_display_name,
    derive_profile,
    derive_role,
    get_derivation,
    register_derivation,
)
from profile_engine.provisioning.provisioner import HOOK_NAME, Provisioner

__all__ = [
    "DERIVATIONS",
    "HOOK_NAME",
    "PROVISIONING_DERIVATION",
    "Provisioner",
    "derive_display_name",
    "derive_profile",
    "derive_role",
    "get_derivation",
    "register_derivation",
]
