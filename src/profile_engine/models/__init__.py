"""Identity, profile, outcome, and report models."""

from profile_engine.models.identity import Actor, Identity
from profile_engine.models.outcome import BackfillResult, ProvisionOutcome, ProvisionResult
from profile_engine.models.profile import (
    DEFAULT_ROLE,
    Profile,
    ProfileUpdate,
    Role,
    coerce_role,
)
from profile_engine.models.report import CheckStatus, HealthCheck, HealthReport

__all__ = [
    "DEFAULT_ROLE",
    "Actor",
    "BackfillResult",
    "CheckStatus",
    "HealthCheck",
    "HealthReport",
    "Identity",
    "Profile",
    "ProfileUpdate",
    "ProvisionOutcome",
    "ProvisionResult",
    "Role",
    "coerce_role",
]
