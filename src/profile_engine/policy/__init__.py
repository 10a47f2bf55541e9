"""Owner-only access policy for profiles."""

from profile_engine.policy.enforcer import AccessPolicyEnforcer
from profile_engine.policy.rules import PROFILE_POLICIES, Decision, Operation, Policy

__all__ = ["PROFILE_POLICIES", "AccessPolicyEnforcer", "Decision", "Operation", "Policy"]
