"""Read-only health report over the provisioning path.

Four independent checks. A check whose data source fails reports UNKNOWN and
the others still run; only when neither store can be reached does the
report itself fail.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping

from profile_engine.errors import ProfileEngineError, StoreUnavailableError
from profile_engine.identity.base import IdentityStore
from profile_engine.models.report import CheckStatus, HealthCheck, HealthReport
from profile_engine.policy.enforcer import AccessPolicyEnforcer
from profile_engine.profiles.base import ProfileStore
from profile_engine.provisioning.derive import DERIVATIONS, PROVISIONING_DERIVATION, Derivation
from profile_engine.provisioning.provisioner import HOOK_NAME
from profile_engine.storage.sqlite import utcnow

logger = logging.getLogger(__name__)

HOOK_CHECK = "Provisioning Hook"
DERIVATION_CHECK = "Provisioning Function"
POLICY_CHECK = "Access Policies"
DRIFT_CHECK = "Identities without Profile"


class Verifier:
    def __init__(
        self,
        identity_store: IdentityStore,
        profile_store: ProfileStore,
        enforcer: AccessPolicyEnforcer,
        *,
        derivations: Mapping[str, Derivation] = DERIVATIONS,
        hook_name: str = HOOK_NAME,
        derivation_name: str = PROVISIONING_DERIVATION,
    ) -> None:
        self._identities = identity_store
        self._profiles = profile_store
        self._enforcer = enforcer
        self._derivations = derivations
        self._hook_name = hook_name
        self._derivation_name = derivation_name

    async def report(self) -> HealthReport:
        await self._ensure_reachable()
        checks = [
            await self._run(HOOK_CHECK, self._check_hook),
            await self._run(DERIVATION_CHECK, self._check_derivation),
            await self._run(POLICY_CHECK, self._check_policies),
            await self._run(DRIFT_CHECK, self._check_drift),
        ]
        return HealthReport(checks=checks, generated_at=utcnow())

    async def _ensure_reachable(self) -> None:
        failures: list[str] = []
        for label, store in (("identity", self._identities), ("profile", self._profiles)):
            try:
                await store.ping()
            except StoreUnavailableError as exc:
                failures.append(f"{label} store: {exc}")
        if len(failures) == 2:
            raise StoreUnavailableError("; ".join(failures))

    async def _run(
        self, check_name: str, check: Callable[[], Awaitable[HealthCheck]]
    ) -> HealthCheck:
        try:
            return await check()
        except ProfileEngineError as exc:
            logger.warning("Check %r could not be computed: %s", check_name, exc)
            return HealthCheck(
                check_name=check_name,
                status=CheckStatus.UNKNOWN,
                detail=f"Could not be computed: {exc}",
            )

    async def _check_hook(self) -> HealthCheck:
        hooks = await self._identities.hooks()
        if self._hook_name not in hooks:
            status, detail = CheckStatus.WARNING, f"Hook {self._hook_name} is not installed"
        elif not hooks[self._hook_name]:
            status, detail = CheckStatus.WARNING, f"Hook {self._hook_name} is disabled"
        else:
            status, detail = CheckStatus.OK, f"Hook {self._hook_name} is active"
        return HealthCheck(check_name=HOOK_CHECK, status=status, detail=detail)

    async def _check_derivation(self) -> HealthCheck:
        if self._derivation_name in self._derivations:
            status, detail = CheckStatus.OK, f"Function {self._derivation_name} is registered"
        else:
            status, detail = CheckStatus.WARNING, f"Function {self._derivation_name} is missing"
        return HealthCheck(check_name=DERIVATION_CHECK, status=status, detail=detail)

    async def _check_policies(self) -> HealthCheck:
        count = self._enforcer.policy_count
        return HealthCheck(
            check_name=POLICY_CHECK,
            status=CheckStatus.OK if count > 0 else CheckStatus.WARNING,
            detail=f"{count} active policies on profiles",
        )

    async def _check_drift(self) -> HealthCheck:
        missing = await self._identities.count_without_profile()
        if missing == 0:
            return HealthCheck(
                check_name=DRIFT_CHECK,
                status=CheckStatus.OK,
                detail="Every identity has a profile",
            )
        deferred = await self._identities.count_without_profile_or_email()
        detail = f"{missing} identities without profile"
        if deferred:
            detail += f" ({deferred} have no email and are deferred)"
        return HealthCheck(check_name=DRIFT_CHECK, status=CheckStatus.WARNING, detail=detail)
