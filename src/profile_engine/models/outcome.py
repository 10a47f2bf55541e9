"""Outcomes of provisioning attempts and backfill runs."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel


class ProvisionOutcome(StrEnum):
    CREATED = "created"
    SKIPPED_NO_EMAIL = "skipped_no_email"
    DUPLICATE = "duplicate"
    TRANSIENT_ERROR = "transient_error"
    PERMANENT_ERROR = "permanent_error"


_SUCCESSFUL = frozenset(
    {ProvisionOutcome.CREATED, ProvisionOutcome.SKIPPED_NO_EMAIL, ProvisionOutcome.DUPLICATE}
)


class ProvisionResult(BaseModel):
    """Result of one provisioning attempt for one identity."""

    identity_id: str
    outcome: ProvisionOutcome
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome in _SUCCESSFUL


class BackfillResult(BaseModel):
    """Aggregate counts from one Reconciler run."""

    created: int = 0
    errors: int = 0
    skipped: int = 0
    duplicates: int = 0

    @property
    def total(self) -> int:
        return self.created + self.errors + self.skipped + self.duplicates

    def record(self, outcome: ProvisionOutcome) -> None:
        if outcome == ProvisionOutcome.CREATED:
            self.created += 1
        elif outcome == ProvisionOutcome.DUPLICATE:
            self.duplicates += 1
        elif outcome == ProvisionOutcome.SKIPPED_NO_EMAIL:
            self.skipped += 1
        else:
            self.errors += 1

    def summary(self) -> str:
        return f"Profiles created: {self.created}, Errors: {self.errors}"
