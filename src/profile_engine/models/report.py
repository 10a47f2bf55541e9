"""Verifier report types, consumed by an external presentation layer."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class CheckStatus(StrEnum):
    OK = "ok"
    WARNING = "warning"
    UNKNOWN = "unknown"


class HealthCheck(BaseModel):
    check_name: str
    status: CheckStatus
    detail: str


class HealthReport(BaseModel):
    """Ordered set of independent checks over the provisioning path."""

    checks: list[HealthCheck] = Field(default_factory=list)
    generated_at: datetime

    @property
    def healthy(self) -> bool:
        return all(check.status == CheckStatus.OK for check in self.checks)

    def get(self, check_name: str) -> HealthCheck | None:
        for check in self.checks:
            if check.check_name == check_name:
                return check
        return None
