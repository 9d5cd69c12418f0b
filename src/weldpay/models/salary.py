"""Monthly salary and pay period models."""

from __future__ import annotations

import calendar
from datetime import date, datetime, timezone
from enum import StrEnum
from typing import Optional
from uuid import NAMESPACE_URL, uuid5

from pydantic import BaseModel, Field, computed_field, model_validator


class SalaryStatus(StrEnum):
    DRAFT = "draft"
    PAID = "paid"


class SalaryPeriod(BaseModel):
    """Inclusive date range a salary covers; year/month set for calendar months."""

    model_config = {"frozen": True}

    start: date
    end: date
    year: Optional[int] = None
    month: Optional[int] = None

    @model_validator(mode="after")
    def _check_range(self) -> SalaryPeriod:
        if self.end < self.start:
            raise ValueError(f"period end {self.end} is before start {self.start}")
        return self

    @classmethod
    def for_month(cls, year: int, month: int) -> SalaryPeriod:
        last_day = calendar.monthrange(year, month)[1]
        return cls(
            start=date(year, month, 1),
            end=date(year, month, last_day),
            year=year,
            month=month,
        )

    @property
    def key(self) -> str:
        return f"{self.start.isoformat()}_{self.end.isoformat()}"


def salary_id_for(employee_id: str, period: SalaryPeriod) -> str:
    """Stable id so one employee has at most one salary row per period."""
    return uuid5(NAMESPACE_URL, f"weldpay:salary:{employee_id}:{period.key}").hex


class MonthlySalary(BaseModel):
    """An employee's aggregated pay for one period."""

    id: str
    employee_id: str
    period: SalaryPeriod
    total_work_days: int = 0
    total_amount: int = 0
    allowances: int = Field(default=0, ge=0)
    advance_payment: int = Field(default=0, ge=0)
    status: SalaryStatus = SalaryStatus.DRAFT
    work_record_ids: list[str] = Field(default_factory=list)
    calculated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    version: int = 0  # optimistic concurrency token

    @computed_field  # type: ignore[prop-decorator]
    @property
    def payable_amount(self) -> int:
        """Amount due at settlement: work total plus allowances, minus the advance."""
        return self.total_amount + self.allowances - self.advance_payment

    @property
    def is_paid(self) -> bool:
        return self.status == SalaryStatus.PAID
