"""MonthlySalaryAggregator: rolls work records up into a salary and runs its lifecycle.

    draft --calculate / update_allowances / update_advance_payment--> draft
    draft --pay--> paid (terminal)

Every write carries the version it read; a lost race is retried against fresh
state, so a concurrent pay or delete surfaces as InvalidStateTransition or
NotFound instead of overwriting a paid row.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

from weldpay.core.exceptions import (
    ConcurrencyConflict,
    InvalidStateTransition,
    NotFound,
    ValidationError,
)
from weldpay.core.protocols import ISalaryStore, IWorkLedger
from weldpay.models.salary import MonthlySalary, SalaryPeriod, SalaryStatus, salary_id_for

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def month_period(year: int, month: int) -> SalaryPeriod:
    """Calendar-month period; rejects impossible year/month values."""
    errors: dict[str, str] = {}
    if not 1 <= year <= 9999:
        errors["year"] = "must be between 1 and 9999"
    if not 1 <= month <= 12:
        errors["month"] = "must be between 1 and 12"
    if errors:
        raise ValidationError(errors)
    return SalaryPeriod.for_month(year, month)


def _check_amounts(**amounts: Optional[int]) -> None:
    errors = {
        name: "must be zero or greater"
        for name, value in amounts.items()
        if value is not None and value < 0
    }
    if errors:
        raise ValidationError(errors)


class MonthlySalaryAggregator:
    """Sums a period's work records per employee and drives the salary lifecycle."""

    def __init__(
        self,
        ledger: IWorkLedger,
        store: ISalaryStore,
        *,
        allow_paid_recalculation: bool = False,
        max_retries: int = 3,
        clock: Clock | None = None,
    ) -> None:
        self._ledger = ledger
        self._store = store
        self._allow_paid_recalculation = allow_paid_recalculation
        self._max_retries = max_retries
        self._clock = clock or _utcnow

    # ---- reads ----

    def get(self, salary_id: str) -> MonthlySalary | None:
        return self._store.get(salary_id)

    def require(self, salary_id: str) -> MonthlySalary:
        salary = self._store.get(salary_id)
        if salary is None:
            raise NotFound("MonthlySalary", salary_id)
        return salary

    def list_salaries(
        self,
        *,
        year: int | None = None,
        month: int | None = None,
        employee_id: str | None = None,
    ) -> list[MonthlySalary]:
        period = month_period(year, month) if year is not None and month is not None else None
        salaries = self._store.list_salaries(employee_id=employee_id, period=period)
        if year is not None and period is None:
            salaries = [s for s in salaries if s.period.start.year == year]
        return sorted(salaries, key=lambda s: (s.period.start, s.employee_id))

    # ---- calculate ----

    def calculate(
        self,
        employee_id: str,
        year: int,
        month: int,
        *,
        allowances: int | None = None,
        advance_payment: int | None = None,
    ) -> MonthlySalary:
        return self.calculate_period(
            employee_id,
            month_period(year, month),
            allowances=allowances,
            advance_payment=advance_payment,
        )

    def calculate_all(self, year: int, month: int) -> list[MonthlySalary]:
        """Calculate the period for every employee with work records in it.

        Paid salaries are left untouched and omitted from the result unless
        paid recalculation is allowed.
        """
        period = month_period(year, month)
        records = self._ledger.list_records(start=period.start, end=period.end)
        salaries = []
        for employee_id in sorted({r.employee_id for r in records}):
            existing = self._store.get(salary_id_for(employee_id, period))
            if existing is not None and existing.is_paid and not self._allow_paid_recalculation:
                continue
            salaries.append(self.calculate_period(employee_id, period))
        return salaries

    def calculate_period(
        self,
        employee_id: str,
        period: SalaryPeriod,
        *,
        allowances: int | None = None,
        advance_payment: int | None = None,
    ) -> MonthlySalary:
        """Create or refresh the employee's salary for ``period``.

        Existing allowances and advance payment are kept unless new values
        are supplied.
        """
        _check_amounts(allowances=allowances, advance_payment=advance_payment)
        salary_id = salary_id_for(employee_id, period)

        for _ in range(self._max_retries):
            records = self._ledger.list_records(
                employee_id=employee_id, start=period.start, end=period.end,
            )
            totals = {
                "total_amount": sum(r.total_amount for r in records),
                "total_work_days": len({r.work_date for r in records}),
                "work_record_ids": [r.id for r in records],
            }
            now = self._clock()
            existing = self._store.get(salary_id)

            if existing is None:
                if not records:
                    raise NotFound(
                        "MonthlySalary", salary_id,
                        message=f"No work records for employee {employee_id!r} in {period.key}",
                    )
                salary = MonthlySalary(
                    id=salary_id,
                    employee_id=employee_id,
                    period=period,
                    allowances=allowances or 0,
                    advance_payment=advance_payment or 0,
                    calculated_at=now,
                    created_at=now,
                    updated_at=now,
                    **totals,
                )
                expected_version = None
            else:
                if existing.is_paid and not self._allow_paid_recalculation:
                    raise InvalidStateTransition(salary_id, existing.status, "recalculate")
                update = {**totals, "calculated_at": now, "updated_at": now}
                if allowances is not None:
                    update["allowances"] = allowances
                if advance_payment is not None:
                    update["advance_payment"] = advance_payment
                salary = existing.model_copy(update=update)
                expected_version = existing.version

            try:
                return self._store.save(salary, expected_version=expected_version)
            except ConcurrencyConflict:
                continue
        raise ConcurrencyConflict(f"Salary {salary_id} kept changing during calculation")

    # ---- draft-only transitions ----

    def update_allowances(self, salary_id: str, amount: int) -> MonthlySalary:
        _check_amounts(allowances=amount)
        return self._transition(salary_id, "update allowances", allowances=amount)

    def update_advance_payment(self, salary_id: str, amount: int) -> MonthlySalary:
        _check_amounts(advance_payment=amount)
        return self._transition(salary_id, "update advance payment", advance_payment=amount)

    def pay(self, salary_id: str) -> MonthlySalary:
        """Mark a draft salary as paid. Paying twice is an error, not a no-op."""
        now = self._clock()
        return self._transition(salary_id, "pay", status=SalaryStatus.PAID, paid_at=now)

    def delete(self, salary_id: str) -> None:
        for _ in range(self._max_retries):
            current = self.require(salary_id)
            if current.is_paid:
                raise InvalidStateTransition(salary_id, current.status, "delete")
            try:
                self._store.delete(salary_id, expected_version=current.version)
                return
            except ConcurrencyConflict:
                continue
        raise ConcurrencyConflict(f"Salary {salary_id} kept changing during delete")

    def _transition(self, salary_id: str, action: str, **changes) -> MonthlySalary:
        for _ in range(self._max_retries):
            current = self.require(salary_id)
            if current.is_paid:
                raise InvalidStateTransition(salary_id, current.status, action)
            updated = current.model_copy(update={**changes, "updated_at": self._clock()})
            try:
                return self._store.save(updated, expected_version=current.version)
            except ConcurrencyConflict:
                continue
        raise ConcurrencyConflict(f"Salary {salary_id} kept changing during {action}")
