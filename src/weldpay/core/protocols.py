"""Protocol interfaces for all WeldPay storage abstractions.

The payroll components talk to storage only through these Protocols:
structural typing, no inheritance required, easy to test with isinstance().
"""

from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, runtime_checkable

from weldpay.models.salary import MonthlySalary, SalaryPeriod
from weldpay.models.work import (
    OvertimeConfig,
    QuotaClaim,
    WorkItem,
    WorkRecord,
    WorkType,
)


# ---------------------------------------------------------------------------
# Persistence: Catalog Store
# ---------------------------------------------------------------------------

@runtime_checkable
class ICatalogStore(Protocol):
    """Work types, work items and overtime configs."""

    def get_work_type(self, work_type_id: str) -> WorkType | None: ...

    def list_work_types(self, department: str | None = None) -> list[WorkType]: ...

    def put_work_type(self, work_type: WorkType) -> None: ...

    def get_work_item(self, work_item_id: str) -> WorkItem | None: ...

    def put_work_item(self, work_item: WorkItem) -> None: ...

    def get_overtime_config(self, work_type_id: str) -> OvertimeConfig | None: ...

    def put_overtime_config(self, config: OvertimeConfig) -> None: ...

    def delete_overtime_config(self, work_type_id: str) -> None: ...


# ---------------------------------------------------------------------------
# Persistence: Work Ledger
# ---------------------------------------------------------------------------

@runtime_checkable
class IWorkLedger(Protocol):
    """Work records plus the per-item quantity counters they feed.

    ``commit_record`` and ``remove_record`` must check and update the quota
    counter atomically with the record write.
    """

    def get_record(self, record_id: str) -> WorkRecord | None: ...

    def list_records(
        self,
        *,
        employee_id: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        work_item_id: Optional[str] = None,
    ) -> list[WorkRecord]: ...

    def quantity_made(self, work_item_id: str, exclude_record_id: str | None = None) -> int: ...

    def commit_record(
        self,
        record: WorkRecord,
        *,
        previous: WorkRecord | None = None,
        claim: QuotaClaim | None = None,
    ) -> WorkRecord: ...

    def remove_record(self, record: WorkRecord) -> None: ...


# ---------------------------------------------------------------------------
# Persistence: Salary Store
# ---------------------------------------------------------------------------

@runtime_checkable
class ISalaryStore(Protocol):
    """Monthly salaries with optimistic version checks on every write.

    Writes raise ``ConcurrencyConflict`` when the stored version differs from
    ``expected_version`` (``None`` means the row must not exist yet).
    """

    def get(self, salary_id: str) -> MonthlySalary | None: ...

    def list_salaries(
        self,
        *,
        employee_id: Optional[str] = None,
        period: Optional[SalaryPeriod] = None,
    ) -> list[MonthlySalary]: ...

    def save(self, salary: MonthlySalary, *, expected_version: int | None) -> MonthlySalary: ...

    def delete(self, salary_id: str, *, expected_version: int) -> None: ...


# ---------------------------------------------------------------------------
# Persistence: Cache Backend
# ---------------------------------------------------------------------------

@runtime_checkable
class ICacheBackend(Protocol):
    """Redis-compatible cache interface."""

    def get(self, key: str) -> str | None: ...

    def setex(self, key: str, ttl: int, value: str) -> None: ...

    def delete(self, key: str) -> None: ...
