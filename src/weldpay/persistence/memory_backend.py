"""In-memory backends: dict-backed stores for unit tests and local development.

The ledger and salary store hold a lock across every check-and-write so they
give the same atomicity guarantees as the DynamoDB backends.
"""

from __future__ import annotations

import threading
from datetime import date
from typing import Optional

from weldpay.core.exceptions import ConcurrencyConflict
from weldpay.models.salary import MonthlySalary, SalaryPeriod
from weldpay.models.work import (
    OvertimeConfig,
    QuotaClaim,
    WorkItem,
    WorkRecord,
    WorkType,
)


class MemoryCatalogStore:
    """Dict-backed ICatalogStore."""

    def __init__(self) -> None:
        self._work_types: dict[str, WorkType] = {}
        self._work_items: dict[str, WorkItem] = {}
        self._overtime: dict[str, OvertimeConfig] = {}

    def get_work_type(self, work_type_id: str) -> WorkType | None:
        return self._work_types.get(work_type_id)

    def list_work_types(self, department: str | None = None) -> list[WorkType]:
        return [
            wt for wt in self._work_types.values()
            if department is None or wt.department == department
        ]

    def put_work_type(self, work_type: WorkType) -> None:
        self._work_types[work_type.id] = work_type

    def get_work_item(self, work_item_id: str) -> WorkItem | None:
        return self._work_items.get(work_item_id)

    def put_work_item(self, work_item: WorkItem) -> None:
        self._work_items[work_item.id] = work_item

    def get_overtime_config(self, work_type_id: str) -> OvertimeConfig | None:
        return self._overtime.get(work_type_id)

    def put_overtime_config(self, config: OvertimeConfig) -> None:
        self._overtime[config.work_type_id] = config

    def delete_overtime_config(self, work_type_id: str) -> None:
        self._overtime.pop(work_type_id, None)


class MemoryWorkLedger:
    """Dict-backed IWorkLedger; quantity made is summed from the records."""

    def __init__(self) -> None:
        self._records: dict[str, WorkRecord] = {}
        self._lock = threading.RLock()

    def get_record(self, record_id: str) -> WorkRecord | None:
        return self._records.get(record_id)

    def list_records(
        self,
        *,
        employee_id: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        work_item_id: Optional[str] = None,
    ) -> list[WorkRecord]:
        with self._lock:
            records = list(self._records.values())
        out = [
            r for r in records
            if (employee_id is None or r.employee_id == employee_id)
            and (start is None or r.work_date >= start)
            and (end is None or r.work_date <= end)
            and (work_item_id is None or r.work_item_id == work_item_id)
        ]
        return sorted(out, key=lambda r: (r.work_date, r.created_at))

    def quantity_made(self, work_item_id: str, exclude_record_id: str | None = None) -> int:
        with self._lock:
            return sum(
                r.units_on(work_item_id)
                for r in self._records.values()
                if r.id != exclude_record_id
            )

    def commit_record(
        self,
        record: WorkRecord,
        *,
        previous: WorkRecord | None = None,
        claim: QuotaClaim | None = None,
    ) -> WorkRecord:
        with self._lock:
            if previous is None and record.id in self._records:
                raise ConcurrencyConflict(f"Work record {record.id} already exists")
            if previous is not None and self._records.get(previous.id) != previous:
                raise ConcurrencyConflict(f"Work record {previous.id} changed concurrently")
            if claim is not None:
                made = self.quantity_made(claim.work_item_id, exclude_record_id=record.id)
                claim.check(claim.total_quantity - made)
            self._records[record.id] = record
            return record

    def remove_record(self, record: WorkRecord) -> None:
        with self._lock:
            self._records.pop(record.id, None)


class MemorySalaryStore:
    """Dict-backed ISalaryStore with version checks."""

    def __init__(self) -> None:
        self._salaries: dict[str, MonthlySalary] = {}
        self._lock = threading.Lock()

    def get(self, salary_id: str) -> MonthlySalary | None:
        return self._salaries.get(salary_id)

    def list_salaries(
        self,
        *,
        employee_id: Optional[str] = None,
        period: Optional[SalaryPeriod] = None,
    ) -> list[MonthlySalary]:
        with self._lock:
            salaries = list(self._salaries.values())
        return [
            s for s in salaries
            if (employee_id is None or s.employee_id == employee_id)
            and (period is None or s.period.key == period.key)
        ]

    def save(self, salary: MonthlySalary, *, expected_version: int | None) -> MonthlySalary:
        with self._lock:
            current = self._salaries.get(salary.id)
            self._check_version(salary.id, current, expected_version)
            stored = salary.model_copy(update={"version": (expected_version or 0) + 1})
            self._salaries[salary.id] = stored
            return stored

    def delete(self, salary_id: str, *, expected_version: int) -> None:
        with self._lock:
            self._check_version(salary_id, self._salaries.get(salary_id), expected_version)
            del self._salaries[salary_id]

    @staticmethod
    def _check_version(salary_id: str, current: MonthlySalary | None,
                       expected_version: int | None) -> None:
        if expected_version is None:
            if current is not None:
                raise ConcurrencyConflict(f"Salary {salary_id} already exists")
        elif current is None or current.version != expected_version:
            raise ConcurrencyConflict(f"Salary {salary_id} changed concurrently")


class MemoryCacheBackend:
    """Dict-backed ICacheBackend."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._store.get(key)

    def setex(self, key: str, ttl: int, value: str) -> None:
        self._store[key] = value

    def delete(self, key: str) -> None:
        self._store.pop(key, None)
