"""PayrollService: the operation set consumed by UI and CRUD layers.

Wires the catalog, overtime, quota, calculator and salary components over a
set of storage backends. Every write path prices records through the same
calculator, and every quota-affecting write goes through the ledger's atomic
``commit_record`` / ``remove_record``.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Mapping, Optional, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from weldpay.core.config import AppSettings, PayrollConfig
from weldpay.core.exceptions import NotFound, ValidationError
from weldpay.core.protocols import ICatalogStore, ISalaryStore, IWorkLedger
from weldpay.models.reports import EmployeeItemAggregation, WorkReport
from weldpay.models.salary import MonthlySalary
from weldpay.models.work import (
    CalculationType,
    OvertimeConfig,
    WorkItemProgress,
    WorkRecord,
    WorkRecordInput,
    WorkRecordPatch,
)
from weldpay.payroll.calculator import PayrollLineCalculator, PricedLine
from weldpay.payroll.catalog import WorkTypeCatalog
from weldpay.payroll.overtime import OvertimeConfigStore
from weldpay.payroll.quota import WorkItemQuotaTracker
from weldpay.payroll.reports import build_work_report, report_range, summarize_by_employee_item
from weldpay.payroll.salary import MonthlySalaryAggregator

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _coerce(model: type[M], data: M | Mapping[str, Any]) -> M:
    """Parse caller input into ``model``, reporting type errors as ValidationError."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError({
            ".".join(str(part) for part in err["loc"]) or "body": err["msg"]
            for err in exc.errors()
        }) from exc


class PayrollService:
    """Facade exposing work record, quota, overtime and salary operations."""

    def __init__(
        self,
        catalog_store: ICatalogStore,
        ledger: IWorkLedger,
        salary_store: ISalaryStore,
        *,
        config: PayrollConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        config = config or PayrollConfig()
        self._ledger = ledger
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.catalog = WorkTypeCatalog(catalog_store)
        self.overtime = OvertimeConfigStore(catalog_store)
        self.quota = WorkItemQuotaTracker(self.catalog, ledger)
        self.calculator = PayrollLineCalculator(self.catalog, self.overtime, self.quota)
        self.salaries = MonthlySalaryAggregator(
            ledger,
            salary_store,
            allow_paid_recalculation=config.allow_paid_recalculation,
            max_retries=config.max_write_retries,
            clock=self._clock,
        )

    @classmethod
    def from_settings(cls, settings: AppSettings | None = None) -> PayrollService:
        from weldpay.persistence import create_persistence

        settings = settings or AppSettings()
        catalog, ledger, salaries = create_persistence(settings)
        return cls(catalog, ledger, salaries, config=settings.payroll)

    # ------------------------------------------------------------------
    # Work records
    # ------------------------------------------------------------------

    def _build_record(self, priced: PricedLine, dto: WorkRecordInput, **base: Any) -> WorkRecord:
        inputs = priced.inputs
        return WorkRecord(
            employee_id=dto.employee_id,
            work_date=dto.work_date,
            work_type_id=priced.work_type.id,
            work_item_id=priced.work_item.id if priced.work_item else None,
            calculation_type=inputs.calculation_type,
            quantity=inputs.quantity,
            unit_price=inputs.unit_price,
            is_overtime=inputs.is_overtime,
            overtime_quantity=inputs.overtime_quantity,
            overtime_hours=inputs.overtime_hours,
            base_amount=priced.amount.base_amount,
            overtime_amount=priced.amount.overtime_amount,
            total_amount=priced.amount.total_amount,
            notes=dto.notes,
            **base,
        )

    def create_work_record(self, dto: WorkRecordInput | Mapping[str, Any]) -> WorkRecord:
        dto = _coerce(WorkRecordInput, dto)
        priced = self.calculator.price(dto)
        now = self._clock()
        record = self._build_record(
            priced, dto, created_by=dto.created_by, created_at=now, updated_at=now,
        )
        self._ledger.commit_record(record, claim=priced.claim)
        logger.info(
            "Created work record %s (%s, total %d)", record.id, record.calculation_type,
            record.total_amount, extra={"record_id": record.id, "employee_id": record.employee_id},
        )
        return record

    def update_work_record(self, record_id: str, patch: WorkRecordPatch | Mapping[str, Any]) -> WorkRecord:
        patch = _coerce(WorkRecordPatch, patch)
        current = self.require_work_record(record_id)
        work_type = self.catalog.require_work_type(patch.work_type_id or current.work_type_id)
        dto = patch.apply_to(current, work_type.calculation_type)
        priced = self.calculator.price(dto, exclude_record_id=record_id)
        record = self._build_record(
            priced, dto,
            id=current.id,
            created_by=current.created_by,
            created_at=current.created_at,
            updated_at=self._clock(),
        )
        self._ledger.commit_record(record, previous=current, claim=priced.claim)
        logger.info(
            "Updated work record %s (total %d -> %d)", record_id, current.total_amount,
            record.total_amount, extra={"record_id": record_id, "employee_id": record.employee_id},
        )
        return record

    def delete_work_record(self, record_id: str) -> None:
        current = self.require_work_record(record_id)
        self._ledger.remove_record(current)
        logger.info("Deleted work record %s", record_id, extra={"record_id": record_id})

    def get_work_record(self, record_id: str) -> WorkRecord | None:
        return self._ledger.get_record(record_id)

    def require_work_record(self, record_id: str) -> WorkRecord:
        record = self._ledger.get_record(record_id)
        if record is None:
            raise NotFound("WorkRecord", record_id)
        return record

    def list_work_records(
        self,
        *,
        employee_id: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        work_item_id: Optional[str] = None,
    ) -> list[WorkRecord]:
        return self._ledger.list_records(
            employee_id=employee_id, start=start, end=end, work_item_id=work_item_id,
        )

    # ------------------------------------------------------------------
    # Quota and overtime
    # ------------------------------------------------------------------

    def get_remaining_quota(self, work_item_id: str, exclude_record_id: str | None = None) -> int:
        return self.quota.remaining(work_item_id, exclude_record_id)

    def get_work_item_progress(self, work_item_id: str) -> WorkItemProgress:
        return self.quota.progress(work_item_id)

    def get_overtime_config(self, work_type_id: str) -> OvertimeConfig | None:
        return self.overtime.get(work_type_id)

    def configure_overtime(
        self,
        work_type_id: str,
        *,
        overtime_price_per_weld: int | None = None,
        overtime_percentage: Decimal | None = None,
    ) -> OvertimeConfig:
        work_type = self.catalog.require_work_type(work_type_id)
        config = self.overtime.configure(
            work_type,
            overtime_price_per_weld=overtime_price_per_weld,
            overtime_percentage=overtime_percentage,
        )
        logger.info("Configured overtime for work type %s", work_type_id)
        return config

    def remove_overtime(self, work_type_id: str) -> None:
        self.catalog.require_work_type(work_type_id)
        self.overtime.remove(work_type_id)
        logger.info("Removed overtime config for work type %s", work_type_id)

    # ------------------------------------------------------------------
    # Monthly salaries
    # ------------------------------------------------------------------

    def calculate_monthly_salary(
        self,
        employee_id: str,
        year: int,
        month: int,
        *,
        allowances: int | None = None,
        advance_payment: int | None = None,
    ) -> MonthlySalary:
        salary = self.salaries.calculate(
            employee_id, year, month, allowances=allowances, advance_payment=advance_payment,
        )
        logger.info(
            "Calculated salary %s for %s-%02d: %d over %d days", salary.id, year, month,
            salary.total_amount, salary.total_work_days,
            extra={"salary_id": salary.id, "employee_id": employee_id},
        )
        return salary

    def calculate_monthly_salaries(self, year: int, month: int) -> list[MonthlySalary]:
        salaries = self.salaries.calculate_all(year, month)
        logger.info("Calculated %d salaries for %s-%02d", len(salaries), year, month)
        return salaries

    def update_allowances(self, salary_id: str, amount: int) -> MonthlySalary:
        return self.salaries.update_allowances(salary_id, amount)

    def update_advance_payment(self, salary_id: str, amount: int) -> MonthlySalary:
        return self.salaries.update_advance_payment(salary_id, amount)

    def pay_salary(self, salary_id: str) -> MonthlySalary:
        salary = self.salaries.pay(salary_id)
        logger.info(
            "Paid salary %s: payable %d", salary_id, salary.payable_amount,
            extra={"salary_id": salary_id, "employee_id": salary.employee_id},
        )
        return salary

    def delete_salary(self, salary_id: str) -> None:
        self.salaries.delete(salary_id)
        logger.info("Deleted salary %s", salary_id, extra={"salary_id": salary_id})

    def get_salary(self, salary_id: str) -> MonthlySalary:
        return self.salaries.require(salary_id)

    def list_salaries(
        self,
        *,
        year: int | None = None,
        month: int | None = None,
        employee_id: str | None = None,
    ) -> list[MonthlySalary]:
        return self.salaries.list_salaries(year=year, month=month, employee_id=employee_id)

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def summarize_by_employee_item(
        self,
        *,
        employee_id: Optional[str] = None,
        work_item_id: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[EmployeeItemAggregation]:
        records = self._ledger.list_records(
            employee_id=employee_id, start=start, end=end, work_item_id=work_item_id,
        )
        return summarize_by_employee_item(
            r for r in records if r.calculation_type == CalculationType.WELD_COUNT
        )

    def build_work_report(
        self,
        year: int,
        *,
        month: int | None = None,
        week: int | None = None,
        department: str | None = None,
        employee_id: str | None = None,
    ) -> WorkReport:
        label, start, end = report_range(year, month, week)
        work_types = {wt.id: wt for wt in self.catalog.list_work_types()}
        records = self._ledger.list_records(employee_id=employee_id, start=start, end=end)
        if department is not None:
            records = [
                r for r in records
                if r.work_type_id in work_types and work_types[r.work_type_id].department == department
            ]
        return build_work_report(records, work_types, period=label, start=start, end=end)
