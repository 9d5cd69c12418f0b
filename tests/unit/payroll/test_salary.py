"""Tests for monthly salary aggregation and the draft/paid lifecycle."""

from __future__ import annotations

from datetime import date

import pytest

from weldpay.core.config import PayrollConfig
from weldpay.core.exceptions import (
    ConcurrencyConflict,
    InvalidStateTransition,
    NotFound,
    ValidationError,
)
from weldpay.models.salary import SalaryPeriod, SalaryStatus, salary_id_for


def _hourly(day: int, hours=8, employee_id="emp-1", month=5):
    return {
        "employee_id": employee_id,
        "work_date": date(2024, month, day),
        "work_type_id": "wt-hourly",
        "quantity": hours,
    }


@pytest.fixture
def may_records(service):
    service.create_work_record(_hourly(6))
    service.create_work_record(_hourly(6, hours=2))
    service.create_work_record(_hourly(7))
    service.create_work_record(_hourly(3, month=6))
    service.create_work_record(_hourly(6, employee_id="emp-2"))


class TestCalculate:
    def test_sums_period_records(self, service, may_records):
        salary = service.calculate_monthly_salary("emp-1", 2024, 5)
        assert salary.total_amount == (8 + 2 + 8) * 50000
        assert salary.total_work_days == 2
        assert salary.status == SalaryStatus.DRAFT
        assert salary.period == SalaryPeriod.for_month(2024, 5)
        assert len(salary.work_record_ids) == 3
        assert salary.id == salary_id_for("emp-1", salary.period)

    def test_recalculation_is_idempotent(self, service, may_records):
        first = service.calculate_monthly_salary("emp-1", 2024, 5)
        second = service.calculate_monthly_salary("emp-1", 2024, 5)
        assert second.id == first.id
        assert second.total_amount == first.total_amount
        assert second.calculated_at > first.calculated_at
        assert len(service.list_salaries(year=2024, month=5, employee_id="emp-1")) == 1

    def test_recalculation_picks_up_new_records(self, service, may_records):
        service.calculate_monthly_salary("emp-1", 2024, 5)
        service.create_work_record(_hourly(20, hours=1))
        salary = service.calculate_monthly_salary("emp-1", 2024, 5)
        assert salary.total_amount == 19 * 50000
        assert salary.total_work_days == 3

    def test_no_records_for_new_salary(self, service, may_records):
        with pytest.raises(NotFound):
            service.calculate_monthly_salary("emp-1", 2024, 4)

    def test_invalid_month(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.calculate_monthly_salary("emp-1", 2024, 13)
        assert "month" in exc_info.value.errors

    def test_negative_allowances(self, service, may_records):
        with pytest.raises(ValidationError):
            service.calculate_monthly_salary("emp-1", 2024, 5, allowances=-1)

    def test_preserves_allowances_and_advance(self, service, may_records):
        salary = service.calculate_monthly_salary("emp-1", 2024, 5, allowances=100000)
        service.update_advance_payment(salary.id, 50000)
        again = service.calculate_monthly_salary("emp-1", 2024, 5)
        assert again.allowances == 100000
        assert again.advance_payment == 50000
        assert again.payable_amount == again.total_amount + 100000 - 50000

    def test_explicit_values_overwrite(self, service, may_records):
        service.calculate_monthly_salary("emp-1", 2024, 5, allowances=100000)
        again = service.calculate_monthly_salary("emp-1", 2024, 5, allowances=0)
        assert again.allowances == 0


class TestCalculateAll:
    def test_calculates_every_employee_in_period(self, service, may_records):
        salaries = service.calculate_monthly_salaries(2024, 5)
        assert [s.employee_id for s in salaries] == ["emp-1", "emp-2"]
        assert [s.total_amount for s in salaries] == [18 * 50000, 8 * 50000]

    def test_skips_paid_salaries(self, service, may_records):
        paid = service.calculate_monthly_salary("emp-1", 2024, 5)
        service.pay_salary(paid.id)
        salaries = service.calculate_monthly_salaries(2024, 5)
        assert [s.employee_id for s in salaries] == ["emp-2"]
        assert service.get_salary(paid.id).status == SalaryStatus.PAID

    def test_empty_period(self, service, may_records):
        assert service.calculate_monthly_salaries(2024, 1) == []


class TestLifecycle:
    def test_pay_then_reject_changes(self, service, may_records):
        salary = service.calculate_monthly_salary("emp-1", 2024, 5)
        paid = service.pay_salary(salary.id)
        assert paid.status == SalaryStatus.PAID
        assert paid.paid_at is not None

        with pytest.raises(InvalidStateTransition):
            service.pay_salary(salary.id)
        with pytest.raises(InvalidStateTransition):
            service.update_allowances(salary.id, 10)
        with pytest.raises(InvalidStateTransition):
            service.update_advance_payment(salary.id, 10)
        with pytest.raises(InvalidStateTransition):
            service.delete_salary(salary.id)
        with pytest.raises(InvalidStateTransition):
            service.calculate_monthly_salary("emp-1", 2024, 5)
        assert service.get_salary(salary.id).status == SalaryStatus.PAID

    def test_delete_draft(self, service, may_records):
        salary = service.calculate_monthly_salary("emp-1", 2024, 5)
        service.delete_salary(salary.id)
        with pytest.raises(NotFound):
            service.get_salary(salary.id)

    def test_update_allowances_rejects_negative(self, service, may_records):
        salary = service.calculate_monthly_salary("emp-1", 2024, 5)
        with pytest.raises(ValidationError):
            service.update_allowances(salary.id, -5)

    def test_unknown_salary(self, service):
        with pytest.raises(NotFound):
            service.pay_salary("missing")

    def test_version_increments_on_every_write(self, service, may_records):
        salary = service.calculate_monthly_salary("emp-1", 2024, 5)
        assert salary.version == 1
        assert service.update_allowances(salary.id, 1).version == 2


class TestPaidRecalculationAllowed:
    @pytest.fixture
    def payroll_config(self):
        return PayrollConfig(allow_paid_recalculation=True)

    def test_recalculates_paid_salary(self, service, may_records):
        salary = service.calculate_monthly_salary("emp-1", 2024, 5)
        service.pay_salary(salary.id)
        service.create_work_record(_hourly(21, hours=1))
        again = service.calculate_monthly_salary("emp-1", 2024, 5)
        assert again.status == SalaryStatus.PAID
        assert again.total_amount == salary.total_amount + 50000


class TestConcurrentWriters:
    def test_stale_version_is_rejected(self, service, salary_store, may_records):
        salary = service.calculate_monthly_salary("emp-1", 2024, 5)
        salary_store.save(salary, expected_version=salary.version)
        with pytest.raises(ConcurrencyConflict):
            salary_store.save(salary, expected_version=salary.version)

    def test_pay_after_concurrent_pay_is_invalid(self, service, salary_store, may_records):
        salary = service.calculate_monthly_salary("emp-1", 2024, 5)
        paid = salary.model_copy(update={"status": SalaryStatus.PAID})
        salary_store.save(paid, expected_version=salary.version)
        with pytest.raises(InvalidStateTransition):
            service.pay_salary(salary.id)


class TestListing:
    def test_list_by_period_and_year(self, service, may_records):
        service.calculate_monthly_salary("emp-1", 2024, 5)
        service.calculate_monthly_salary("emp-2", 2024, 5)
        service.calculate_monthly_salary("emp-1", 2024, 6)
        assert len(service.list_salaries(year=2024, month=5)) == 2
        assert len(service.list_salaries(year=2024)) == 3
        assert [s.employee_id for s in service.list_salaries(employee_id="emp-1")] == ["emp-1", "emp-1"]
