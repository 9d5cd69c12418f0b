"""Monthly salary and report endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from weldpay.api.deps import get_service
from weldpay.models.reports import WorkReport
from weldpay.models.salary import MonthlySalary
from weldpay.payroll.service import PayrollService

router = APIRouter(tags=["salaries"])


class CalculateMonthlySalary(BaseModel):
    employee_id: str
    year: int
    month: int
    allowances: Optional[int] = None
    advance_payment: Optional[int] = None


class CalculatePeriod(BaseModel):
    year: int
    month: int


class AmountUpdate(BaseModel):
    amount: int


@router.post("/calculate-monthly")
def calculate_monthly_salary(
    body: CalculateMonthlySalary, service: PayrollService = Depends(get_service),
) -> MonthlySalary:
    return service.calculate_monthly_salary(
        body.employee_id, body.year, body.month,
        allowances=body.allowances, advance_payment=body.advance_payment,
    )


@router.post("/calculate-monthly-all")
def calculate_monthly_salaries(
    body: CalculatePeriod, service: PayrollService = Depends(get_service),
) -> list[MonthlySalary]:
    return service.calculate_monthly_salaries(body.year, body.month)


@router.get("/monthly-salaries")
def list_monthly_salaries(
    year: Optional[int] = None,
    month: Optional[int] = None,
    employee_id: Optional[str] = None,
    service: PayrollService = Depends(get_service),
) -> list[MonthlySalary]:
    return service.list_salaries(year=year, month=month, employee_id=employee_id)


@router.get("/monthly-salaries/{salary_id}")
def get_monthly_salary(salary_id: str, service: PayrollService = Depends(get_service)) -> MonthlySalary:
    return service.get_salary(salary_id)


@router.put("/monthly-salaries/{salary_id}/allowances")
def update_allowances(
    salary_id: str, body: AmountUpdate, service: PayrollService = Depends(get_service),
) -> MonthlySalary:
    return service.update_allowances(salary_id, body.amount)


@router.put("/monthly-salaries/{salary_id}/advance-payment")
def update_advance_payment(
    salary_id: str, body: AmountUpdate, service: PayrollService = Depends(get_service),
) -> MonthlySalary:
    return service.update_advance_payment(salary_id, body.amount)


@router.post("/monthly-salaries/{salary_id}/pay")
def pay_salary(salary_id: str, service: PayrollService = Depends(get_service)) -> MonthlySalary:
    return service.pay_salary(salary_id)


@router.delete("/monthly-salaries/{salary_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_salary(salary_id: str, service: PayrollService = Depends(get_service)) -> Response:
    service.delete_salary(salary_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---- reports ----

@router.get("/reports/monthly")
def monthly_report(
    year: int,
    month: int,
    department: Optional[str] = None,
    employee_id: Optional[str] = None,
    service: PayrollService = Depends(get_service),
) -> WorkReport:
    return service.build_work_report(year, month=month, department=department, employee_id=employee_id)


@router.get("/reports/weekly")
def weekly_report(
    year: int,
    week: int,
    department: Optional[str] = None,
    employee_id: Optional[str] = None,
    service: PayrollService = Depends(get_service),
) -> WorkReport:
    return service.build_work_report(year, week=week, department=department, employee_id=employee_id)
