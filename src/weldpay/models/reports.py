"""Read-side aggregation models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from weldpay.models.work import CalculationType


class EmployeeItemAggregation(BaseModel):
    """Total quantity one employee produced on one work item."""

    employee_id: str
    work_item_id: str
    calculation_type: CalculationType
    total_quantity: Decimal = Decimal("0")
    total_amount: int = 0
    record_count: int = 0
    last_work_date: Optional[date] = None


class ReportBreakdown(BaseModel):
    key: str
    total_amount: int = 0
    total_work_days: int = 0
    count: int = 0


class WorkReport(BaseModel):
    """Totals for a reporting period, broken down by department and work type."""

    period: str  # "2024-05" or "2024-W19"
    start: date
    end: date
    total_employees: int = 0
    total_work_days: int = 0
    total_amount: int = 0
    by_department: list[ReportBreakdown] = Field(default_factory=list)
    by_work_type: list[ReportBreakdown] = Field(default_factory=list)
