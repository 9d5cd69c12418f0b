"""Read-side aggregations over work records."""

from __future__ import annotations

import calendar
from collections import defaultdict
from datetime import date
from typing import Iterable

from weldpay.core.exceptions import ValidationError
from weldpay.models.reports import EmployeeItemAggregation, ReportBreakdown, WorkReport
from weldpay.models.work import WorkRecord, WorkType


def report_range(year: int, month: int | None = None, week: int | None = None) -> tuple[str, date, date]:
    """Label and inclusive date range for a month, an ISO week, or a whole year."""
    if month is not None and week is not None:
        raise ValidationError({"week": "cannot be combined with month"})
    try:
        if week is not None:
            start = date.fromisocalendar(year, week, 1)
            end = date.fromisocalendar(year, week, 7)
            return f"{year}-W{week:02d}", start, end
        if month is not None:
            last_day = calendar.monthrange(year, month)[1]
            return f"{year}-{month:02d}", date(year, month, 1), date(year, month, last_day)
        return f"{year}", date(year, 1, 1), date(year, 12, 31)
    except ValueError as exc:
        raise ValidationError({"period": str(exc)}) from exc


def summarize_by_employee_item(records: Iterable[WorkRecord]) -> list[EmployeeItemAggregation]:
    """Quantity per (employee, work item), newest work first within each employee."""
    groups: dict[tuple[str, str], EmployeeItemAggregation] = {}
    for record in records:
        if not record.work_item_id:
            continue
        key = (record.employee_id, record.work_item_id)
        agg = groups.get(key)
        if agg is None:
            agg = groups[key] = EmployeeItemAggregation(
                employee_id=record.employee_id,
                work_item_id=record.work_item_id,
                calculation_type=record.calculation_type,
            )
        agg.total_quantity += record.quantity
        agg.total_amount += record.total_amount
        agg.record_count += 1
        if agg.last_work_date is None or record.work_date > agg.last_work_date:
            agg.last_work_date = record.work_date

    by_employee: dict[str, list[EmployeeItemAggregation]] = defaultdict(list)
    for agg in groups.values():
        by_employee[agg.employee_id].append(agg)
    out: list[EmployeeItemAggregation] = []
    for employee_id in sorted(by_employee):
        out.extend(sorted(
            by_employee[employee_id],
            key=lambda a: a.last_work_date or date.min,
            reverse=True,
        ))
    return out


def _breakdown(groups: dict[str, list[WorkRecord]]) -> list[ReportBreakdown]:
    rows = [
        ReportBreakdown(
            key=key,
            total_amount=sum(r.total_amount for r in records),
            total_work_days=len({(r.employee_id, r.work_date) for r in records}),
            count=len(records),
        )
        for key, records in groups.items()
    ]
    return sorted(rows, key=lambda row: (-row.total_amount, row.key))


def build_work_report(
    records: Iterable[WorkRecord],
    work_types: dict[str, WorkType],
    *,
    period: str,
    start: date,
    end: date,
) -> WorkReport:
    """Totals for the records, broken down by department and by work type name."""
    records = list(records)
    by_department: dict[str, list[WorkRecord]] = defaultdict(list)
    by_work_type: dict[str, list[WorkRecord]] = defaultdict(list)
    for record in records:
        work_type = work_types.get(record.work_type_id)
        by_department[work_type.department if work_type else ""].append(record)
        by_work_type[work_type.name if work_type else record.work_type_id].append(record)

    return WorkReport(
        period=period,
        start=start,
        end=end,
        total_employees=len({r.employee_id for r in records}),
        total_work_days=len({(r.employee_id, r.work_date) for r in records}),
        total_amount=sum(r.total_amount for r in records),
        by_department=_breakdown(by_department),
        by_work_type=_breakdown(by_work_type),
    )
