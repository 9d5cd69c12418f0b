"""Work record, quota and overtime endpoints."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from weldpay.api.deps import get_service
from weldpay.models.reports import EmployeeItemAggregation
from weldpay.models.work import (
    OvertimeConfig,
    WorkItemProgress,
    WorkRecord,
    WorkRecordInput,
    WorkRecordPatch,
)
from weldpay.payroll.service import PayrollService

router = APIRouter(tags=["work"])


class RemainingQuota(BaseModel):
    work_item_id: str
    remaining: int


class OvertimeConfigUpdate(BaseModel):
    overtime_price_per_weld: Optional[int] = None
    overtime_percentage: Optional[Decimal] = None


# ---- work records ----

@router.post("/records", status_code=status.HTTP_201_CREATED)
def create_work_record(
    body: WorkRecordInput, service: PayrollService = Depends(get_service),
) -> WorkRecord:
    return service.create_work_record(body)


@router.get("/records")
def list_work_records(
    employee_id: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    work_item_id: Optional[str] = None,
    service: PayrollService = Depends(get_service),
) -> list[WorkRecord]:
    return service.list_work_records(
        employee_id=employee_id, start=start, end=end, work_item_id=work_item_id,
    )


@router.get("/records/{record_id}")
def get_work_record(record_id: str, service: PayrollService = Depends(get_service)) -> WorkRecord:
    return service.require_work_record(record_id)


@router.put("/records/{record_id}")
def update_work_record(
    record_id: str, body: WorkRecordPatch, service: PayrollService = Depends(get_service),
) -> WorkRecord:
    return service.update_work_record(record_id, body)


@router.delete("/records/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_work_record(record_id: str, service: PayrollService = Depends(get_service)) -> Response:
    service.delete_work_record(record_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---- work items ----

@router.get("/items/{work_item_id}/remaining")
def get_remaining_quota(
    work_item_id: str,
    exclude_record_id: Optional[str] = None,
    service: PayrollService = Depends(get_service),
) -> RemainingQuota:
    remaining = service.get_remaining_quota(work_item_id, exclude_record_id)
    return RemainingQuota(work_item_id=work_item_id, remaining=remaining)


@router.get("/items/{work_item_id}/progress")
def get_work_item_progress(
    work_item_id: str, service: PayrollService = Depends(get_service),
) -> WorkItemProgress:
    return service.get_work_item_progress(work_item_id)


@router.get("/items/{work_item_id}/by-employee")
def get_work_item_by_employee(
    work_item_id: str, service: PayrollService = Depends(get_service),
) -> list[EmployeeItemAggregation]:
    service.quota.progress(work_item_id)  # 404 for unknown items
    return service.summarize_by_employee_item(work_item_id=work_item_id)


# ---- overtime configs ----

@router.get("/overtime-configs/{work_type_id}")
def get_overtime_config(
    work_type_id: str, service: PayrollService = Depends(get_service),
) -> Optional[OvertimeConfig]:
    return service.get_overtime_config(work_type_id)


@router.put("/overtime-configs/{work_type_id}")
def put_overtime_config(
    work_type_id: str, body: OvertimeConfigUpdate, service: PayrollService = Depends(get_service),
) -> OvertimeConfig:
    return service.configure_overtime(
        work_type_id,
        overtime_price_per_weld=body.overtime_price_per_weld,
        overtime_percentage=body.overtime_percentage,
    )


@router.delete("/overtime-configs/{work_type_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_overtime_config(work_type_id: str, service: PayrollService = Depends(get_service)) -> Response:
    service.remove_overtime(work_type_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
