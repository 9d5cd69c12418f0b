"""Work catalog and work record models.

Money fields are integers in the smallest currency unit. Quantities are kept
as ``Decimal`` so hourly/daily entries such as 7.5 hours survive unchanged; the
integer requirement of weld-count quantities is enforced by the calculator.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import StrEnum
from typing import Annotated, Any, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field, computed_field

from weldpay.core.exceptions import QuotaExceeded


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CalculationType(StrEnum):
    WELD_COUNT = "weld_count"
    HOURLY = "hourly"
    DAILY = "daily"


class DifficultyLevel(StrEnum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class WorkItemStatus(StrEnum):
    NEW = "new"
    IN_PRODUCTION = "in_production"
    DONE = "done"


class WorkType(BaseModel):
    """A kind of work and how it is paid."""

    id: str
    name: str
    department: str = ""
    calculation_type: CalculationType
    unit_price: int = Field(default=0, ge=0)  # hourly/daily only


class WorkItem(BaseModel):
    """A production item with a quota of units to be welded."""

    id: str
    name: str
    difficulty_level: DifficultyLevel = DifficultyLevel.MEDIUM
    price_per_weld: int = Field(ge=0)
    welds_per_item: int = Field(ge=1)
    total_quantity: int = Field(ge=0)
    status: WorkItemStatus = WorkItemStatus.NEW
    estimated_delivery_date: Optional[date] = None


class OvertimeConfig(BaseModel):
    """Overtime differential for one work type."""

    work_type_id: str
    overtime_price_per_weld: int = Field(default=0, ge=0)
    overtime_percentage: Decimal = Field(default=Decimal("0"), ge=0, le=100)


# ---------------------------------------------------------------------------
# Pricing: the calculation mode as a tagged union
# ---------------------------------------------------------------------------

class WeldCountPricing(BaseModel):
    mode: Literal[CalculationType.WELD_COUNT] = CalculationType.WELD_COUNT
    price_per_weld: int
    welds_per_item: int
    overtime_price_per_weld: int = 0

    @property
    def overtime_price(self) -> int:
        return self.price_per_weld + self.overtime_price_per_weld


class HourlyPricing(BaseModel):
    mode: Literal[CalculationType.HOURLY] = CalculationType.HOURLY
    unit_price: int
    overtime_percentage: Decimal = Decimal("0")


class DailyPricing(BaseModel):
    mode: Literal[CalculationType.DAILY] = CalculationType.DAILY
    unit_price: int


Pricing = Annotated[
    Union[WeldCountPricing, HourlyPricing, DailyPricing],
    Field(discriminator="mode"),
]


class LineAmount(BaseModel):
    """Computed money for a single work record."""

    model_config = {"frozen": True}

    base_amount: int = 0
    overtime_amount: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_amount(self) -> int:
        return self.base_amount + self.overtime_amount


# ---------------------------------------------------------------------------
# Quota
# ---------------------------------------------------------------------------

class QuotaClaim(BaseModel):
    """Units a weld-count record wants to book against a work item."""

    work_item_id: str
    total_quantity: int
    quantity: int
    overtime_quantity: int = 0

    def check(self, remaining: int) -> None:
        """Raise QuotaExceeded if the claim does not fit; quantity is checked first."""
        if self.quantity > remaining:
            raise QuotaExceeded(self.work_item_id, self.quantity, remaining, "quantity")
        combined = self.quantity + self.overtime_quantity
        if self.overtime_quantity and combined > remaining:
            raise QuotaExceeded(self.work_item_id, combined, remaining, "overtime_quantity")


class WorkItemProgress(BaseModel):
    work_item_id: str
    total_quantity: int
    quantity_made: int

    @property
    def remaining(self) -> int:
        return self.total_quantity - self.quantity_made


# ---------------------------------------------------------------------------
# Work records
# ---------------------------------------------------------------------------

class WorkRecordInput(BaseModel):
    """Fields a caller supplies to create a work record."""

    model_config = {"str_strip_whitespace": True}

    employee_id: str
    work_date: date
    work_type_id: str
    work_item_id: Optional[str] = None
    quantity: Decimal
    unit_price: Optional[int] = None
    is_overtime: bool = False
    overtime_quantity: Optional[Decimal] = None
    overtime_hours: Optional[Decimal] = None
    notes: str = ""
    created_by: str = ""


class WorkRecordPatch(BaseModel):
    """Partial update of a work record; unset fields keep their stored value."""

    model_config = {"str_strip_whitespace": True}

    employee_id: Optional[str] = None
    work_date: Optional[date] = None
    work_type_id: Optional[str] = None
    work_item_id: Optional[str] = None
    quantity: Optional[Decimal] = None
    unit_price: Optional[int] = None
    is_overtime: Optional[bool] = None
    overtime_quantity: Optional[Decimal] = None
    overtime_hours: Optional[Decimal] = None
    notes: Optional[str] = None

    def apply_to(self, record: WorkRecord,
                 calculation_type: CalculationType | None = None) -> WorkRecordInput:
        """Merge this patch over a stored record into a full input.

        When ``calculation_type`` is the mode of a different work type, stored
        fields the new mode does not use are dropped; values sent in the patch
        are still applied.
        """
        base: dict[str, Any] = {
            "employee_id": record.employee_id,
            "work_date": record.work_date,
            "work_type_id": record.work_type_id,
            "work_item_id": record.work_item_id,
            "quantity": record.quantity,
            "unit_price": None if record.calculation_type == CalculationType.WELD_COUNT
            else record.unit_price,
            "is_overtime": record.is_overtime,
            "overtime_quantity": record.overtime_quantity,
            "overtime_hours": record.overtime_hours,
            "notes": record.notes,
            "created_by": record.created_by,
        }
        if calculation_type is not None and calculation_type != record.calculation_type:
            base["unit_price"] = None
            if calculation_type != CalculationType.WELD_COUNT:
                base["work_item_id"] = None
                base["overtime_quantity"] = None
            if calculation_type != CalculationType.HOURLY:
                base["overtime_hours"] = None
            if calculation_type == CalculationType.DAILY:
                base["is_overtime"] = False
        base.update(self.model_dump(exclude_unset=True))
        return WorkRecordInput.model_validate(base)


class WorkRecord(BaseModel):
    """A persisted work entry with its computed amount."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    employee_id: str
    work_date: date
    work_type_id: str
    work_item_id: Optional[str] = None
    calculation_type: CalculationType
    quantity: Decimal
    unit_price: int = 0
    is_overtime: bool = False
    overtime_quantity: Optional[int] = None
    overtime_hours: Optional[Decimal] = None
    base_amount: int = 0
    overtime_amount: int = 0
    total_amount: int = 0
    notes: str = ""
    created_by: str = ""
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def units_on(self, work_item_id: str) -> int:
        """Quantity this record books against the given work item."""
        if self.work_item_id != work_item_id:
            return 0
        return int(self.quantity)
