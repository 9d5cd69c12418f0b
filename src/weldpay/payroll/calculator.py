"""PayrollLineCalculator: turns one work entry into money.

This module is the single source of the amount and validation rules used by
every write path (create, update). The pure functions ``validate_inputs``,
``resolve_pricing``, ``line_amount`` and ``compute`` do no I/O;
``PayrollLineCalculator`` wires them to the catalog, overtime and quota
lookups.

Amounts by calculation mode:
    weld_count  quantity x welds_per_item x price_per_weld
                + overtime_quantity x welds_per_item x (price_per_weld + overtime_price_per_weld)
    hourly      quantity x unit_price
                + overtime_hours x unit_price x (1 + overtime_percentage / 100)
    daily       quantity x unit_price (no overtime)

Fractional components are rounded half-up to whole currency units before
they are summed.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, assert_never

from pydantic import BaseModel

from weldpay.core.exceptions import UnsupportedCalculationMode, ValidationError
from weldpay.models.work import (
    CalculationType,
    DailyPricing,
    HourlyPricing,
    LineAmount,
    OvertimeConfig,
    Pricing,
    QuotaClaim,
    WeldCountPricing,
    WorkItem,
    WorkRecordInput,
    WorkType,
)
from weldpay.payroll.catalog import WorkTypeCatalog
from weldpay.payroll.overtime import OvertimeConfigStore
from weldpay.payroll.quota import WorkItemQuotaTracker

MIN_QUANTITY = Decimal("0.01")
OVERTIME_HOURS_STEP = Decimal("0.5")


class LineInputs(BaseModel):
    """Validated, normalized quantities for one line."""

    calculation_type: CalculationType
    quantity: Decimal
    unit_price: int
    is_overtime: bool = False
    overtime_quantity: Optional[int] = None
    overtime_hours: Optional[Decimal] = None


def _to_money(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _as_decimal(value: object) -> Decimal | None:
    if value is None:
        return None
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("NaN")
    return number


def _is_whole(value: Decimal) -> bool:
    return value.is_finite() and value == value.to_integral_value()


def validate_inputs(
    work_type: WorkType,
    work_item: WorkItem | None = None,
    *,
    quantity: object,
    is_overtime: bool = False,
    overtime_quantity: object = None,
    overtime_hours: object = None,
    unit_price: int | None = None,
) -> LineInputs:
    """Check every field and return normalized inputs.

    Raises UnsupportedCalculationMode for overtime on a daily work type and a
    single ValidationError listing every failing field otherwise.
    """
    mode = work_type.calculation_type
    qty = _as_decimal(quantity)
    ot_qty = _as_decimal(overtime_quantity)
    ot_hours = _as_decimal(overtime_hours)

    if mode == CalculationType.DAILY and (is_overtime or ot_qty is not None or ot_hours is not None):
        raise UnsupportedCalculationMode(mode, "Overtime")

    errors: dict[str, str] = {}

    if qty is None:
        errors["quantity"] = "is required"
    elif mode == CalculationType.WELD_COUNT:
        if not _is_whole(qty) or qty < 1:
            errors["quantity"] = "must be a whole number of at least 1"
    elif not qty.is_finite() or qty < MIN_QUANTITY:
        errors["quantity"] = f"must be at least {MIN_QUANTITY}"

    if mode == CalculationType.WELD_COUNT:
        if work_item is None:
            errors["work_item_id"] = "is required for weld_count work types"
        price = work_item.price_per_weld if work_item is not None else 0
    else:
        price = work_type.unit_price if unit_price is None else unit_price
        if price < 0:
            errors["unit_price"] = "must be zero or greater"

    if not is_overtime:
        ot_qty = ot_hours = None
    elif mode == CalculationType.WELD_COUNT:
        if ot_qty is None:
            errors["overtime_quantity"] = "is required for overtime"
        elif not _is_whole(ot_qty) or ot_qty < 1:
            errors["overtime_quantity"] = "must be a whole number of at least 1"
        if ot_hours is not None:
            errors["overtime_hours"] = "is not used by weld_count work types"
    elif mode == CalculationType.HOURLY:
        if ot_hours is None:
            errors["overtime_hours"] = "is required for overtime"
        elif (not ot_hours.is_finite() or ot_hours < OVERTIME_HOURS_STEP
              or ot_hours % OVERTIME_HOURS_STEP != 0):
            errors["overtime_hours"] = f"must be a multiple of {OVERTIME_HOURS_STEP} and at least {OVERTIME_HOURS_STEP}"
        if ot_qty is not None:
            errors["overtime_quantity"] = "is not used by hourly work types"

    if errors:
        raise ValidationError(errors)

    return LineInputs(
        calculation_type=mode,
        quantity=qty,
        unit_price=price,
        is_overtime=is_overtime,
        overtime_quantity=int(ot_qty) if ot_qty is not None else None,
        overtime_hours=ot_hours,
    )


def resolve_pricing(
    work_type: WorkType,
    work_item: WorkItem | None = None,
    overtime_config: OvertimeConfig | None = None,
    unit_price: int | None = None,
) -> Pricing:
    """Build the mode-specific pricing from catalog entities."""
    mode = work_type.calculation_type
    price = work_type.unit_price if unit_price is None else unit_price
    if mode == CalculationType.WELD_COUNT:
        if work_item is None:
            raise ValidationError({"work_item_id": "is required for weld_count work types"})
        return WeldCountPricing(
            price_per_weld=work_item.price_per_weld,
            welds_per_item=work_item.welds_per_item,
            overtime_price_per_weld=overtime_config.overtime_price_per_weld if overtime_config else 0,
        )
    if mode == CalculationType.HOURLY:
        return HourlyPricing(
            unit_price=price,
            overtime_percentage=overtime_config.overtime_percentage if overtime_config else Decimal("0"),
        )
    if mode == CalculationType.DAILY:
        return DailyPricing(unit_price=price)
    assert_never(mode)


def line_amount(pricing: Pricing, inputs: LineInputs) -> LineAmount:
    """Compute base and overtime amounts for validated inputs."""
    if isinstance(pricing, WeldCountPricing):
        per_unit = pricing.welds_per_item * pricing.price_per_weld
        base = _to_money(inputs.quantity * per_unit)
        overtime = 0
        if inputs.is_overtime and inputs.overtime_quantity:
            overtime = inputs.overtime_quantity * pricing.welds_per_item * pricing.overtime_price
        return LineAmount(base_amount=base, overtime_amount=overtime)
    if isinstance(pricing, HourlyPricing):
        base = _to_money(inputs.quantity * pricing.unit_price)
        overtime = 0
        if inputs.is_overtime and inputs.overtime_hours:
            rate = 1 + pricing.overtime_percentage / 100
            overtime = _to_money(inputs.overtime_hours * pricing.unit_price * rate)
        return LineAmount(base_amount=base, overtime_amount=overtime)
    if isinstance(pricing, DailyPricing):
        return LineAmount(base_amount=_to_money(inputs.quantity * pricing.unit_price))
    assert_never(pricing)


def quota_claim(work_item: WorkItem, inputs: LineInputs) -> QuotaClaim:
    return QuotaClaim(
        work_item_id=work_item.id,
        total_quantity=work_item.total_quantity,
        quantity=int(inputs.quantity),
        overtime_quantity=inputs.overtime_quantity or 0,
    )


def compute(
    work_type: WorkType,
    work_item: WorkItem | None = None,
    overtime_config: OvertimeConfig | None = None,
    *,
    quantity: object,
    is_overtime: bool = False,
    overtime_quantity: object = None,
    overtime_hours: object = None,
    unit_price: int | None = None,
    remaining: int | None = None,
) -> LineAmount:
    """Validate one line and return its amounts.

    When ``remaining`` is given for a weld-count line the quota is checked
    after field validation: quantity alone first, then quantity plus
    overtime quantity.
    """
    inputs = validate_inputs(
        work_type,
        work_item,
        quantity=quantity,
        is_overtime=is_overtime,
        overtime_quantity=overtime_quantity,
        overtime_hours=overtime_hours,
        unit_price=unit_price,
    )
    if remaining is not None and work_item is not None and inputs.calculation_type == CalculationType.WELD_COUNT:
        quota_claim(work_item, inputs).check(remaining)
    pricing = resolve_pricing(work_type, work_item, overtime_config, inputs.unit_price)
    return line_amount(pricing, inputs)


class PricedLine(BaseModel):
    """A fully resolved line ready to be written to the ledger."""

    work_type: WorkType
    work_item: Optional[WorkItem] = None
    inputs: LineInputs
    amount: LineAmount
    claim: Optional[QuotaClaim] = None


class PayrollLineCalculator:
    """Prices work record inputs against the catalog, overtime configs and quotas."""

    def __init__(
        self,
        catalog: WorkTypeCatalog,
        overtime: OvertimeConfigStore,
        quota: WorkItemQuotaTracker,
    ) -> None:
        self._catalog = catalog
        self._overtime = overtime
        self._quota = quota

    def price(self, dto: WorkRecordInput, *, exclude_record_id: str | None = None) -> PricedLine:
        work_type = self._catalog.require_work_type(dto.work_type_id)
        mode = work_type.calculation_type

        work_item = None
        if mode == CalculationType.WELD_COUNT and dto.work_item_id:
            work_item = self._catalog.require_work_item(dto.work_item_id)
        overtime_config = self._overtime.get(work_type.id) if mode != CalculationType.DAILY else None

        inputs = validate_inputs(
            work_type,
            work_item,
            quantity=dto.quantity,
            is_overtime=dto.is_overtime,
            overtime_quantity=dto.overtime_quantity,
            overtime_hours=dto.overtime_hours,
            unit_price=dto.unit_price,
        )

        claim = None
        if work_item is not None:
            claim = quota_claim(work_item, inputs)
            claim.check(self._quota.remaining(work_item.id, exclude_record_id))

        pricing = resolve_pricing(work_type, work_item, overtime_config, inputs.unit_price)
        return PricedLine(
            work_type=work_type,
            work_item=work_item,
            inputs=inputs,
            amount=line_amount(pricing, inputs),
            claim=claim,
        )
