"""OvertimeConfigStore: per-work-type overtime differentials.

A missing config is not an error; callers treat ``None`` as a zero
differential. Weld-count types carry an extra price per weld, hourly types a
percentage surcharge, and daily types have no differential at all.
"""

from __future__ import annotations

from decimal import Decimal

from weldpay.core.exceptions import UnsupportedCalculationMode, ValidationError
from weldpay.core.protocols import ICatalogStore
from weldpay.models.work import CalculationType, OvertimeConfig, WorkType


class OvertimeConfigStore:
    """Reads and maintains overtime configs keyed by work type id."""

    def __init__(self, store: ICatalogStore) -> None:
        self._store = store

    def get(self, work_type_id: str) -> OvertimeConfig | None:
        return self._store.get_overtime_config(work_type_id)

    def configure(
        self,
        work_type: WorkType,
        *,
        overtime_price_per_weld: int | None = None,
        overtime_percentage: Decimal | None = None,
    ) -> OvertimeConfig:
        """Create or replace the config; only the field the mode uses is kept."""
        mode = work_type.calculation_type
        if mode == CalculationType.DAILY:
            raise UnsupportedCalculationMode(mode, "Overtime configuration")

        errors: dict[str, str] = {}
        price = overtime_price_per_weld or 0
        percentage = Decimal(overtime_percentage) if overtime_percentage is not None else Decimal("0")
        if mode == CalculationType.WELD_COUNT:
            if price < 0:
                errors["overtime_price_per_weld"] = "must be zero or greater"
            percentage = Decimal("0")
        else:
            if not Decimal("0") <= percentage <= Decimal("100"):
                errors["overtime_percentage"] = "must be between 0 and 100"
            price = 0
        if errors:
            raise ValidationError(errors)

        config = OvertimeConfig(
            work_type_id=work_type.id,
            overtime_price_per_weld=price,
            overtime_percentage=percentage,
        )
        self._store.put_overtime_config(config)
        return config

    def remove(self, work_type_id: str) -> None:
        self._store.delete_overtime_config(work_type_id)
