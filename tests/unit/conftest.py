"""Shared unit-test fixtures: a seeded in-memory catalog and a wired PayrollService."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from tests.fakes import MemoryCatalogStore, MemorySalaryStore, MemoryWorkLedger
from weldpay.core.config import PayrollConfig
from weldpay.models.work import CalculationType, OvertimeConfig, WorkItem, WorkType
from weldpay.payroll.service import PayrollService


class TickingClock:
    """Deterministic clock that advances one minute per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 6, 1, 8, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(minutes=1)
        return self.now


WELD_TYPE = WorkType(id="wt-weld", name="Frame welding", department="welding",
                     calculation_type=CalculationType.WELD_COUNT)
HOURLY_TYPE = WorkType(id="wt-hourly", name="Assembly", department="assembly",
                       calculation_type=CalculationType.HOURLY, unit_price=50000)
DAILY_TYPE = WorkType(id="wt-daily", name="Cleanup", department="general",
                      calculation_type=CalculationType.DAILY, unit_price=400000)
GATE = WorkItem(id="item-gate", name="Gate frame", price_per_weld=1000,
                welds_per_item=5, total_quantity=100)
RAIL = WorkItem(id="item-rail", name="Stair rail", price_per_weld=2000,
                welds_per_item=2, total_quantity=10)


@pytest.fixture
def catalog_store():
    store = MemoryCatalogStore()
    for wt in (WELD_TYPE, HOURLY_TYPE, DAILY_TYPE):
        store.put_work_type(wt)
    store.put_work_item(GATE)
    store.put_work_item(RAIL)
    store.put_overtime_config(OvertimeConfig(work_type_id="wt-weld", overtime_price_per_weld=500))
    store.put_overtime_config(OvertimeConfig(work_type_id="wt-hourly", overtime_percentage=Decimal("50")))
    return store


@pytest.fixture
def ledger():
    return MemoryWorkLedger()


@pytest.fixture
def salary_store():
    return MemorySalaryStore()


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def payroll_config():
    return PayrollConfig()


@pytest.fixture
def service(catalog_store, ledger, salary_store, clock, payroll_config):
    return PayrollService(catalog_store, ledger, salary_store, config=payroll_config, clock=clock)
