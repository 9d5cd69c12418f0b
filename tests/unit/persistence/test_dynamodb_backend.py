"""Unit tests for the DynamoDB catalog, ledger and salary stores using moto."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws

from weldpay.core.exceptions import ConcurrencyConflict, QuotaExceeded, StorageError
from weldpay.models.salary import MonthlySalary, SalaryPeriod, SalaryStatus
from weldpay.models.work import (
    CalculationType,
    OvertimeConfig,
    QuotaClaim,
    WorkItem,
    WorkRecord,
    WorkType,
)
from weldpay.persistence.dynamodb_backend import (
    _is_contention,
    DynamoDBCatalogStore,
    DynamoDBSalaryStore,
    DynamoDBWorkLedger,
)
from weldpay.persistence.memory_backend import MemoryCacheBackend

TABLE_SUFFIX = "-test"
REGION = "us-east-1"

# ---------- helpers ----------

def _create_table(client, name: str, pk: str = "PK", sk: str = "SK"):
    """Create a DynamoDB table with PK/SK key schema."""
    client.create_table(
        TableName=name,
        KeySchema=[
            {"AttributeName": pk, "KeyType": "HASH"},
            {"AttributeName": sk, "KeyType": "RANGE"},
        ],
        AttributeDefinitions=[
            {"AttributeName": pk, "AttributeType": "S"},
            {"AttributeName": sk, "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )


def _record(quantity, **overrides) -> WorkRecord:
    fields = {
        "employee_id": "emp-1",
        "work_date": date(2024, 5, 6),
        "work_type_id": "wt-weld",
        "work_item_id": "item-gate",
        "calculation_type": CalculationType.WELD_COUNT,
        "quantity": Decimal(quantity),
        "unit_price": 1000,
        "total_amount": quantity * 5000,
    }
    fields.update(overrides)
    return WorkRecord(**fields)


def _claim(quantity: int, overtime_quantity: int = 0) -> QuotaClaim:
    return QuotaClaim(
        work_item_id="item-gate", total_quantity=100,
        quantity=quantity, overtime_quantity=overtime_quantity,
    )


# ---------- fixtures ----------

@pytest.fixture
def aws():
    with mock_aws():
        ddb = boto3.resource("dynamodb", region_name=REGION)
        client = boto3.client("dynamodb", region_name=REGION)
        for name in ("weldpay-catalog", "weldpay-work-records", "weldpay-salaries"):
            _create_table(client, f"{name}{TABLE_SUFFIX}")
        yield ddb


@pytest.fixture
def catalog(aws):
    store = DynamoDBCatalogStore(table_suffix=TABLE_SUFFIX, region=REGION)
    store.put_work_type(WorkType(id="wt-weld", name="Weld", department="welding",
                                 calculation_type=CalculationType.WELD_COUNT))
    store.put_work_item(WorkItem(id="item-gate", name="Gate", price_per_weld=1000,
                                 welds_per_item=5, total_quantity=100))
    return store


@pytest.fixture
def ledger(catalog):
    return DynamoDBWorkLedger(table_suffix=TABLE_SUFFIX, region=REGION)


@pytest.fixture
def salaries(aws):
    return DynamoDBSalaryStore(table_suffix=TABLE_SUFFIX, region=REGION)


# ---------- catalog ----------

class TestCatalog:
    def test_work_type_round_trip(self, catalog):
        work_type = catalog.get_work_type("wt-weld")
        assert work_type.calculation_type == CalculationType.WELD_COUNT
        assert catalog.get_work_type("missing") is None

    def test_list_work_types_by_department(self, catalog):
        catalog.put_work_type(WorkType(id="wt-hourly", name="Assembly", department="assembly",
                                       calculation_type=CalculationType.HOURLY, unit_price=50000))
        assert {wt.id for wt in catalog.list_work_types()} == {"wt-weld", "wt-hourly"}
        assert [wt.id for wt in catalog.list_work_types("assembly")] == ["wt-hourly"]

    def test_put_work_item_keeps_quota_counter(self, catalog, ledger):
        ledger.commit_record(_record(10), claim=_claim(10))
        catalog.put_work_item(WorkItem(id="item-gate", name="Gate v2", price_per_weld=1200,
                                       welds_per_item=5, total_quantity=120))
        assert catalog.get_work_item("item-gate").name == "Gate v2"
        assert ledger.quantity_made("item-gate") == 10

    def test_overtime_config_put_get_delete(self, catalog):
        catalog.put_overtime_config(OvertimeConfig(work_type_id="wt-weld", overtime_price_per_weld=500))
        assert catalog.get_overtime_config("wt-weld").overtime_price_per_weld == 500
        catalog.delete_overtime_config("wt-weld")
        assert catalog.get_overtime_config("wt-weld") is None

    def test_overtime_percentage_keeps_decimal(self, catalog):
        catalog.put_overtime_config(OvertimeConfig(work_type_id="wt-h", overtime_percentage=Decimal("12.5")))
        assert catalog.get_overtime_config("wt-h").overtime_percentage == Decimal("12.5")


class TestCatalogCache:
    def test_reads_are_cached(self, aws):
        cache = MemoryCacheBackend()
        store = DynamoDBCatalogStore(table_suffix=TABLE_SUFFIX, region=REGION, cache=cache)
        store.put_work_type(WorkType(id="wt-d", name="Daily", calculation_type=CalculationType.DAILY,
                                     unit_price=400000))
        assert store.get_work_type("wt-d").unit_price == 400000
        assert cache.get("work_type:wt-d") is not None

    def test_put_invalidates_cache(self, aws):
        cache = MemoryCacheBackend()
        store = DynamoDBCatalogStore(table_suffix=TABLE_SUFFIX, region=REGION, cache=cache)
        store.put_overtime_config(OvertimeConfig(work_type_id="wt", overtime_price_per_weld=1))
        store.get_overtime_config("wt")
        store.put_overtime_config(OvertimeConfig(work_type_id="wt", overtime_price_per_weld=2))
        assert cache.get("overtime:wt") is None
        assert store.get_overtime_config("wt").overtime_price_per_weld == 2


# ---------- ledger ----------

class TestLedger:
    def test_commit_books_quantity(self, ledger):
        record = ledger.commit_record(_record(60), claim=_claim(60))
        stored = ledger.get_record(record.id)
        assert stored.quantity == Decimal("60")
        assert stored.total_amount == 300000
        assert ledger.quantity_made("item-gate") == 60
        assert ledger.quantity_made("item-gate", exclude_record_id=record.id) == 0

    def test_commit_over_quota_writes_nothing(self, ledger):
        ledger.commit_record(_record(60), claim=_claim(60))
        with pytest.raises(QuotaExceeded) as exc_info:
            ledger.commit_record(_record(50), claim=_claim(50))
        assert exc_info.value.remaining == 40
        assert ledger.quantity_made("item-gate") == 60
        assert len(ledger.list_records()) == 1

    def test_update_replaces_own_contribution(self, ledger):
        record = ledger.commit_record(_record(60), claim=_claim(60))
        edited = record.model_copy(update={"quantity": Decimal(100), "updated_at": record.updated_at.replace(year=2025)})
        ledger.commit_record(edited, previous=record, claim=_claim(100))
        assert ledger.quantity_made("item-gate") == 100

    def test_update_from_stale_copy_conflicts(self, ledger):
        record = ledger.commit_record(_record(10), claim=_claim(10))
        first = record.model_copy(update={"quantity": Decimal(20), "updated_at": record.updated_at.replace(year=2025)})
        ledger.commit_record(first, previous=record, claim=_claim(20))
        second = record.model_copy(update={"quantity": Decimal(30), "updated_at": record.updated_at.replace(year=2026)})
        with pytest.raises(ConcurrencyConflict):
            ledger.commit_record(second, previous=record, claim=_claim(30))
        assert ledger.quantity_made("item-gate") == 20

    def test_remove_frees_quota(self, ledger):
        record = ledger.commit_record(_record(60), claim=_claim(60))
        ledger.remove_record(record)
        assert ledger.get_record(record.id) is None
        assert ledger.quantity_made("item-gate") == 0

    def test_list_records_by_range(self, ledger):
        ledger.commit_record(_record(1, work_date=date(2024, 4, 30)))
        ledger.commit_record(_record(1, work_date=date(2024, 5, 2)))
        ledger.commit_record(_record(1, work_date=date(2024, 5, 1), employee_id="emp-2"))
        records = ledger.list_records(start=date(2024, 5, 1), end=date(2024, 5, 31))
        assert [r.work_date for r in records] == [date(2024, 5, 1), date(2024, 5, 2)]
        assert len(ledger.list_records(employee_id="emp-2")) == 1



class TestLedgerContention:
    def _race(self, aws, ledger, monkeypatch, competitor_units: int):
        """Let a competing writer book units between the counter read and the transaction."""
        read_counter = ledger._read_counter
        calls = []

        def racing_read(work_item_id):
            made, version = read_counter(work_item_id)
            if not calls:
                aws.Table(f"weldpay-catalog{TABLE_SUFFIX}").update_item(
                    Key={"PK": f"ITEM#{work_item_id}", "SK": "ITEM"},
                    UpdateExpression="SET #made = :made, #ver = :next",
                    ExpressionAttributeNames={"#made": "quantity_made", "#ver": "version"},
                    ExpressionAttributeValues={":made": made + competitor_units, ":next": version + 1},
                )
            calls.append(work_item_id)
            return made, version

        monkeypatch.setattr(ledger, "_read_counter", racing_read)
        return calls

    def test_lost_version_race_is_retried(self, aws, ledger, monkeypatch):
        calls = self._race(aws, ledger, monkeypatch, competitor_units=5)
        ledger.commit_record(_record(10), claim=_claim(10))
        assert len(calls) == 2
        assert ledger.quantity_made("item-gate") == 15

    def test_retry_rechecks_quota_against_fresh_counter(self, aws, ledger, monkeypatch):
        self._race(aws, ledger, monkeypatch, competitor_units=95)
        with pytest.raises(QuotaExceeded) as exc_info:
            ledger.commit_record(_record(10), claim=_claim(10))
        assert exc_info.value.remaining == 5
        assert ledger.quantity_made("item-gate") == 95
        assert ledger.list_records() == []

    def test_missing_table_is_storage_error(self, aws):
        ledger = DynamoDBWorkLedger(table_suffix="-absent", region=REGION)
        with pytest.raises(StorageError):
            ledger.remove_record(_record(1, work_item_id=None))

    @pytest.mark.parametrize(("codes", "expected"), [
        (["None", "ConditionalCheckFailed"], True),
        (["TransactionConflict", "None"], True),
        (["ValidationError", "None"], False),
    ])
    def test_only_contention_is_retryable(self, codes, expected):
        exc = ClientError(
            {
                "Error": {"Code": "TransactionCanceledException", "Message": "cancelled"},
                "CancellationReasons": [{"Code": code} for code in codes],
            },
            "TransactWriteItems",
        )
        assert _is_contention(exc) is expected


# ---------- salaries ----------

class TestSalaryStore:
    def _salary(self, **overrides) -> MonthlySalary:
        fields = {"id": "s1", "employee_id": "emp-1", "period": SalaryPeriod.for_month(2024, 5),
                  "total_amount": 900000, "total_work_days": 2}
        fields.update(overrides)
        return MonthlySalary(**fields)

    def test_save_and_get(self, salaries):
        stored = salaries.save(self._salary(), expected_version=None)
        assert stored.version == 1
        loaded = salaries.get("s1")
        assert loaded.period == SalaryPeriod.for_month(2024, 5)
        assert loaded.total_amount == 900000
        assert loaded.status == SalaryStatus.DRAFT

    def test_create_existing_conflicts(self, salaries):
        salaries.save(self._salary(), expected_version=None)
        with pytest.raises(ConcurrencyConflict):
            salaries.save(self._salary(), expected_version=None)

    def test_stale_version_conflicts(self, salaries):
        stored = salaries.save(self._salary(), expected_version=None)
        salaries.save(stored.model_copy(update={"status": SalaryStatus.PAID}), expected_version=1)
        with pytest.raises(ConcurrencyConflict):
            salaries.save(stored.model_copy(update={"allowances": 1}), expected_version=1)
        assert salaries.get("s1").status == SalaryStatus.PAID

    def test_list_by_period(self, salaries):
        salaries.save(self._salary(), expected_version=None)
        salaries.save(self._salary(id="s2", period=SalaryPeriod.for_month(2024, 6)), expected_version=None)
        may = salaries.list_salaries(period=SalaryPeriod.for_month(2024, 5))
        assert [s.id for s in may] == ["s1"]
        assert len(salaries.list_salaries(employee_id="emp-1")) == 2

    def test_delete_checks_version(self, salaries):
        salaries.save(self._salary(), expected_version=None)
        with pytest.raises(ConcurrencyConflict):
            salaries.delete("s1", expected_version=3)
        salaries.delete("s1", expected_version=1)
        assert salaries.get("s1") is None
