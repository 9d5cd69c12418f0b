"""DynamoDB backends implementing ICatalogStore, IWorkLedger and ISalaryStore.

Tables (PK/SK string keys, suffixed per environment):
    weldpay-catalog       WORKTYPE#id, ITEM#id (carries the quota counter), OVERTIME#work_type_id
    weldpay-work-records  RECORD#id
    weldpay-salaries      SALARY#id

Quota counters use an optimistic ``version`` attribute on the work item row;
the counter update and the record write go through one TransactWriteItems
call so a concurrent writer can never overbook an item.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Optional

import boto3
from boto3.dynamodb.conditions import Attr
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError
from pydantic import BaseModel

from weldpay.core.exceptions import ConcurrencyConflict, StorageError
from weldpay.models.salary import MonthlySalary, SalaryPeriod
from weldpay.models.work import (
    OvertimeConfig,
    QuotaClaim,
    WorkItem,
    WorkRecord,
    WorkType,
)

logger = logging.getLogger(__name__)

CATALOG_TABLE = "weldpay-catalog"
RECORDS_TABLE = "weldpay-work-records"
SALARIES_TABLE = "weldpay-salaries"

_serializer = TypeSerializer()


def _decode_decimals(item: dict[str, Any]) -> dict[str, Any]:
    """Convert Decimal values in a DynamoDB item to int/float."""
    out: dict[str, Any] = {}
    for k, v in item.items():
        if isinstance(v, Decimal):
            out[k] = int(v) if v == int(v) else float(v)
        elif isinstance(v, dict):
            out[k] = _decode_decimals(v)
        else:
            out[k] = v
    return out


def _to_item(model: BaseModel, pk: str, sk: str, **extra: Any) -> dict[str, Any]:
    """Dump a model into a DynamoDB item; Decimals and dates become strings, computed fields are dropped."""
    item = model.model_dump(mode="json", exclude=set(type(model).model_computed_fields))
    item.update(extra)
    item["PK"] = pk
    item["SK"] = sk
    return item


def _serialize(item: dict[str, Any]) -> dict[str, Any]:
    return {k: _serializer.serialize(v) for k, v in item.items()}


def _dynamo_resource(region: str, endpoint_url: str | None):
    kwargs: dict = {"region_name": region}
    if endpoint_url:
        kwargs["endpoint_url"] = endpoint_url
    return boto3.resource("dynamodb", **kwargs)


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


_RETRYABLE_CANCELLATIONS = {"ConditionalCheckFailed", "TransactionConflict"}


def _is_contention(exc: ClientError) -> bool:
    """True when a cancelled transaction lost a condition check or a concurrent write."""
    if _error_code(exc) != "TransactionCanceledException":
        return False
    codes = {
        reason.get("Code", "None")
        for reason in exc.response.get("CancellationReasons", [])
    } - {"None"}
    return not codes or codes <= _RETRYABLE_CANCELLATIONS


class _DynamoTables:
    """Shared table access for the WeldPay DynamoDB stores."""

    def __init__(self, table_suffix: str = "", region: str = "us-east-1",
                 endpoint_url: str | None = None) -> None:
        self._table_suffix = table_suffix
        self._region = region
        self._endpoint_url = endpoint_url
        self._ddb = _dynamo_resource(region, endpoint_url)

    def _table_name(self, base: str) -> str:
        return f"{base}{self._table_suffix}"

    def _table(self, base: str):
        return self._ddb.Table(self._table_name(base))

    def _get_item(self, table_base: str, pk: str, sk: str) -> dict[str, Any] | None:
        """Get a single item by PK + SK. Returns None if not found."""
        try:
            resp = self._table(table_base).get_item(Key={"PK": pk, "SK": sk}, ConsistentRead=True)
        except ClientError as exc:
            raise StorageError(f"DynamoDB GET {pk} failed: {exc}") from exc
        item = resp.get("Item")
        return _decode_decimals(item) if item else None

    def _scan(self, table_base: str, condition: Any = None) -> list[dict[str, Any]]:
        """Scan a table, following pagination."""
        tbl = self._table(table_base)
        kwargs: dict[str, Any] = {"ConsistentRead": True}
        if condition is not None:
            kwargs["FilterExpression"] = condition
        items: list[dict[str, Any]] = []
        try:
            while True:
                resp = tbl.scan(**kwargs)
                items.extend(_decode_decimals(i) for i in resp.get("Items", []))
                last = resp.get("LastEvaluatedKey")
                if not last:
                    return items
                kwargs["ExclusiveStartKey"] = last
        except ClientError as exc:
            raise StorageError(f"DynamoDB SCAN {table_base} failed: {exc}") from exc


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

class DynamoDBCatalogStore(_DynamoTables):
    """Production ICatalogStore backed by DynamoDB + optional Redis cache."""

    CACHE_TTL = 300  # 5 minutes

    def __init__(self, table_suffix: str = "", region: str = "us-east-1",
                 endpoint_url: str | None = None, cache: Any = None,
                 cache_ttl: int | None = None) -> None:
        super().__init__(table_suffix, region, endpoint_url)
        self._cache = cache
        self._cache_ttl = cache_ttl or self.CACHE_TTL

    def _cached(self, cache_key: str, pk: str, sk: str) -> dict[str, Any] | None:
        if self._cache is not None:
            cached = self._cache.get(cache_key)
            if cached is not None:
                return json.loads(cached)
        item = self._get_item(CATALOG_TABLE, pk, sk)
        if item is not None and self._cache is not None:
            self._cache.setex(cache_key, self._cache_ttl, json.dumps(item))
        return item

    def _invalidate(self, cache_key: str) -> None:
        if self._cache is not None:
            self._cache.delete(cache_key)

    def _put(self, item: dict[str, Any]) -> None:
        try:
            self._table(CATALOG_TABLE).put_item(Item=item)
        except ClientError as exc:
            raise StorageError(f"DynamoDB PUT {item['PK']} failed: {exc}") from exc

    # ---- work types ----

    def get_work_type(self, work_type_id: str) -> WorkType | None:
        item = self._cached(f"work_type:{work_type_id}", f"WORKTYPE#{work_type_id}", "WORKTYPE")
        return WorkType.model_validate(item) if item else None

    def list_work_types(self, department: str | None = None) -> list[WorkType]:
        condition = Attr("SK").eq("WORKTYPE")
        if department is not None:
            condition = condition & Attr("department").eq(department)
        return [WorkType.model_validate(i) for i in self._scan(CATALOG_TABLE, condition)]

    def put_work_type(self, work_type: WorkType) -> None:
        self._put(_to_item(work_type, f"WORKTYPE#{work_type.id}", "WORKTYPE"))
        self._invalidate(f"work_type:{work_type.id}")

    # ---- work items ----

    def get_work_item(self, work_item_id: str) -> WorkItem | None:
        item = self._get_item(CATALOG_TABLE, f"ITEM#{work_item_id}", "ITEM")
        return WorkItem.model_validate(item) if item else None

    def put_work_item(self, work_item: WorkItem) -> None:
        """Upsert the item's fields, leaving its quota counter untouched."""
        fields = work_item.model_dump(mode="json")
        names = {f"#f{i}": k for i, k in enumerate(fields)}
        values = {f":v{i}": v for i, v in enumerate(fields.values())}
        sets = [f"#f{i} = :v{i}" for i in range(len(fields))]
        sets.append("#made = if_not_exists(#made, :zero)")
        sets.append("#ver = if_not_exists(#ver, :zero)")
        names.update({"#made": "quantity_made", "#ver": "version"})
        values[":zero"] = 0
        try:
            self._table(CATALOG_TABLE).update_item(
                Key={"PK": f"ITEM#{work_item.id}", "SK": "ITEM"},
                UpdateExpression="SET " + ", ".join(sets),
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
            )
        except ClientError as exc:
            raise StorageError(f"DynamoDB UPDATE ITEM#{work_item.id} failed: {exc}") from exc

    # ---- overtime configs ----

    def get_overtime_config(self, work_type_id: str) -> OvertimeConfig | None:
        item = self._cached(f"overtime:{work_type_id}", f"OVERTIME#{work_type_id}", "OVERTIME")
        return OvertimeConfig.model_validate(item) if item else None

    def put_overtime_config(self, config: OvertimeConfig) -> None:
        self._put(_to_item(config, f"OVERTIME#{config.work_type_id}", "OVERTIME"))
        self._invalidate(f"overtime:{config.work_type_id}")

    def delete_overtime_config(self, work_type_id: str) -> None:
        try:
            self._table(CATALOG_TABLE).delete_item(
                Key={"PK": f"OVERTIME#{work_type_id}", "SK": "OVERTIME"},
            )
        except ClientError as exc:
            raise StorageError(f"DynamoDB DELETE OVERTIME#{work_type_id} failed: {exc}") from exc
        self._invalidate(f"overtime:{work_type_id}")


# ---------------------------------------------------------------------------
# Work ledger
# ---------------------------------------------------------------------------

class DynamoDBWorkLedger(_DynamoTables):
    """Production IWorkLedger with transactional quota counters."""

    def __init__(self, table_suffix: str = "", region: str = "us-east-1",
                 endpoint_url: str | None = None, max_retries: int = 3) -> None:
        super().__init__(table_suffix, region, endpoint_url)
        self._max_retries = max_retries
        # low-level client: transaction items are already in wire format
        kwargs: dict = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._client = boto3.client("dynamodb", **kwargs)

    def get_record(self, record_id: str) -> WorkRecord | None:
        item = self._get_item(RECORDS_TABLE, f"RECORD#{record_id}", "RECORD")
        return WorkRecord.model_validate(item) if item else None

    def list_records(
        self,
        *,
        employee_id: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        work_item_id: Optional[str] = None,
    ) -> list[WorkRecord]:
        condition = Attr("SK").eq("RECORD")
        if employee_id is not None:
            condition = condition & Attr("employee_id").eq(employee_id)
        if start is not None:
            condition = condition & Attr("work_date").gte(start.isoformat())
        if end is not None:
            condition = condition & Attr("work_date").lte(end.isoformat())
        if work_item_id is not None:
            condition = condition & Attr("work_item_id").eq(work_item_id)
        records = [WorkRecord.model_validate(i) for i in self._scan(RECORDS_TABLE, condition)]
        return sorted(records, key=lambda r: (r.work_date, r.created_at))

    def _read_counter(self, work_item_id: str) -> tuple[int, int]:
        item = self._get_item(CATALOG_TABLE, f"ITEM#{work_item_id}", "ITEM")
        if item is None:
            raise StorageError(f"Work item {work_item_id} has no catalog row")
        return int(item.get("quantity_made", 0)), int(item.get("version", 0))

    def quantity_made(self, work_item_id: str, exclude_record_id: str | None = None) -> int:
        made, _ = self._read_counter(work_item_id)
        if exclude_record_id is not None:
            excluded = self.get_record(exclude_record_id)
            if excluded is not None:
                made -= excluded.units_on(work_item_id)
        return made

    def _counter_update(self, work_item_id: str, new_made: int, version: int) -> dict[str, Any]:
        return {
            "Update": {
                "TableName": self._table_name(CATALOG_TABLE),
                "Key": _serialize({"PK": f"ITEM#{work_item_id}", "SK": "ITEM"}),
                "UpdateExpression": "SET #made = :made, #ver = :next",
                "ConditionExpression": "attribute_exists(PK) AND (attribute_not_exists(#ver) OR #ver = :ver)",
                "ExpressionAttributeNames": {"#made": "quantity_made", "#ver": "version"},
                "ExpressionAttributeValues": _serialize(
                    {":made": new_made, ":ver": version, ":next": version + 1}
                ),
            }
        }

    def _counter_writes(self, record: WorkRecord | None, previous: WorkRecord | None,
                        claim: QuotaClaim | None) -> list[dict[str, Any]]:
        """Read affected counters, enforce the claim, and build conditional updates."""
        deltas: dict[str, int] = {}
        if previous is not None and previous.work_item_id:
            deltas[previous.work_item_id] = -previous.units_on(previous.work_item_id)
        if record is not None and record.work_item_id:
            item_id = record.work_item_id
            deltas[item_id] = deltas.get(item_id, 0) + record.units_on(item_id)
        if claim is not None:
            deltas.setdefault(claim.work_item_id, 0)

        writes = []
        for item_id, delta in deltas.items():
            made, version = self._read_counter(item_id)
            if claim is not None and item_id == claim.work_item_id:
                own = previous.units_on(item_id) if previous is not None else 0
                claim.check(claim.total_quantity - (made - own))
            if delta:
                writes.append(self._counter_update(item_id, made + delta, version))
        return writes

    def _transact(self, build, description: str) -> None:
        for attempt in range(1, self._max_retries + 1):
            items = build()
            try:
                self._client.transact_write_items(TransactItems=items)
                return
            except ClientError as exc:
                if not _is_contention(exc):
                    raise StorageError(f"DynamoDB transaction for {description} failed: {exc}") from exc
                logger.warning(
                    "Transaction for %s cancelled (attempt %d/%d)",
                    description, attempt, self._max_retries,
                )
        raise ConcurrencyConflict(
            f"Transaction for {description} kept conflicting after {self._max_retries} attempts"
        )

    def commit_record(
        self,
        record: WorkRecord,
        *,
        previous: WorkRecord | None = None,
        claim: QuotaClaim | None = None,
    ) -> WorkRecord:
        put: dict[str, Any] = {
            "TableName": self._table_name(RECORDS_TABLE),
            "Item": _serialize(_to_item(record, f"RECORD#{record.id}", "RECORD")),
        }
        if previous is None:
            put["ConditionExpression"] = "attribute_not_exists(PK)"
        else:
            put["ConditionExpression"] = "updated_at = :prev"
            put["ExpressionAttributeValues"] = _serialize(
                {":prev": previous.model_dump(mode="json")["updated_at"]}
            )

        def build() -> list[dict[str, Any]]:
            return [*self._counter_writes(record, previous, claim), {"Put": put}]

        self._transact(build, f"record {record.id}")
        return record

    def remove_record(self, record: WorkRecord) -> None:
        delete = {
            "Delete": {
                "TableName": self._table_name(RECORDS_TABLE),
                "Key": _serialize({"PK": f"RECORD#{record.id}", "SK": "RECORD"}),
                "ConditionExpression": "attribute_exists(PK)",
            }
        }

        def build() -> list[dict[str, Any]]:
            return [*self._counter_writes(None, record, None), delete]

        self._transact(build, f"record {record.id}")


# ---------------------------------------------------------------------------
# Salaries
# ---------------------------------------------------------------------------

class DynamoDBSalaryStore(_DynamoTables):
    """Production ISalaryStore with conditional writes on ``version``."""

    def get(self, salary_id: str) -> MonthlySalary | None:
        item = self._get_item(SALARIES_TABLE, f"SALARY#{salary_id}", "SALARY")
        return MonthlySalary.model_validate(item) if item else None

    def list_salaries(
        self,
        *,
        employee_id: Optional[str] = None,
        period: Optional[SalaryPeriod] = None,
    ) -> list[MonthlySalary]:
        condition = Attr("SK").eq("SALARY")
        if employee_id is not None:
            condition = condition & Attr("employee_id").eq(employee_id)
        if period is not None:
            condition = condition & Attr("period_key").eq(period.key)
        return [MonthlySalary.model_validate(i) for i in self._scan(SALARIES_TABLE, condition)]

    def save(self, salary: MonthlySalary, *, expected_version: int | None) -> MonthlySalary:
        stored = salary.model_copy(update={"version": (expected_version or 0) + 1})
        item = _to_item(stored, f"SALARY#{salary.id}", "SALARY", period_key=salary.period.key)
        kwargs: dict[str, Any] = {"Item": item}
        if expected_version is None:
            kwargs["ConditionExpression"] = "attribute_not_exists(PK)"
        else:
            kwargs["ConditionExpression"] = "#ver = :ver"
            kwargs["ExpressionAttributeNames"] = {"#ver": "version"}
            kwargs["ExpressionAttributeValues"] = {":ver": expected_version}
        try:
            self._table(SALARIES_TABLE).put_item(**kwargs)
        except ClientError as exc:
            if _error_code(exc) == "ConditionalCheckFailedException":
                raise ConcurrencyConflict(f"Salary {salary.id} changed concurrently") from exc
            raise StorageError(f"DynamoDB PUT SALARY#{salary.id} failed: {exc}") from exc
        return stored

    def delete(self, salary_id: str, *, expected_version: int) -> None:
        try:
            self._table(SALARIES_TABLE).delete_item(
                Key={"PK": f"SALARY#{salary_id}", "SK": "SALARY"},
                ConditionExpression="#ver = :ver",
                ExpressionAttributeNames={"#ver": "version"},
                ExpressionAttributeValues={":ver": expected_version},
            )
        except ClientError as exc:
            if _error_code(exc) == "ConditionalCheckFailedException":
                raise ConcurrencyConflict(f"Salary {salary_id} changed concurrently") from exc
            raise StorageError(f"DynamoDB DELETE SALARY#{salary_id} failed: {exc}") from exc
