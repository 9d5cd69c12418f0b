"""Pluggable persistence backends behind Protocol interfaces."""

from __future__ import annotations

from weldpay.core.config import AppSettings
from weldpay.persistence.dynamodb_backend import (
    DynamoDBCatalogStore,
    DynamoDBSalaryStore,
    DynamoDBWorkLedger,
)
from weldpay.persistence.memory_backend import (
    MemoryCatalogStore,
    MemorySalaryStore,
    MemoryWorkLedger,
)
from weldpay.persistence.redis_backend import RedisCacheBackend


def create_persistence(settings: AppSettings | None = None):
    """Create wired-up persistence backends from application settings.

    Returns:
        Tuple of (catalog, ledger, salaries).
    """
    if settings is None:
        settings = AppSettings()

    if settings.storage_backend == "memory":
        return MemoryCatalogStore(), MemoryWorkLedger(), MemorySalaryStore()

    cache = None
    if settings.redis.enabled:
        cache = RedisCacheBackend(
            host=settings.redis.host,
            port=settings.redis.port,
            db=settings.redis.db,
        )

    dynamo = {
        "table_suffix": settings.dynamodb.table_suffix,
        "region": settings.dynamodb.region,
        "endpoint_url": settings.dynamodb.endpoint_url,
    }
    catalog = DynamoDBCatalogStore(**dynamo, cache=cache, cache_ttl=settings.redis.cache_ttl)
    ledger = DynamoDBWorkLedger(**dynamo, max_retries=settings.payroll.max_write_retries)
    salaries = DynamoDBSalaryStore(**dynamo)
    return catalog, ledger, salaries
