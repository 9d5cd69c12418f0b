"""Shared test doubles: re-export memory backends."""

from __future__ import annotations

from weldpay.persistence.memory_backend import (
    MemoryCacheBackend,
    MemoryCatalogStore,
    MemorySalaryStore,
    MemoryWorkLedger,
)

__all__ = ["MemoryCacheBackend", "MemoryCatalogStore", "MemorySalaryStore", "MemoryWorkLedger"]
