"""Re-export persistence protocols from core for convenience."""

from __future__ import annotations

from weldpay.core.protocols import (
    ICacheBackend,
    ICatalogStore,
    ISalaryStore,
    IWorkLedger,
)

__all__ = ["ICacheBackend", "ICatalogStore", "ISalaryStore", "IWorkLedger"]
