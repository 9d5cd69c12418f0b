"""WorkItemQuotaTracker: units already booked against each work item."""

from __future__ import annotations

from weldpay.core.protocols import IWorkLedger
from weldpay.models.work import WorkItemProgress
from weldpay.payroll.catalog import WorkTypeCatalog


class WorkItemQuotaTracker:
    """Quantity made / remaining per work item.

    Only ``quantity`` counts towards quantity made; overtime quantity is
    checked against the remaining quota but never booked. ``remaining`` is
    reported signed so earlier overbooking stays visible.
    """

    def __init__(self, catalog: WorkTypeCatalog, ledger: IWorkLedger) -> None:
        self._catalog = catalog
        self._ledger = ledger

    def quantity_made(self, work_item_id: str, exclude_record_id: str | None = None) -> int:
        self._catalog.require_work_item(work_item_id)
        return self._ledger.quantity_made(work_item_id, exclude_record_id)

    def remaining(self, work_item_id: str, exclude_record_id: str | None = None) -> int:
        work_item = self._catalog.require_work_item(work_item_id)
        made = self._ledger.quantity_made(work_item_id, exclude_record_id)
        return work_item.total_quantity - made

    def progress(self, work_item_id: str) -> WorkItemProgress:
        work_item = self._catalog.require_work_item(work_item_id)
        return WorkItemProgress(
            work_item_id=work_item_id,
            total_quantity=work_item.total_quantity,
            quantity_made=self._ledger.quantity_made(work_item_id),
        )

