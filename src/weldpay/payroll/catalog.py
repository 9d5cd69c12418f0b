"""WorkTypeCatalog: read-only lookups of work types and work items."""

from __future__ import annotations

from weldpay.core.exceptions import NotFound
from weldpay.core.protocols import ICatalogStore
from weldpay.models.work import WorkItem, WorkType


class WorkTypeCatalog:
    """Lookup of calculation modes, base prices and production items."""

    def __init__(self, store: ICatalogStore) -> None:
        self._store = store

    def get_work_type(self, work_type_id: str) -> WorkType | None:
        return self._store.get_work_type(work_type_id)

    def require_work_type(self, work_type_id: str) -> WorkType:
        work_type = self._store.get_work_type(work_type_id)
        if work_type is None:
            raise NotFound("WorkType", work_type_id)
        return work_type

    def list_work_types(self, department: str | None = None) -> list[WorkType]:
        return sorted(
            self._store.list_work_types(department),
            key=lambda wt: (wt.department, wt.name.lower()),
        )

    def get_work_item(self, work_item_id: str) -> WorkItem | None:
        return self._store.get_work_item(work_item_id)

    def require_work_item(self, work_item_id: str) -> WorkItem:
        work_item = self._store.get_work_item(work_item_id)
        if work_item is None:
            raise NotFound("WorkItem", work_item_id)
        return work_item
