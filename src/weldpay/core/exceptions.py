"""WeldPay exception hierarchy.

Every error carries a stable ``code`` and an HTTP status hint so transports can
map it to a structured response without inspecting messages.
"""

from __future__ import annotations

from typing import Any


class WeldPayError(Exception):
    """Base exception for all WeldPay errors."""

    code = "WELDPAY_ERROR"
    http_status = 500

    def __init__(self, message: str, **context: Any) -> None:
        self.message = message
        self.context = context
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.context}


class ValidationError(WeldPayError):
    """One or more input fields are invalid."""

    code = "VALIDATION_ERROR"
    http_status = 422

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        fields = ", ".join(sorted(self.errors))
        super().__init__(f"Invalid fields: {fields}", errors=self.errors)


class QuotaExceeded(WeldPayError):
    """Requested units would exceed a work item's remaining quota."""

    code = "QUOTA_EXCEEDED"
    http_status = 409

    def __init__(self, work_item_id: str, requested: int, remaining: int,
                 field: str = "quantity") -> None:
        self.work_item_id = work_item_id
        self.requested = requested
        self.remaining = remaining
        self.field = field
        super().__init__(
            f"Work item {work_item_id} has {remaining} units remaining, {requested} requested",
            work_item_id=work_item_id,
            requested=requested,
            remaining=remaining,
            field=field,
        )


class UnsupportedCalculationMode(WeldPayError):
    """Operation is not defined for the work type's calculation mode."""

    code = "UNSUPPORTED_CALCULATION_MODE"
    http_status = 422

    def __init__(self, calculation_type: str, reason: str) -> None:
        self.calculation_type = calculation_type
        super().__init__(
            f"{reason} is not supported for {calculation_type} work types",
            calculation_type=calculation_type,
        )


class InvalidStateTransition(WeldPayError):
    """Salary lifecycle transition not allowed from its current status."""

    code = "INVALID_STATE_TRANSITION"
    http_status = 409

    def __init__(self, salary_id: str, status: str, action: str) -> None:
        self.salary_id = salary_id
        self.status = status
        self.action = action
        super().__init__(
            f"Cannot {action} salary {salary_id} in status {status}",
            salary_id=salary_id,
            status=status,
            action=action,
        )


class NotFound(WeldPayError):
    """Referenced entity does not exist."""

    code = "NOT_FOUND"
    http_status = 404

    def __init__(self, entity: str, entity_id: str, message: str | None = None) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            message or f"{entity} {entity_id!r} not found",
            entity=entity,
            entity_id=entity_id,
        )


class ConcurrencyConflict(WeldPayError):
    """An optimistic write lost against a concurrent writer too many times."""

    code = "CONCURRENCY_CONFLICT"
    http_status = 409


class StorageError(WeldPayError):
    """Persistence backend operation failed."""

    code = "STORAGE_ERROR"


class CacheError(WeldPayError):
    """Redis cache operation failed."""

    code = "CACHE_ERROR"
