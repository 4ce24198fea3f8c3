from __future__ import annotations

from decimal import Decimal
from typing import Any


class PostingError(Exception):
    """Base error for voucher posting failures.

    Every subclass aborts the surrounding transaction. ``kind`` is the stable
    machine-readable name used for HTTP mapping, metrics and logs.
    """

    kind = "PostingError"

    def __init__(self, message: str, **context: Any) -> None:
        self.message = message
        self.context = context
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "context": {key: _jsonable(value) for key, value in self.context.items()},
        }


class InvalidReference(PostingError):
    """Unknown or inactive ledger, item, warehouse or bill."""

    kind = "InvalidReference"


class UnbalancedEntry(PostingError):
    kind = "UnbalancedEntry"

    def __init__(self, debit_total: Decimal, credit_total: Decimal, message: str | None = None) -> None:
        self.debit_total = debit_total
        self.credit_total = credit_total
        super().__init__(
            message or f"debits {debit_total} do not equal credits {credit_total}",
            debit_total=debit_total,
            credit_total=credit_total,
        )


class InsufficientStock(PostingError):
    kind = "InsufficientStock"

    def __init__(
        self,
        *,
        item_id: Any,
        warehouse_id: Any,
        available: Decimal,
        requested: Decimal,
    ) -> None:
        self.item_id = item_id
        self.warehouse_id = warehouse_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"insufficient stock: available {available}, requested {requested}",
            item_id=item_id,
            warehouse_id=warehouse_id,
            available=available,
            requested=requested,
        )


class ConfigurationError(PostingError):
    """A statutory system ledger required by the voucher is not configured."""

    kind = "ConfigurationError"


class ConcurrencyConflict(PostingError):
    kind = "ConcurrencyConflict"


class InvalidAllocation(PostingError):
    kind = "InvalidAllocation"


class InvalidVoucherState(PostingError):
    kind = "InvalidVoucherState"


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return str(value)
