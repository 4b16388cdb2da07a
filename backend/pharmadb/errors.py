"""
Domain errors for the inventory ledger.

Services raise these; `pharmadb.main` maps them to HTTP responses. Every
error carries a machine-readable `code` and renders as
`{"error": ..., "code": ..., **extra}`.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, Iterable, Optional

from pydantic import ValidationError as PydanticValidationError


class LedgerError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"
    retryable = False

    def __init__(self, message: str, *, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def extra(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code, **self.extra()}


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class FieldValidationError(LedgerError):
    """Bad input shape or range. Reported verbatim, never retried."""

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, *, code: Optional[str] = None, field: Optional[str] = None) -> None:
        super().__init__(message, code=code)
        self.field = field

    def extra(self) -> Dict[str, Any]:
        return {"field": self.field} if self.field else {}


class NoFieldsProvided(FieldValidationError):
    code = "NO_UPDATE_FIELDS"

    def __init__(self, fields: Iterable[str]) -> None:
        names = ", ".join(fields)
        super().__init__(f"At least one field ({names}) must be provided for update")


class InvalidQuantity(FieldValidationError):
    code = "INVALID_QUANTITY"

    def __init__(self, quantity: Any) -> None:
        super().__init__("Quantity must be an integer greater than 0", field="quantity")
        self.quantity = quantity


class InvalidPagination(FieldValidationError):
    pass


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


class NotFoundError(LedgerError):
    status_code = 404
    code = "NOT_FOUND"


class ItemNotFound(NotFoundError):
    def __init__(self, item_id: Any) -> None:
        super().__init__("Medication not found")
        self.item_id = item_id


class SaleNotFound(NotFoundError):
    def __init__(self, sale_id: Any) -> None:
        super().__init__("Sale not found")
        self.sale_id = sale_id


# ---------------------------------------------------------------------------
# Business rules
# ---------------------------------------------------------------------------


class InsufficientStock(LedgerError):
    """Rejected sale. The caller may resubmit with a smaller quantity."""

    status_code = 400
    code = "INSUFFICIENT_STOCK"

    def __init__(self, *, available: int, requested: int) -> None:
        super().__init__("Insufficient stock")
        self.available = available
        self.requested = requested

    def extra(self) -> Dict[str, Any]:
        return {"available": self.available, "requested": self.requested}


class ItemExpired(LedgerError):
    status_code = 400
    code = "ITEM_EXPIRED"

    def __init__(self, *, item_id: int, expires_on: date) -> None:
        super().__init__("Medication is expired and cannot be sold")
        self.item_id = item_id
        self.expires_on = expires_on

    def extra(self) -> Dict[str, Any]:
        return {"expires_on": self.expires_on.isoformat()}


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------


class ContentionError(LedgerError):
    """Transient serialization conflict on an item. Safe to retry."""

    status_code = 409
    code = "CONTENTION"
    retryable = True

    def __init__(self, message: str = "Item is busy, retry the request") -> None:
        super().__init__(message)


class StorageFailure(LedgerError):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(message)


# ---------------------------------------------------------------------------
# Pydantic -> FieldValidationError
# ---------------------------------------------------------------------------

PATH_ID_FIELDS = {"item_id", "sale_id", "id"}


def code_for(field: str, error_type: str) -> str:
    if field in PATH_ID_FIELDS:
        return "INVALID_ID"
    prefix = "MISSING" if error_type == "missing" else "INVALID"
    return f"{prefix}_{field.upper()}"


def field_error_from_errors(errors: Iterable[Dict[str, Any]]) -> FieldValidationError:
    """Reduce a list of pydantic/FastAPI error dicts to the first field error."""
    for err in errors:
        loc = [part for part in err.get("loc", ()) if isinstance(part, str)]
        loc = [part for part in loc if part not in {"body", "query", "path", "header"}]
        field = loc[-1] if loc else None
        if not field:
            continue
        message = str(err.get("msg") or "Invalid value")
        ctx_error = (err.get("ctx") or {}).get("error")
        if ctx_error is not None:
            message = str(ctx_error)
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        return FieldValidationError(
            f"{field}: {message}",
            code=code_for(field, err.get("type", "")),
            field=field,
        )
    return FieldValidationError("Request body is invalid")


def field_error_from_pydantic(exc: PydanticValidationError) -> FieldValidationError:
    return field_error_from_errors(exc.errors())
