from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, field_serializer

from pharmadb.apps.catalog.models import ItemStatusEnum
from pharmadb.errors import FieldValidationError, InvalidPagination
from pharmadb.utils.identifiers import MAX_DB_INT, parse_positive_id

DEFAULT_ITEM_LIMIT = 10
MAX_LIMIT = 100

# Aliases accepted for ?status=; "all" and empty mean no filter.
_STATUS_ALIASES = {
    "expired": ItemStatusEnum.EXPIRED,
    "out_of_stock": ItemStatusEnum.OUT_OF_STOCK,
    "low_stock": ItemStatusEnum.LOW_STOCK,
    "in_stock": ItemStatusEnum.IN_STOCK,
}


class ItemQuery(BaseModel):
    search: Optional[str] = None
    status: Optional[ItemStatusEnum] = None
    limit: int = DEFAULT_ITEM_LIMIT
    offset: int = 0


class SaleQuery(BaseModel):
    item_id: Optional[int] = None
    limit: Optional[int] = None
    offset: int = 0


class CatalogStatistics(BaseModel):
    total_items: int
    expired: int
    out_of_stock: int
    low_stock: int
    in_stock: int
    total_units: int
    total_stock_value: Decimal

    @field_serializer("total_stock_value")
    def _money_as_number(self, value: Decimal) -> float:
        return float(value)


def _parse_int(value: Any, *, field: str) -> Optional[int]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise InvalidPagination(f"{field} must be an integer", code=f"INVALID_{field.upper()}", field=field)
    if isinstance(value, int):
        return value
    raw = str(value).strip()
    digits = raw[1:] if raw[:1] in {"-", "+"} else raw
    if not digits.isdigit():
        raise InvalidPagination(f"{field} must be an integer", code=f"INVALID_{field.upper()}", field=field)
    return int(raw)


def sanitize_limit(value: Any, *, default: Optional[int]) -> Optional[int]:
    """Missing -> default, below 1 -> error, above MAX_LIMIT -> MAX_LIMIT."""
    limit = _parse_int(value, field="limit")
    if limit is None:
        return default
    if limit < 1:
        raise InvalidPagination("limit must be at least 1", code="INVALID_LIMIT", field="limit")
    return min(limit, MAX_LIMIT)


def sanitize_offset(value: Any) -> int:
    offset = _parse_int(value, field="offset")
    if offset is None:
        return 0
    if offset < 0 or offset > MAX_DB_INT:
        raise InvalidPagination(
            f"offset must be between 0 and {MAX_DB_INT}", code="INVALID_OFFSET", field="offset"
        )
    return offset


def parse_status(value: Any) -> Optional[ItemStatusEnum]:
    if value is None:
        return None
    if isinstance(value, ItemStatusEnum):
        return value
    key = str(value).strip().lower().replace("-", "_").replace(" ", "_")
    if key in {"", "all"}:
        return None
    status = _STATUS_ALIASES.get(key)
    if status is None:
        allowed = ", ".join(sorted(_STATUS_ALIASES))
        raise FieldValidationError(f"status must be one of: {allowed}", code="INVALID_STATUS", field="status")
    return status


def build_item_query(
    *,
    search: Any = None,
    status: Any = None,
    limit: Any = None,
    offset: Any = None,
) -> ItemQuery:
    term = str(search).strip() if search is not None else ""
    return ItemQuery(
        search=term or None,
        status=parse_status(status),
        limit=sanitize_limit(limit, default=DEFAULT_ITEM_LIMIT),
        offset=sanitize_offset(offset),
    )


def build_sale_query(*, item_id: Any = None, limit: Any = None, offset: Any = None) -> SaleQuery:
    parsed_item_id = None
    if item_id is not None and str(item_id).strip():
        parsed_item_id = parse_positive_id(item_id, field="item_id")
    return SaleQuery(
        item_id=parsed_item_id,
        limit=sanitize_limit(limit, default=None),
        offset=sanitize_offset(offset),
    )
