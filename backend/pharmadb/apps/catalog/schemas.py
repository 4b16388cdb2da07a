from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated, Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, ValidationError, field_validator
from pydantic.functional_validators import AfterValidator, BeforeValidator

from pharmadb import errors
from pharmadb.utils.identifiers import MAX_DB_INT

from . import models

CENT = Decimal("0.01")
MAX_UNIT_PRICE = Decimal("9999999999.99")
NAME_MAX_LENGTH = 255

ITEM_FIELDS = ("name", "unit_price", "quantity_on_hand", "expires_on")


def _reject_bool(value: Any) -> Any:
    # bool is an int subclass; True must not become a price or a quantity.
    if isinstance(value, bool):
        raise ValueError("must be a number")
    return value


def _clean_name(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must be a non-empty string")
    if len(value) > NAME_MAX_LENGTH:
        raise ValueError(f"must be at most {NAME_MAX_LENGTH} characters")
    return value


def _check_unit_price(value: Decimal) -> Decimal:
    value = value.quantize(CENT, rounding=ROUND_HALF_UP)
    if value <= 0:
        raise ValueError("must be a positive number greater than 0")
    if value > MAX_UNIT_PRICE:
        raise ValueError("is too large")
    return value


def _check_quantity(value: int) -> int:
    if value < 0:
        raise ValueError("must be an integer greater than or equal to 0")
    if value > MAX_DB_INT:
        raise ValueError(f"must be at most {MAX_DB_INT}")
    return value


def parse_calendar_date(value: Any) -> date:
    """Accept a date, a datetime, or an ISO string (date or full timestamp)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        raw = value.strip()
        try:
            if len(raw) == 10:
                return date.fromisoformat(raw)
            return datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
        except ValueError:
            pass
    raise ValueError("must be a valid calendar date (YYYY-MM-DD)")


ItemName = Annotated[str, AfterValidator(_clean_name)]
UnitPrice = Annotated[Decimal, BeforeValidator(_reject_bool), AfterValidator(_check_unit_price)]
QuantityOnHand = Annotated[int, BeforeValidator(_reject_bool), AfterValidator(_check_quantity)]
ExpiresOn = Annotated[date, BeforeValidator(parse_calendar_date)]


class ItemCreate(BaseModel):
    name: ItemName
    unit_price: UnitPrice
    quantity_on_hand: QuantityOnHand
    expires_on: ExpiresOn


class ItemPatch(BaseModel):
    """
    Partial update. Only fields present in the request are applied; an
    explicit null is rejected rather than treated as "not supplied".
    """

    name: Optional[ItemName] = None
    unit_price: Optional[UnitPrice] = None
    quantity_on_hand: Optional[QuantityOnHand] = None
    expires_on: Optional[ExpiresOn] = None

    @field_validator(*ITEM_FIELDS, mode="before")
    @classmethod
    def _reject_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("must not be null")
        return value

    def changes(self) -> Dict[str, Any]:
        return {field: getattr(self, field) for field in ITEM_FIELDS if field in self.model_fields_set}


class ItemRead(BaseModel):
    id: int
    name: str
    unit_price: float
    quantity_on_hand: int
    expires_on: date
    status: models.ItemStatusEnum
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ItemDeleted(BaseModel):
    message: str
    item: ItemRead


def parse_item_create(data: Union[Mapping[str, Any], ItemCreate]) -> ItemCreate:
    if isinstance(data, ItemCreate):
        return data
    try:
        return ItemCreate.model_validate(dict(data))
    except ValidationError as exc:
        raise errors.field_error_from_pydantic(exc) from exc


def parse_item_patch(data: Union[Mapping[str, Any], ItemPatch]) -> ItemPatch:
    if isinstance(data, ItemPatch):
        return data
    try:
        return ItemPatch.model_validate(dict(data))
    except ValidationError as exc:
        raise errors.field_error_from_pydantic(exc) from exc
