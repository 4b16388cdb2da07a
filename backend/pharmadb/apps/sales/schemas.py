from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_serializer, field_validator

from pharmadb.utils.identifiers import MAX_DB_INT


class SaleCreate(BaseModel):
    item_id: int = Field(..., gt=0, le=MAX_DB_INT)
    quantity: int = Field(..., gt=0, le=MAX_DB_INT)
    customer_label: Optional[str] = Field(default=None, max_length=255)

    @field_validator("item_id", "quantity", mode="before")
    @classmethod
    def _reject_bool(cls, value):
        if isinstance(value, bool):
            raise ValueError("must be an integer")
        return value

    @field_validator("customer_label")
    @classmethod
    def _blank_label_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class SaleRead(BaseModel):
    id: int
    item_id: int
    item_name_snapshot: str
    unit_price_snapshot: float
    quantity_sold: int
    total_price: float
    customer_label: Optional[str] = None
    sold_at: datetime
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SalesStatistics(BaseModel):
    count: int
    total_revenue: Decimal
    total_units_sold: int
    distinct_items_sold: int
    revenue_today: Decimal

    @field_serializer("total_revenue", "revenue_today")
    def _money_as_number(self, value: Decimal) -> float:
        return float(value)
