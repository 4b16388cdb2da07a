from __future__ import annotations

import enum
import os
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
)

from pharmadb.database import Base

LOW_STOCK_THRESHOLD = int(os.getenv("LOW_STOCK_THRESHOLD", "20"))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def utc_today() -> date:
    return _utcnow().date()


class ItemStatusEnum(str, enum.Enum):
    EXPIRED = "EXPIRED"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    LOW_STOCK = "LOW_STOCK"
    IN_STOCK = "IN_STOCK"


def compute_status(
    *,
    expires_on: date,
    quantity_on_hand: int,
    today: Optional[date] = None,
) -> ItemStatusEnum:
    today = today or utc_today()
    if expires_on < today:
        return ItemStatusEnum.EXPIRED
    if quantity_on_hand <= 0:
        return ItemStatusEnum.OUT_OF_STOCK
    if quantity_on_hand < LOW_STOCK_THRESHOLD:
        return ItemStatusEnum.LOW_STOCK
    return ItemStatusEnum.IN_STOCK


class Item(Base):
    """A stocked medication: price, quantity on hand, and expiry date."""

    __tablename__ = "items"
    __table_args__ = (
        CheckConstraint("quantity_on_hand >= 0", name="ck_items_quantity_non_negative"),
        CheckConstraint("unit_price > 0", name="ck_items_unit_price_positive"),
        Index("ix_items_name", "name"),
        Index("ix_items_expires_on", "expires_on"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    quantity_on_hand = Column(Integer, nullable=False, default=0)
    expires_on = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    @property
    def status(self) -> ItemStatusEnum:
        return compute_status(expires_on=self.expires_on, quantity_on_hand=self.quantity_on_hand)

    def is_expired(self, today: Optional[date] = None) -> bool:
        return self.expires_on < (today or utc_today())

    def snapshot(self) -> dict:
        """JSON-safe copy of the editable fields, used for audit before/after."""
        return {
            "id": self.id,
            "name": self.name,
            "unit_price": str(self.unit_price) if self.unit_price is not None else None,
            "quantity_on_hand": self.quantity_on_hand,
            "expires_on": self.expires_on.isoformat() if self.expires_on else None,
        }

    def __repr__(self) -> str:
        return f"<Item id={self.id} name={self.name!r} qty={self.quantity_on_hand}>"
