from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
)

from pharmadb.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SaleRecord(Base):
    """
    One completed sale. Never updated or deleted.

    `item_id` is a plain reference with no foreign key: the item can be
    edited or deleted later, the name and price snapshots stay as sold.
    """

    __tablename__ = "sale_records"
    __table_args__ = (
        CheckConstraint("quantity_sold > 0", name="ck_sale_records_quantity_positive"),
        Index("ix_sale_records_sold_at", "sold_at"),
        Index("ix_sale_records_item_sold_at", "item_id", "sold_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    item_id = Column(Integer, nullable=False, index=True)
    item_name_snapshot = Column(String(255), nullable=False)
    unit_price_snapshot = Column(Numeric(12, 2), nullable=False)
    quantity_sold = Column(Integer, nullable=False)
    total_price = Column(Numeric(14, 2), nullable=False)
    customer_label = Column(String(255), nullable=True)

    sold_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def snapshot(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "item_name": self.item_name_snapshot,
            "unit_price": str(self.unit_price_snapshot),
            "quantity_sold": self.quantity_sold,
            "total_price": str(self.total_price),
            "customer_label": self.customer_label,
        }

    def __repr__(self) -> str:
        return f"<SaleRecord id={self.id} item={self.item_id} qty={self.quantity_sold} total={self.total_price}>"
