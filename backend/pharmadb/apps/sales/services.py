from __future__ import annotations

import logging
import os
import time
from datetime import date, datetime, time as dt_time, timedelta, timezone
from decimal import Decimal
from typing import Any, List, Optional

from sqlalchemy import distinct, func, update
from sqlalchemy.orm import Session

from pharmadb.apps.audit import services as audit_services
from pharmadb.apps.catalog import models as catalog_models
from pharmadb.errors import (
    ContentionError,
    FieldValidationError,
    InsufficientStock,
    InvalidQuantity,
    ItemExpired,
    ItemNotFound,
    SaleNotFound,
)
from pharmadb.transactions import atomic
from pharmadb.utils.identifiers import MAX_DB_INT, parse_positive_id

from . import models, schemas
from .locks import ItemLockRegistry, item_locks

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
CUSTOMER_LABEL_MAX_LENGTH = 255

SALE_MAX_ATTEMPTS = max(int(os.getenv("SALE_MAX_ATTEMPTS", "3")), 1)
SALE_RETRY_BACKOFF_SEC = float(os.getenv("SALE_RETRY_BACKOFF_SEC", "0.05"))
ALLOW_EXPIRED_SALES = os.getenv("SALES_ALLOW_EXPIRED", "false").lower() in {"1", "true", "yes", "on"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _money(value: Any) -> Decimal:
    return Decimal(str(value if value is not None else 0)).quantize(CENT)


def _compute_backoff(attempt: int) -> float:
    return SALE_RETRY_BACKOFF_SEC * (2 ** max(attempt - 1, 0))


def _validate_quantity(quantity: Any) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidQuantity(quantity)
    if quantity <= 0 or quantity > MAX_DB_INT:
        raise InvalidQuantity(quantity)
    return quantity


def _clean_label(customer_label: Optional[str]) -> Optional[str]:
    if customer_label is None:
        return None
    label = str(customer_label).strip()
    if len(label) > CUSTOMER_LABEL_MAX_LENGTH:
        raise FieldValidationError(
            f"customer_label: must be at most {CUSTOMER_LABEL_MAX_LENGTH} characters",
            code="INVALID_CUSTOMER_LABEL",
            field="customer_label",
        )
    return label or None


# ---------------------------------------------------------------------------
# Stock reservation
# ---------------------------------------------------------------------------


def _load_item_for_update(db: Session, item_id: int) -> Optional[catalog_models.Item]:
    return (
        db.query(catalog_models.Item)
        .filter(catalog_models.Item.id == item_id)
        .with_for_update()
        .populate_existing()
        .first()
    )


def _decrement_stock(db: Session, *, item_id: int, quantity: int, now: datetime) -> bool:
    """
    Conditional decrement. Matches no row if the stock dropped below
    `quantity` since it was read, so two writers can never both succeed.
    """
    result = db.execute(
        update(catalog_models.Item)
        .where(
            catalog_models.Item.id == item_id,
            catalog_models.Item.quantity_on_hand >= quantity,
        )
        .values(
            quantity_on_hand=catalog_models.Item.quantity_on_hand - quantity,
            updated_at=now,
        )
    )
    return result.rowcount == 1


def _append_sale(
    db: Session,
    *,
    item: catalog_models.Item,
    quantity: int,
    unit_price: Decimal,
    customer_label: Optional[str],
    sold_at: datetime,
) -> models.SaleRecord:
    sale = models.SaleRecord(
        item_id=item.id,
        item_name_snapshot=item.name,
        unit_price_snapshot=unit_price,
        quantity_sold=quantity,
        total_price=(unit_price * quantity).quantize(CENT),
        customer_label=customer_label,
        sold_at=sold_at,
        created_at=sold_at,
        updated_at=sold_at,
    )
    db.add(sale)
    db.flush()
    return sale


def _reserve_and_append(
    db: Session,
    *,
    item_id: int,
    quantity: int,
    customer_label: Optional[str],
    actor: Optional[str],
    correlation_id: Optional[str],
) -> models.SaleRecord:
    item = _load_item_for_update(db, item_id)
    if item is None:
        raise ItemNotFound(item_id)
    if quantity > item.quantity_on_hand:
        raise InsufficientStock(available=item.quantity_on_hand, requested=quantity)
    if not ALLOW_EXPIRED_SALES and item.is_expired():
        raise ItemExpired(item_id=item.id, expires_on=item.expires_on)

    # Snapshot before the decrement touches the row.
    unit_price = _money(item.unit_price)
    now = _utcnow()

    if not _decrement_stock(db, item_id=item_id, quantity=quantity, now=now):
        current = db.query(catalog_models.Item).filter(catalog_models.Item.id == item_id).populate_existing().first()
        if current is None:
            raise ItemNotFound(item_id)
        raise InsufficientStock(available=current.quantity_on_hand, requested=quantity)

    sale = _append_sale(
        db,
        item=item,
        quantity=quantity,
        unit_price=unit_price,
        customer_label=customer_label,
        sold_at=now,
    )
    audit_services.log_event(
        db,
        entity_type="SaleRecord",
        entity_id=str(sale.id),
        action="record",
        actor=actor,
        after=sale.snapshot(),
        correlation_id=correlation_id,
    )
    return sale


def record_sale(
    db: Session,
    *,
    item_id: Any,
    quantity: Any,
    customer_label: Optional[str] = None,
    actor: Optional[str] = None,
    correlation_id: Optional[str] = None,
    locks: Optional[ItemLockRegistry] = None,
) -> models.SaleRecord:
    """
    Sell `quantity` units of an item.

    The stock decrement and the new SaleRecord commit in one transaction
    while the item's lock is held; on any failure neither is kept.
    Contention is retried with exponential backoff, other errors propagate:
    InvalidQuantity, ItemNotFound, InsufficientStock, ItemExpired,
    ContentionError (retries exhausted), StorageFailure.
    """
    quantity = _validate_quantity(quantity)
    item_id = parse_positive_id(item_id, field="item_id")
    customer_label = _clean_label(customer_label)
    registry = locks or item_locks

    attempt = 1
    while True:
        try:
            with registry.hold(item_id):
                with atomic(db, operation="record_sale"):
                    sale = _reserve_and_append(
                        db,
                        item_id=item_id,
                        quantity=quantity,
                        customer_label=customer_label,
                        actor=actor,
                        correlation_id=correlation_id,
                    )
        except ContentionError:
            if attempt >= SALE_MAX_ATTEMPTS:
                logger.warning(
                    "Sale abandoned after repeated contention",
                    extra={"item_id": item_id, "quantity": quantity, "attempts": attempt},
                )
                raise
            delay = _compute_backoff(attempt)
            logger.info(
                "Contention recording sale, retrying",
                extra={"item_id": item_id, "attempt": attempt, "delay_sec": delay},
            )
            time.sleep(delay)
            attempt += 1
            continue
        except InsufficientStock as exc:
            logger.info(
                "Sale rejected: insufficient stock",
                extra={"item_id": item_id, "available": exc.available, "requested": exc.requested},
            )
            raise

        logger.info(
            "Sale recorded",
            extra={
                "sale_id": sale.id,
                "item_id": item_id,
                "quantity": quantity,
                "total_price": str(sale.total_price),
                "correlation_id": correlation_id,
            },
        )
        return sale


# ---------------------------------------------------------------------------
# Ledger reads
# ---------------------------------------------------------------------------


def get_sale(db: Session, sale_id: Any) -> models.SaleRecord:
    sale_id = parse_positive_id(sale_id, field="sale_id")
    sale = db.query(models.SaleRecord).filter(models.SaleRecord.id == sale_id).first()
    if sale is None:
        raise SaleNotFound(sale_id)
    return sale


def list_sales(
    db: Session,
    *,
    item_id: Optional[int] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> List[models.SaleRecord]:
    query = db.query(models.SaleRecord)
    if item_id is not None:
        query = query.filter(models.SaleRecord.item_id == item_id)
    query = query.order_by(models.SaleRecord.sold_at.desc(), models.SaleRecord.id.desc())
    if offset:
        query = query.offset(offset)
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def sales_statistics(db: Session, *, today: Optional[date] = None) -> schemas.SalesStatistics:
    count, revenue, units, distinct_items = db.query(
        func.count(models.SaleRecord.id),
        func.coalesce(func.sum(models.SaleRecord.total_price), 0),
        func.coalesce(func.sum(models.SaleRecord.quantity_sold), 0),
        func.count(distinct(models.SaleRecord.item_id)),
    ).one()

    today = today or _utcnow().date()
    day_start = datetime.combine(today, dt_time.min, tzinfo=timezone.utc)
    day_end = day_start + timedelta(days=1)
    revenue_today = (
        db.query(func.coalesce(func.sum(models.SaleRecord.total_price), 0))
        .filter(
            models.SaleRecord.sold_at >= day_start,
            models.SaleRecord.sold_at < day_end,
        )
        .scalar()
    )
    return schemas.SalesStatistics(
        count=int(count or 0),
        total_revenue=_money(revenue),
        total_units_sold=int(units or 0),
        distinct_items_sold=int(distinct_items or 0),
        revenue_today=_money(revenue_today),
    )
