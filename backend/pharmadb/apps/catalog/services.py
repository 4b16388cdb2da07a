from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Union

from sqlalchemy import and_, case, func
from sqlalchemy.orm import Session

from pharmadb.apps.audit import services as audit_services
from pharmadb.apps.sales.locks import ItemLockRegistry, item_locks
from pharmadb.errors import ItemNotFound, NoFieldsProvided
from pharmadb.transactions import atomic
from pharmadb.utils.identifiers import parse_positive_id

from . import models, schemas

logger = logging.getLogger(__name__)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def name_matches(search: str):
    """
    Case-insensitive substring match on the item name, wildcards in `search`
    taken literally. ILIKE on PostgreSQL; SQLite folds ASCII letters only.
    """
    return models.Item.name.ilike(f"%{_escape_like(search)}%", escape="\\")


def _status_clause(status: models.ItemStatusEnum, today: date):
    item = models.Item
    if status == models.ItemStatusEnum.EXPIRED:
        return item.expires_on < today
    fresh = item.expires_on >= today
    if status == models.ItemStatusEnum.OUT_OF_STOCK:
        return and_(fresh, item.quantity_on_hand <= 0)
    if status == models.ItemStatusEnum.LOW_STOCK:
        return and_(
            fresh,
            item.quantity_on_hand > 0,
            item.quantity_on_hand < models.LOW_STOCK_THRESHOLD,
        )
    return and_(fresh, item.quantity_on_hand >= models.LOW_STOCK_THRESHOLD)


def _audit(
    db: Session,
    *,
    item_id: int,
    action: str,
    actor: Optional[str],
    correlation_id: Optional[str],
    before: Optional[dict] = None,
    after: Optional[dict] = None,
) -> None:
    audit_services.log_event(
        db,
        entity_type="Item",
        entity_id=str(item_id),
        action=action,
        actor=actor,
        before=before,
        after=after,
        correlation_id=correlation_id,
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def get_item(db: Session, item_id: Any) -> models.Item:
    item_id = parse_positive_id(item_id, field="item_id")
    item = db.query(models.Item).filter(models.Item.id == item_id).first()
    if item is None:
        raise ItemNotFound(item_id)
    return item


def list_items(
    db: Session,
    *,
    search: Optional[str] = None,
    status: Optional[models.ItemStatusEnum] = None,
    limit: Optional[int] = None,
    offset: int = 0,
    today: Optional[date] = None,
) -> List[models.Item]:
    """
    Items in ascending id order, optionally filtered by a case-insensitive
    name substring and by derived status.
    """
    query = db.query(models.Item)
    if search:
        query = query.filter(name_matches(search))
    if status is not None:
        query = query.filter(_status_clause(status, today or models.utc_today()))
    query = query.order_by(models.Item.id.asc())
    if offset:
        query = query.offset(offset)
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def catalog_statistics(db: Session, *, today: Optional[date] = None) -> Dict[str, Any]:
    today = today or models.utc_today()
    item = models.Item
    fresh = item.expires_on >= today

    def _count_where(*conditions):
        return func.coalesce(func.sum(case((and_(*conditions), 1), else_=0)), 0)

    row = db.query(
        func.count(item.id),
        _count_where(item.expires_on < today),
        _count_where(fresh, item.quantity_on_hand <= 0),
        _count_where(fresh, item.quantity_on_hand > 0, item.quantity_on_hand < models.LOW_STOCK_THRESHOLD),
        _count_where(fresh, item.quantity_on_hand >= models.LOW_STOCK_THRESHOLD),
        func.coalesce(func.sum(item.unit_price * item.quantity_on_hand), 0),
        func.coalesce(func.sum(item.quantity_on_hand), 0),
    ).one()
    total, expired, out_of_stock, low_stock, in_stock, stock_value, units = row
    return {
        "total_items": int(total or 0),
        "expired": int(expired or 0),
        "out_of_stock": int(out_of_stock or 0),
        "low_stock": int(low_stock or 0),
        "in_stock": int(in_stock or 0),
        "total_units": int(units or 0),
        "total_stock_value": stock_value,
    }


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


def create_item(
    db: Session,
    *,
    data: Union[Mapping[str, Any], schemas.ItemCreate],
    actor: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> models.Item:
    payload = schemas.parse_item_create(data)
    with atomic(db, operation="create_item"):
        item = models.Item(
            name=payload.name,
            unit_price=payload.unit_price,
            quantity_on_hand=payload.quantity_on_hand,
            expires_on=payload.expires_on,
        )
        db.add(item)
        db.flush()
        _audit(
            db,
            item_id=item.id,
            action="create",
            actor=actor,
            correlation_id=correlation_id,
            after=item.snapshot(),
        )

    logger.info("Item created", extra={"item_id": item.id, "item_name": item.name})
    return item


def update_item(
    db: Session,
    item_id: Any,
    *,
    data: Union[Mapping[str, Any], schemas.ItemPatch],
    actor: Optional[str] = None,
    correlation_id: Optional[str] = None,
    locks: Optional[ItemLockRegistry] = None,
) -> models.Item:
    """
    Apply a partial update. Fields not supplied keep their values.

    Runs under the same per-item lock as sales, so a manual stock correction
    never interleaves with a decrement.
    """
    item_id = parse_positive_id(item_id, field="item_id")
    patch = schemas.parse_item_patch(data)
    changes = patch.changes()
    if not changes:
        raise NoFieldsProvided(schemas.ITEM_FIELDS)

    registry = locks or item_locks
    with registry.hold(item_id):
        with atomic(db, operation="update_item"):
            item = (
                db.query(models.Item)
                .filter(models.Item.id == item_id)
                .with_for_update()
                .populate_existing()
                .first()
            )
            if item is None:
                raise ItemNotFound(item_id)
            before = item.snapshot()
            for field, value in changes.items():
                setattr(item, field, value)
            db.flush()
            _audit(
                db,
                item_id=item.id,
                action="update",
                actor=actor,
                correlation_id=correlation_id,
                before=before,
                after=item.snapshot(),
            )

    logger.info("Item updated", extra={"item_id": item_id, "fields": sorted(changes)})
    return item


def delete_item(
    db: Session,
    item_id: Any,
    *,
    actor: Optional[str] = None,
    correlation_id: Optional[str] = None,
    locks: Optional[ItemLockRegistry] = None,
) -> models.Item:
    """Remove an item and return it as it was. Past sales keep their snapshots."""
    item_id = parse_positive_id(item_id, field="item_id")
    registry = locks or item_locks
    with registry.hold(item_id):
        with atomic(db, operation="delete_item"):
            item = (
                db.query(models.Item)
                .filter(models.Item.id == item_id)
                .with_for_update()
                .populate_existing()
                .first()
            )
            if item is None:
                raise ItemNotFound(item_id)
            before = item.snapshot()
            db.delete(item)
            db.flush()
            _audit(
                db,
                item_id=item_id,
                action="delete",
                actor=actor,
                correlation_id=correlation_id,
                before=before,
            )

    logger.info("Item deleted", extra={"item_id": item_id})
    return item
