"""
Read-only projections over the catalog and the sale ledger.

Nothing here writes; every function can run on the read session.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, List, Optional

from sqlalchemy.orm import Session

from pharmadb.apps.catalog import models as catalog_models
from pharmadb.apps.catalog import services as catalog_services
from pharmadb.apps.sales import models as sales_models
from pharmadb.apps.sales import schemas as sales_schemas
from pharmadb.apps.sales import services as sales_services

from . import schemas

CENT = Decimal("0.01")


def get_item(db: Session, item_id: Any) -> catalog_models.Item:
    return catalog_services.get_item(db, item_id)


def list_items(
    db: Session,
    query: Optional[schemas.ItemQuery] = None,
    *,
    today: Optional[date] = None,
) -> List[catalog_models.Item]:
    query = query or schemas.ItemQuery()
    return catalog_services.list_items(
        db,
        search=query.search,
        status=query.status,
        limit=query.limit,
        offset=query.offset,
        today=today,
    )


def get_sale(db: Session, sale_id: Any) -> sales_models.SaleRecord:
    return sales_services.get_sale(db, sale_id)


def list_sales(db: Session, query: Optional[schemas.SaleQuery] = None) -> List[sales_models.SaleRecord]:
    query = query or schemas.SaleQuery()
    return sales_services.list_sales(db, item_id=query.item_id, limit=query.limit, offset=query.offset)


def sales_statistics(db: Session, *, today: Optional[date] = None) -> sales_schemas.SalesStatistics:
    return sales_services.sales_statistics(db, today=today)


def catalog_statistics(db: Session, *, today: Optional[date] = None) -> schemas.CatalogStatistics:
    counts = catalog_services.catalog_statistics(db, today=today)
    counts["total_stock_value"] = Decimal(str(counts["total_stock_value"])).quantize(CENT)
    return schemas.CatalogStatistics(**counts)
