from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from pharmadb.context import RequestContext, get_request_context
from pharmadb.database import get_db, get_read_db
from pharmadb.apps.queries import schemas as query_schemas
from pharmadb.apps.queries import services as query_services

from . import schemas, services

router = APIRouter(prefix="/sales", tags=["sales"])


@router.get("", response_model=List[schemas.SaleRead])
def list_sales(
    item_id: Optional[str] = None,
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    db: Session = Depends(get_read_db),
):
    query = query_schemas.build_sale_query(item_id=item_id, limit=limit, offset=offset)
    return query_services.list_sales(db, query)


@router.get("/statistics", response_model=schemas.SalesStatistics)
def sales_statistics(db: Session = Depends(get_read_db)):
    return query_services.sales_statistics(db)


@router.get("/{sale_id}", response_model=schemas.SaleRead)
def get_sale(sale_id: int, db: Session = Depends(get_read_db)):
    return query_services.get_sale(db, sale_id)


@router.post("", response_model=schemas.SaleRead, status_code=status.HTTP_201_CREATED)
def record_sale(
    payload: schemas.SaleCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    return services.record_sale(
        db,
        item_id=payload.item_id,
        quantity=payload.quantity,
        customer_label=payload.customer_label,
        actor=ctx.actor,
        correlation_id=ctx.request_id,
    )
