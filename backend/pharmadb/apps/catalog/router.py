from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from pharmadb.context import RequestContext, get_request_context
from pharmadb.database import get_db, get_read_db
from pharmadb.apps.queries import schemas as query_schemas
from pharmadb.apps.queries import services as query_services

from . import schemas, services

router = APIRouter(prefix="/items", tags=["catalog"])


@router.get("", response_model=List[schemas.ItemRead])
def list_items(
    search: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    db: Session = Depends(get_read_db),
):
    query = query_schemas.build_item_query(search=search, status=status_filter, limit=limit, offset=offset)
    return query_services.list_items(db, query)


# Keep ahead of "/{item_id}".
@router.get("/statistics", response_model=query_schemas.CatalogStatistics)
def catalog_statistics(db: Session = Depends(get_read_db)):
    return query_services.catalog_statistics(db)


@router.get("/{item_id}", response_model=schemas.ItemRead)
def get_item(item_id: int, db: Session = Depends(get_read_db)):
    return query_services.get_item(db, item_id)


@router.post("", response_model=schemas.ItemRead, status_code=status.HTTP_201_CREATED)
def create_item(
    payload: schemas.ItemCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    return services.create_item(db, data=payload, actor=ctx.actor, correlation_id=ctx.request_id)


@router.patch("/{item_id}", response_model=schemas.ItemRead)
@router.put("/{item_id}", response_model=schemas.ItemRead)
def update_item(
    item_id: int,
    payload: schemas.ItemPatch,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    return services.update_item(db, item_id, data=payload, actor=ctx.actor, correlation_id=ctx.request_id)


@router.delete("/{item_id}", response_model=schemas.ItemDeleted)
def delete_item(
    item_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    item = services.delete_item(db, item_id, actor=ctx.actor, correlation_id=ctx.request_id)
    return schemas.ItemDeleted(
        message="Medication deleted successfully",
        item=schemas.ItemRead.model_validate(item),
    )
