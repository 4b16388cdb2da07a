from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

from pharmadb import errors
from pharmadb.apps.catalog import models as catalog_models
from pharmadb.apps.catalog import services as catalog_services
from pharmadb.apps.sales import models as sales_models
from pharmadb.apps.sales import services as sales_services


def _seed_item(session_factory, *, quantity: int) -> int:
    db = session_factory()
    try:
        item = catalog_services.create_item(
            db,
            data={
                "name": "Ibuprofen",
                "unit_price": "7.80",
                "quantity_on_hand": quantity,
                "expires_on": (catalog_models.utc_today() + timedelta(days=200)).isoformat(),
            },
        )
        return item.id
    finally:
        db.close()


def _concurrent_sales(session_factory, item_id: int, quantities):
    start = threading.Barrier(len(quantities))

    def _sell(quantity: int):
        db = session_factory()
        try:
            start.wait()
            sale = sales_services.record_sale(db, item_id=item_id, quantity=quantity)
            return ("ok", sale.quantity_sold)
        except errors.InsufficientStock as exc:
            return ("insufficient", exc.available, exc.requested)
        finally:
            db.close()

    with ThreadPoolExecutor(max_workers=len(quantities)) as pool:
        return list(pool.map(_sell, quantities))


def _final_state(session_factory, item_id: int):
    db = session_factory()
    try:
        stock = db.get(catalog_models.Item, item_id).quantity_on_hand
        sold = sum(
            sale.quantity_sold
            for sale in db.query(sales_models.SaleRecord).filter(sales_models.SaleRecord.item_id == item_id)
        )
        return stock, sold
    finally:
        db.close()


def test_two_concurrent_sales_never_both_succeed(file_db):
    item_id = _seed_item(file_db, quantity=10)

    outcomes = _concurrent_sales(file_db, item_id, [6, 6])

    succeeded = [o for o in outcomes if o[0] == "ok"]
    rejected = [o for o in outcomes if o[0] == "insufficient"]
    assert len(succeeded) == 1
    assert len(rejected) == 1
    assert rejected[0][2] == 6
    assert rejected[0][1] in (4, 10)
    assert _final_state(file_db, item_id) == (4, 6)


def test_many_concurrent_sales_never_oversell(file_db):
    item_id = _seed_item(file_db, quantity=15)

    outcomes = _concurrent_sales(file_db, item_id, [1] * 24)

    succeeded = [o for o in outcomes if o[0] == "ok"]
    assert len(succeeded) == 15
    assert all(o[0] in ("ok", "insufficient") for o in outcomes)
    assert _final_state(file_db, item_id) == (0, 15)
