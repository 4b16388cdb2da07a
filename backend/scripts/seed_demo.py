from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal

from pharmadb.database import WriteSessionLocal, init_models
from pharmadb.apps.catalog import models as catalog_models
from pharmadb.apps.catalog import schemas as catalog_schemas
from pharmadb.apps.catalog import services as catalog_services
from pharmadb.apps.sales import services as sales_services

logger = logging.getLogger(__name__)

# name, unit price, quantity on hand, shelf life in days from today
DEMO_MEDICATIONS = [
    ("Paracétamol", Decimal("5.50"), 100, 440),
    ("Ibuprofène", Decimal("7.80"), 75, 360),
    ("Aspirine", Decimal("4.20"), 120, 520),
    ("Amoxicilline", Decimal("12.50"), 50, 310),
    ("Doliprane", Decimal("6.00"), 90, 450),
]

DEMO_ACTOR = "seed_demo"


def _get_or_create_item(db, *, name: str, unit_price: Decimal, quantity: int, expires_on: date):
    item = db.query(catalog_models.Item).filter(catalog_models.Item.name == name).first()
    if item:
        return item, False
    item = catalog_services.create_item(
        db,
        data=catalog_schemas.ItemCreate(
            name=name,
            unit_price=unit_price,
            quantity_on_hand=quantity,
            expires_on=expires_on,
        ),
        actor=DEMO_ACTOR,
    )
    return item, True


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    init_models()
    db = WriteSessionLocal()
    try:
        today = catalog_models.utc_today()
        created = []
        for name, unit_price, quantity, shelf_days in DEMO_MEDICATIONS:
            item, is_new = _get_or_create_item(
                db,
                name=name,
                unit_price=unit_price,
                quantity=quantity,
                expires_on=today + timedelta(days=shelf_days),
            )
            if is_new:
                created.append(item)

        # A couple of sales so the statistics endpoints have something to show.
        if created:
            sales_services.record_sale(db, item_id=created[0].id, quantity=3, actor=DEMO_ACTOR)
            sales_services.record_sale(
                db,
                item_id=created[-1].id,
                quantity=2,
                customer_label="Walk-in",
                actor=DEMO_ACTOR,
            )

        logger.info("Demo catalog ready", extra={"created": len(created), "total": len(DEMO_MEDICATIONS)})
        print(f"Seeded {len(created)} medication(s); {len(DEMO_MEDICATIONS) - len(created)} already present.")
    finally:
        db.close()


if __name__ == "__main__":
    main()
