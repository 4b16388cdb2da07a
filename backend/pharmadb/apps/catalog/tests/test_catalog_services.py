from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest

from pharmadb import errors
from pharmadb.apps.catalog import models as catalog_models
from pharmadb.apps.catalog import schemas as catalog_schemas
from pharmadb.apps.catalog import services as catalog_services
from pharmadb.apps.sales import models as sales_models
from pharmadb.apps.sales import services as sales_services
from pharmadb.apps.sales.locks import ItemLockRegistry


def _future(days: int = 365) -> str:
    return (catalog_models.utc_today() + timedelta(days=days)).isoformat()


def _item_payload(**overrides):
    payload = {
        "name": "Paracetamol",
        "unit_price": "5.50",
        "quantity_on_hand": 10,
        "expires_on": _future(),
    }
    payload.update(overrides)
    return payload


def test_create_item_persists_normalized_fields(db_session):
    item = catalog_services.create_item(
        db_session,
        data=_item_payload(name="  Ibuprofène  ", unit_price="7.805"),
    )

    stored = db_session.query(catalog_models.Item).one()
    assert stored.id == item.id
    assert stored.name == "Ibuprofène"
    assert stored.unit_price == Decimal("7.81")
    assert stored.quantity_on_hand == 10
    assert stored.status == catalog_models.ItemStatusEnum.LOW_STOCK


def test_create_item_with_empty_name_is_rejected(db_session):
    with pytest.raises(errors.FieldValidationError) as excinfo:
        catalog_services.create_item(
            db_session,
            data={"name": "", "unit_price": 5, "quantity_on_hand": 1, "expires_on": "2030-01-01"},
        )

    assert excinfo.value.code == "INVALID_NAME"
    assert excinfo.value.field == "name"
    assert db_session.query(catalog_models.Item).count() == 0


@pytest.mark.parametrize(
    "overrides, code",
    [
        ({"unit_price": 0}, "INVALID_UNIT_PRICE"),
        ({"unit_price": "-1.00"}, "INVALID_UNIT_PRICE"),
        ({"unit_price": "abc"}, "INVALID_UNIT_PRICE"),
        ({"unit_price": True}, "INVALID_UNIT_PRICE"),
        ({"quantity_on_hand": -1}, "INVALID_QUANTITY_ON_HAND"),
        ({"quantity_on_hand": 2.5}, "INVALID_QUANTITY_ON_HAND"),
        ({"quantity_on_hand": False}, "INVALID_QUANTITY_ON_HAND"),
        ({"quantity_on_hand": 2**31}, "INVALID_QUANTITY_ON_HAND"),
        ({"expires_on": "2030-13-45"}, "INVALID_EXPIRES_ON"),
        ({"expires_on": "soon"}, "INVALID_EXPIRES_ON"),
        ({"name": 42}, "INVALID_NAME"),
    ],
)
def test_create_item_rejects_invalid_fields(db_session, overrides, code):
    with pytest.raises(errors.FieldValidationError) as excinfo:
        catalog_services.create_item(db_session, data=_item_payload(**overrides))

    assert excinfo.value.code == code
    assert db_session.query(catalog_models.Item).count() == 0


def test_create_item_reports_missing_field(db_session):
    payload = _item_payload()
    payload.pop("unit_price")

    with pytest.raises(errors.FieldValidationError) as excinfo:
        catalog_services.create_item(db_session, data=payload)

    assert excinfo.value.code == "MISSING_UNIT_PRICE"


def test_full_timestamp_is_truncated_to_calendar_date(db_session):
    item = catalog_services.create_item(db_session, data=_item_payload(expires_on="2031-06-30T23:15:00Z"))

    assert item.expires_on == date(2031, 6, 30)


def test_get_item_unknown_id_raises_not_found(db_session):
    with pytest.raises(errors.ItemNotFound):
        catalog_services.get_item(db_session, 404)


@pytest.mark.parametrize("bad_id", ["abc", "0", -3, None, "1.5"])
def test_get_item_rejects_invalid_id(db_session, bad_id):
    with pytest.raises(errors.FieldValidationError) as excinfo:
        catalog_services.get_item(db_session, bad_id)

    assert excinfo.value.code == "INVALID_ID"


def test_update_item_applies_only_supplied_fields(db_session):
    item = catalog_services.create_item(db_session, data=_item_payload())

    updated = catalog_services.update_item(db_session, item.id, data={"quantity_on_hand": 40})

    assert updated.quantity_on_hand == 40
    assert updated.name == "Paracetamol"
    assert updated.unit_price == Decimal("5.50")
    assert updated.status == catalog_models.ItemStatusEnum.IN_STOCK


def test_update_item_with_no_fields_raises(db_session):
    item = catalog_services.create_item(db_session, data=_item_payload())

    with pytest.raises(errors.NoFieldsProvided) as excinfo:
        catalog_services.update_item(db_session, item.id, data={"unknown": "ignored"})

    assert excinfo.value.code == "NO_UPDATE_FIELDS"


def test_update_item_rejects_explicit_null(db_session):
    item = catalog_services.create_item(db_session, data=_item_payload())

    with pytest.raises(errors.FieldValidationError) as excinfo:
        catalog_services.update_item(db_session, item.id, data={"name": None})

    assert excinfo.value.code == "INVALID_NAME"
    db_session.expire_all()
    assert db_session.get(catalog_models.Item, item.id).name == "Paracetamol"


def test_update_item_rejects_negative_quantity(db_session):
    item = catalog_services.create_item(db_session, data=_item_payload())

    with pytest.raises(errors.FieldValidationError) as excinfo:
        catalog_services.update_item(db_session, item.id, data={"quantity_on_hand": -5})

    assert excinfo.value.code == "INVALID_QUANTITY_ON_HAND"


def test_update_missing_item_raises_not_found(db_session):
    with pytest.raises(errors.ItemNotFound):
        catalog_services.update_item(db_session, 77, data={"name": "Ghost"})


def test_item_patch_tracks_presence():
    patch = catalog_schemas.ItemPatch.model_validate({"unit_price": "3.10"})

    assert patch.changes() == {"unit_price": Decimal("3.10")}


def test_delete_item_returns_snapshot_and_keeps_sales(db_session):
    item = catalog_services.create_item(db_session, data=_item_payload())
    sale = sales_services.record_sale(db_session, item_id=item.id, quantity=2)

    deleted = catalog_services.delete_item(db_session, item.id)

    assert deleted.id == item.id
    assert deleted.name == "Paracetamol"
    assert db_session.query(catalog_models.Item).count() == 0
    kept = db_session.get(sales_models.SaleRecord, sale.id)
    assert kept.item_name_snapshot == "Paracetamol"
    assert kept.unit_price_snapshot == Decimal("5.50")


def test_delete_missing_item_raises_not_found(db_session):
    with pytest.raises(errors.ItemNotFound):
        catalog_services.delete_item(db_session, 12)


def test_update_waits_for_item_lock(db_session):
    item = catalog_services.create_item(db_session, data=_item_payload())
    registry = ItemLockRegistry(timeout=0.05)

    with registry.hold(item.id):
        with pytest.raises(errors.ContentionError):
            catalog_services.update_item(db_session, item.id, data={"name": "Busy"}, locks=registry)

    db_session.expire_all()
    assert db_session.get(catalog_models.Item, item.id).name == "Paracetamol"


@pytest.mark.parametrize(
    "days, quantity, expected",
    [
        (-1, 50, catalog_models.ItemStatusEnum.EXPIRED),
        (-1, 0, catalog_models.ItemStatusEnum.EXPIRED),
        (0, 0, catalog_models.ItemStatusEnum.OUT_OF_STOCK),
        (10, 19, catalog_models.ItemStatusEnum.LOW_STOCK),
        (10, 20, catalog_models.ItemStatusEnum.IN_STOCK),
    ],
)
def test_compute_status(days, quantity, expected):
    today = date(2026, 1, 15)
    status = catalog_models.compute_status(
        expires_on=today + timedelta(days=days),
        quantity_on_hand=quantity,
        today=today,
    )

    assert status == expected


def test_quantity_above_column_range_is_rejected(db_session):
    with pytest.raises(errors.FieldValidationError) as excinfo:
        catalog_services.create_item(db_session, data=_item_payload(quantity_on_hand=2**63))

    assert excinfo.value.code == "INVALID_QUANTITY_ON_HAND"
    assert db_session.query(catalog_models.Item).count() == 0


def test_item_id_above_column_range_is_invalid(db_session):
    with pytest.raises(errors.FieldValidationError) as excinfo:
        catalog_services.get_item(db_session, "99999999999999999999")

    assert excinfo.value.code == "INVALID_ID"
