from __future__ import annotations

from datetime import date, timedelta

from pharmadb.apps.audit import models as audit_models
from pharmadb.apps.audit import schemas as audit_schemas
from pharmadb.apps.audit import services as audit_services
from pharmadb.apps.catalog import services as catalog_services
from pharmadb.apps.sales import services as sales_services


def test_log_event_writes_record(db_session):
    event = audit_services.log_event(
        db_session,
        entity_type="Item",
        entity_id="1",
        action="create",
        actor="pharmacist",
        after={"name": "Aspirine"},
        correlation_id="req-1",
    )
    db_session.commit()

    assert event.id is not None
    stored = db_session.query(audit_models.AuditEvent).one()
    assert stored.entity_type == "Item"
    assert stored.actor == "pharmacist"
    assert stored.after == {"name": "Aspirine"}
    assert stored.correlation_id == "req-1"


def test_log_event_is_discarded_with_rolled_back_transaction(db_session):
    audit_services.log_event(db_session, entity_type="Item", entity_id="9", action="update")
    db_session.rollback()

    assert db_session.query(audit_models.AuditEvent).count() == 0


def test_catalog_and_sales_mutations_are_audited(db_session):
    item = catalog_services.create_item(
        db_session,
        data={
            "name": "Doliprane",
            "unit_price": "6.00",
            "quantity_on_hand": 10,
            "expires_on": (date.today() + timedelta(days=90)).isoformat(),
        },
        actor="alice",
        correlation_id="req-create",
    )
    catalog_services.update_item(db_session, item.id, data={"unit_price": "6.50"}, actor="alice")
    sale = sales_services.record_sale(db_session, item_id=item.id, quantity=2, actor="bob", correlation_id="req-sale")

    item_events = audit_services.list_audit_events(db_session, entity_type="Item", entity_id=str(item.id))
    assert sorted(e.action for e in item_events) == ["create", "update"]
    update_event = next(e for e in item_events if e.action == "update")
    assert update_event.before["unit_price"] == "6.00"
    assert update_event.after["unit_price"] == "6.50"

    sale_events = audit_services.list_audit_events(db_session, entity_type="SaleRecord")
    assert len(sale_events) == 1
    assert sale_events[0].entity_id == str(sale.id)
    assert sale_events[0].actor == "bob"
    assert sale_events[0].correlation_id == "req-sale"
    assert sale_events[0].after["total_price"] == "13.00"


def test_list_audit_events_respects_limit(db_session):
    for idx in range(5):
        audit_services.log_event(db_session, entity_type="Item", entity_id=str(idx), action="create")
    db_session.commit()

    assert len(audit_services.list_audit_events(db_session, limit=3)) == 3
    assert len(audit_services.list_audit_events(db_session, entity_id="4")) == 1


def test_log_event_stamps_occurrence_time(db_session):
    event = audit_services.log_event(db_session, entity_type="Item", entity_id="3", action="delete")

    assert event.occurred_at is not None
    assert event.created_at is not None


def test_callers_cannot_backdate_audit_events():
    assert "occurred_at" not in audit_schemas.AuditEventCreate.model_fields
