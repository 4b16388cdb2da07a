"""Create catalog, sale ledger and audit tables.

Revision ID: 0001_create_items_sales_audit
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision = "0001_create_items_sales_audit"
down_revision = None
branch_labels = None
depends_on = None


def _table_exists(table_name: str) -> bool:
    bind = op.get_bind()
    return bool(inspect(bind).has_table(table_name))


def upgrade() -> None:
    if not _table_exists("items"):
        op.create_table(
            "items",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
            sa.Column("quantity_on_hand", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("expires_on", sa.Date(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.CheckConstraint("quantity_on_hand >= 0", name="ck_items_quantity_non_negative"),
            sa.CheckConstraint("unit_price > 0", name="ck_items_unit_price_positive"),
        )
        op.create_index("ix_items_name", "items", ["name"])
        op.create_index("ix_items_expires_on", "items", ["expires_on"])

    if not _table_exists("sale_records"):
        op.create_table(
            "sale_records",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("item_id", sa.Integer(), nullable=False),
            sa.Column("item_name_snapshot", sa.String(length=255), nullable=False),
            sa.Column("unit_price_snapshot", sa.Numeric(12, 2), nullable=False),
            sa.Column("quantity_sold", sa.Integer(), nullable=False),
            sa.Column("total_price", sa.Numeric(14, 2), nullable=False),
            sa.Column("customer_label", sa.String(length=255), nullable=True),
            sa.Column("sold_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.CheckConstraint("quantity_sold > 0", name="ck_sale_records_quantity_positive"),
        )
        op.create_index("ix_sale_records_item_id", "sale_records", ["item_id"])
        op.create_index("ix_sale_records_sold_at", "sale_records", ["sold_at"])
        op.create_index("ix_sale_records_item_sold_at", "sale_records", ["item_id", "sold_at"])

    if not _table_exists("audit_events"):
        op.create_table(
            "audit_events",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("entity_type", sa.String(length=64), nullable=False),
            sa.Column("entity_id", sa.String(length=64), nullable=False),
            sa.Column("action", sa.String(length=64), nullable=False),
            sa.Column("actor", sa.String(length=128), nullable=True),
            sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("before", sa.JSON(), nullable=True),
            sa.Column("after", sa.JSON(), nullable=True),
            sa.Column("correlation_id", sa.String(length=64), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index("ix_audit_events_id", "audit_events", ["id"])
        op.create_index("ix_audit_events_entity_type", "audit_events", ["entity_type"])
        op.create_index("ix_audit_events_entity_id", "audit_events", ["entity_id"])
        op.create_index("ix_audit_events_action", "audit_events", ["action"])
        op.create_index("ix_audit_events_actor", "audit_events", ["actor"])
        op.create_index("ix_audit_events_occurred_at", "audit_events", ["occurred_at"])
        op.create_index("ix_audit_events_correlation_id", "audit_events", ["correlation_id"])
        op.create_index("ix_audit_events_entity", "audit_events", ["entity_type", "entity_id"])
        op.create_index("ix_audit_events_time_desc", "audit_events", [sa.text("occurred_at DESC")])


def downgrade() -> None:
    for table_name in ("audit_events", "sale_records", "items"):
        if _table_exists(table_name):
            op.drop_table(table_name)
