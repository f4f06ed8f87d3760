"""
Initial schema - all 11 tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _uuid_pk(name: str) -> sa.Column:
    return sa.Column(name, UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()"))


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # 1. Categories
    op.create_table(
        "categories",
        _uuid_pk("category_id"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text),
        *_timestamps(),
    )

    # 2. Suppliers
    op.create_table(
        "suppliers",
        _uuid_pk("supplier_id"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("contact_person", sa.String(255)),
        sa.Column("email", sa.String(320)),
        sa.Column("phone", sa.String(20)),
        sa.Column("address", sa.Text),
        sa.Column("city", sa.String(100)),
        sa.Column("country", sa.String(100)),
        sa.Column("payment_terms", sa.String(255)),
        sa.Column("notes", sa.Text),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    # 3. Warehouses
    op.create_table(
        "warehouses",
        _uuid_pk("warehouse_id"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("location", sa.Text),
        sa.Column("capacity", sa.Integer),
        *_timestamps(),
        sa.CheckConstraint("capacity IS NULL OR capacity >= 0", name="ck_warehouse_capacity"),
    )

    # 4. Locations
    op.create_table(
        "locations",
        _uuid_pk("location_id"),
        sa.Column("warehouse_id", UUID(as_uuid=True), sa.ForeignKey("warehouses.warehouse_id"), nullable=False),
        sa.Column("code", sa.String(100), nullable=False),
        sa.Column("aisle", sa.String(50)),
        sa.Column("shelf", sa.String(50)),
        sa.Column("bin", sa.String(50)),
        sa.Column("description", sa.Text),
        *_timestamps(),
    )
    op.create_index("ix_locations_warehouse", "locations", ["warehouse_id"])

    # 5. Products
    op.create_table(
        "products",
        _uuid_pk("product_id"),
        sa.Column("code", sa.String(100), nullable=False, unique=True),
        sa.Column("barcode", sa.String(100), unique=True),
        sa.Column("qr_code", sa.String(255)),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("category_id", UUID(as_uuid=True), sa.ForeignKey("categories.category_id"), nullable=False),
        sa.Column("supplier_id", UUID(as_uuid=True), sa.ForeignKey("suppliers.supplier_id")),
        sa.Column("unit", sa.String(50), nullable=False),
        sa.Column("price", sa.Float, nullable=False),
        sa.Column("cost", sa.Float),
        sa.Column("stock", sa.Integer, nullable=False, server_default="0"),
        sa.Column("min_stock", sa.Integer, nullable=False, server_default="10"),
        sa.Column("max_stock", sa.Integer, nullable=False, server_default="100"),
        sa.Column("reorder_quantity", sa.Integer, nullable=False, server_default="50"),
        sa.Column("expiration_date", sa.DateTime),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("location_id", UUID(as_uuid=True), sa.ForeignKey("locations.location_id")),
        *_timestamps(),
        sa.CheckConstraint("stock >= 0", name="ck_product_stock_non_negative"),
        sa.CheckConstraint("min_stock >= 0", name="ck_product_min_stock_non_negative"),
        sa.CheckConstraint("min_stock <= max_stock", name="ck_product_stock_bounds"),
        sa.CheckConstraint("price >= 0", name="ck_product_price_positive"),
        sa.CheckConstraint("cost IS NULL OR cost >= 0", name="ck_product_cost_positive"),
        sa.CheckConstraint("status IN ('active', 'discontinued', 'inactive')", name="ck_product_status"),
    )
    op.create_index("ix_products_category", "products", ["category_id"])
    op.create_index("ix_products_status", "products", ["status"])

    # 6. Purchase Orders (before stock_movements, which references it)
    op.create_table(
        "purchase_orders",
        _uuid_pk("po_id"),
        sa.Column("order_number", sa.String(100), nullable=False, unique=True),
        sa.Column("supplier_id", UUID(as_uuid=True), sa.ForeignKey("suppliers.supplier_id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("total_amount", sa.Float, nullable=False, server_default="0"),
        sa.Column("expected_delivery_date", sa.DateTime),
        sa.Column("received_date", sa.DateTime),
        sa.Column("notes", sa.Text),
        sa.Column("created_by", sa.String(64), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("total_amount >= 0", name="ck_po_total_positive"),
        sa.CheckConstraint(
            "status IN ('draft', 'pending', 'confirmed', 'received', 'cancelled')",
            name="ck_po_status",
        ),
    )
    op.create_index("ix_po_status", "purchase_orders", ["status"])

    # 7. Purchase Order Items
    op.create_table(
        "purchase_order_items",
        _uuid_pk("item_id"),
        sa.Column("po_id", UUID(as_uuid=True), sa.ForeignKey("purchase_orders.po_id"), nullable=False),
        sa.Column("product_id", UUID(as_uuid=True), sa.ForeignKey("products.product_id"), nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("unit_price", sa.Float, nullable=False),
        sa.Column("total_price", sa.Float, nullable=False),
        sa.Column("received_quantity", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("quantity > 0", name="ck_po_item_quantity_positive"),
        sa.CheckConstraint("unit_price >= 0", name="ck_po_item_price_positive"),
        sa.CheckConstraint("received_quantity >= 0", name="ck_po_item_received_non_negative"),
    )
    op.create_index("ix_po_items_po", "purchase_order_items", ["po_id"])

    # 8. Stock Movements (kardex, append-only)
    op.create_table(
        "stock_movements",
        sa.Column("movement_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("product_id", UUID(as_uuid=True), sa.ForeignKey("products.product_id"), nullable=False),
        sa.Column("movement_type", sa.String(20), nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("previous_stock", sa.Integer, nullable=False),
        sa.Column("resulting_stock", sa.Integer, nullable=False),
        sa.Column("reference_number", sa.String(100)),
        sa.Column("reason", sa.Text),
        sa.Column("notes", sa.Text),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("purchase_order_id", UUID(as_uuid=True), sa.ForeignKey("purchase_orders.po_id")),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "movement_type IN ('entry', 'exit', 'adjustment', 'return', 'write_off')",
            name="ck_movement_type",
        ),
        sa.CheckConstraint("quantity >= 0", name="ck_movement_quantity_non_negative"),
        sa.CheckConstraint("previous_stock >= 0", name="ck_movement_previous_non_negative"),
        sa.CheckConstraint("resulting_stock >= 0", name="ck_movement_resulting_non_negative"),
    )
    op.create_index("ix_movements_product_time", "stock_movements", ["product_id", "created_at"])
    op.create_index("ix_movements_type", "stock_movements", ["movement_type"])

    # 9. Alerts
    op.create_table(
        "alerts",
        _uuid_pk("alert_id"),
        sa.Column("product_id", UUID(as_uuid=True), sa.ForeignKey("products.product_id"), nullable=False),
        sa.Column("alert_type", sa.String(50), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("is_resolved", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("resolved_at", sa.DateTime),
        sa.Column("resolved_by", sa.String(64)),
        *_timestamps(),
        sa.CheckConstraint(
            "alert_type IN ('low_stock', 'out_of_stock', 'expiring_soon', 'expired', 'purchase_order_pending')",
            name="ck_alert_type",
        ),
    )
    op.create_index("ix_alerts_open", "alerts", ["product_id", "alert_type", "is_resolved"])

    # 10. Notification Logs
    op.create_table(
        "notification_logs",
        _uuid_pk("log_id"),
        sa.Column("alert_id", UUID(as_uuid=True), sa.ForeignKey("alerts.alert_id")),
        sa.Column("product_id", UUID(as_uuid=True), sa.ForeignKey("products.product_id")),
        sa.Column("notification_type", sa.String(50), nullable=False),
        sa.Column("recipient", sa.String(320)),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("attempts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text),
        sa.Column("sent_at", sa.DateTime),
        *_timestamps(),
        sa.CheckConstraint("status IN ('pending', 'sent', 'failed')", name="ck_notification_status"),
        sa.CheckConstraint(
            "notification_type IN ('low_stock', 'out_of_stock', 'expiring_soon', 'expired', "
            "'purchase_order_pending', 'purchase_order')",
            name="ck_notification_type",
        ),
        sa.CheckConstraint("attempts >= 0", name="ck_notification_attempts"),
    )
    op.create_index("ix_notification_logs_status", "notification_logs", ["status"])

    # 11. Demand Forecasts
    op.create_table(
        "demand_forecasts",
        _uuid_pk("forecast_id"),
        sa.Column("product_id", UUID(as_uuid=True), sa.ForeignKey("products.product_id"), nullable=False),
        sa.Column("forecasted_demand", sa.Integer, nullable=False),
        sa.Column("suggested_order_quantity", sa.Integer, nullable=False),
        sa.Column("confidence", sa.Float),
        sa.Column("analysis_data", sa.JSON),
        sa.Column("generated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("valid_until", sa.DateTime),
        sa.CheckConstraint("forecasted_demand >= 0", name="ck_forecast_demand_positive"),
        sa.CheckConstraint("suggested_order_quantity >= 0", name="ck_forecast_quantity_positive"),
        sa.CheckConstraint(
            "confidence IS NULL OR (confidence >= 0 AND confidence <= 100)",
            name="ck_forecast_confidence_range",
        ),
    )
    op.create_index("ix_forecast_product_generated", "demand_forecasts", ["product_id", "generated_at"])


def downgrade() -> None:
    for table in (
        "demand_forecasts",
        "notification_logs",
        "alerts",
        "stock_movements",
        "purchase_order_items",
        "purchase_orders",
        "products",
        "locations",
        "warehouses",
        "suppliers",
        "categories",
    ):
        op.drop_table(table)
