"""
Kardex Database Models

Tables:
  Master data:
  1. categories            - Product categories
  2. suppliers             - Product suppliers
  3. warehouses            - Physical warehouses
  4. locations             - Aisle/shelf/bin positions inside a warehouse
  5. products              - Product catalog with the current stock snapshot

  Ledger:
  6. stock_movements       - Immutable kardex entries (append-only)

  Purchasing:
  7. purchase_orders       - Order headers
  8. purchase_order_items  - Order lines

  Alerting & forecasting:
  9. alerts                - Stock/expiration alerts
  10. notification_logs    - Outbound notification attempts
  11. demand_forecasts     - Predictor output (append-only, latest wins)
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
    types,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import relationship

from db.session import Base

PRODUCT_STATUSES = ("active", "discontinued", "inactive")
MOVEMENT_TYPES = ("entry", "exit", "adjustment", "return", "write_off")
PO_STATUSES = ("draft", "pending", "confirmed", "received", "cancelled")
ALERT_TYPES = ("low_stock", "out_of_stock", "expiring_soon", "expired", "purchase_order_pending")
NOTIFICATION_STATUSES = ("pending", "sent", "failed")
NOTIFICATION_TYPES = ("low_stock", "out_of_stock", "expiring_soon", "expired", "purchase_order_pending", "purchase_order")


def _in_list(column: str, values: tuple[str, ...]) -> str:
    return f"{column} IN ({', '.join(repr(v) for v in values)})"


class GUID(TypeDecorator):
    """Platform-independent UUID type.

    Uses PostgreSQL UUID when available, stores as CHAR(36) on SQLite.
    """

    impl = types.String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        return dialect.type_descriptor(types.String(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if dialect.name == "postgresql":
            return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
        return str(value) if isinstance(value, uuid.UUID) else str(uuid.UUID(str(value)))

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))


# ─── 1. Categories ──────────────────────────────────────────────────────────


class Category(Base):
    __tablename__ = "categories"

    category_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    products = relationship("Product", back_populates="category")


# ─── 2. Suppliers ───────────────────────────────────────────────────────────


class Supplier(Base):
    __tablename__ = "suppliers"

    supplier_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    contact_person = Column(String(255))
    email = Column(String(320))
    phone = Column(String(20))
    address = Column(Text)
    city = Column(String(100))
    country = Column(String(100))
    payment_terms = Column(String(255))
    notes = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    products = relationship("Product", back_populates="supplier")


# ─── 3. Warehouses ──────────────────────────────────────────────────────────


class Warehouse(Base):
    __tablename__ = "warehouses"

    warehouse_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    location = Column(Text)
    capacity = Column(Integer)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (CheckConstraint("capacity IS NULL OR capacity >= 0", name="ck_warehouse_capacity"),)

    locations = relationship("Location", back_populates="warehouse", cascade="all, delete-orphan")


# ─── 4. Locations ───────────────────────────────────────────────────────────


class Location(Base):
    __tablename__ = "locations"

    location_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    warehouse_id = Column(GUID(), ForeignKey("warehouses.warehouse_id"), nullable=False)
    code = Column(String(100), nullable=False)
    aisle = Column(String(50))
    shelf = Column(String(50))
    bin = Column(String(50))
    description = Column(Text)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (Index("ix_locations_warehouse", "warehouse_id"),)

    warehouse = relationship("Warehouse", back_populates="locations")


# ─── 5. Products ────────────────────────────────────────────────────────────


class Product(Base):
    __tablename__ = "products"

    product_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    code = Column(String(100), nullable=False, unique=True)
    barcode = Column(String(100), unique=True)
    qr_code = Column(String(255))
    name = Column(String(255), nullable=False)
    description = Column(Text)
    category_id = Column(GUID(), ForeignKey("categories.category_id"), nullable=False)
    supplier_id = Column(GUID(), ForeignKey("suppliers.supplier_id"), nullable=True)
    unit = Column(String(50), nullable=False)
    price = Column(Float, nullable=False)
    cost = Column(Float)
    # Only the stock mutation service writes this column.
    stock = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer, nullable=False, default=10)
    max_stock = Column(Integer, nullable=False, default=100)
    reorder_quantity = Column(Integer, nullable=False, default=50)
    expiration_date = Column(DateTime)
    status = Column(String(20), nullable=False, default="active")
    location_id = Column(GUID(), ForeignKey("locations.location_id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_products_category", "category_id"),
        Index("ix_products_status", "status"),
        CheckConstraint("stock >= 0", name="ck_product_stock_non_negative"),
        CheckConstraint("min_stock >= 0", name="ck_product_min_stock_non_negative"),
        CheckConstraint("min_stock <= max_stock", name="ck_product_stock_bounds"),
        CheckConstraint("price >= 0", name="ck_product_price_positive"),
        CheckConstraint("cost IS NULL OR cost >= 0", name="ck_product_cost_positive"),
        CheckConstraint(_in_list("status", PRODUCT_STATUSES), name="ck_product_status"),
    )

    category = relationship("Category", back_populates="products")
    supplier = relationship("Supplier", back_populates="products")


# ─── 6. Stock Movements (kardex) ────────────────────────────────────────────


class StockMovement(Base):
    """Append-only ledger entry.

    `movement_id` is a sequential entry number so that entries written in the
    same clock tick still have a stable order.
    """

    __tablename__ = "stock_movements"

    movement_id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(GUID(), ForeignKey("products.product_id"), nullable=False)
    movement_type = Column(String(20), nullable=False)
    quantity = Column(Integer, nullable=False)
    previous_stock = Column(Integer, nullable=False)
    resulting_stock = Column(Integer, nullable=False)
    reference_number = Column(String(100))
    reason = Column(Text)
    notes = Column(Text)
    user_id = Column(String(64), nullable=False)
    purchase_order_id = Column(GUID(), ForeignKey("purchase_orders.po_id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_movements_product_time", "product_id", "created_at"),
        Index("ix_movements_type", "movement_type"),
        CheckConstraint(_in_list("movement_type", MOVEMENT_TYPES), name="ck_movement_type"),
        CheckConstraint("quantity >= 0", name="ck_movement_quantity_non_negative"),
        CheckConstraint("previous_stock >= 0", name="ck_movement_previous_non_negative"),
        CheckConstraint("resulting_stock >= 0", name="ck_movement_resulting_non_negative"),
    )


# ─── 7. Purchase Orders ─────────────────────────────────────────────────────


class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"

    po_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    order_number = Column(String(100), nullable=False, unique=True)
    supplier_id = Column(GUID(), ForeignKey("suppliers.supplier_id"), nullable=False)
    status = Column(String(20), nullable=False, default="draft")
    total_amount = Column(Float, nullable=False, default=0.0)
    expected_delivery_date = Column(DateTime)
    received_date = Column(DateTime)
    notes = Column(Text)
    created_by = Column(String(64), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_po_status", "status"),
        CheckConstraint("total_amount >= 0", name="ck_po_total_positive"),
        CheckConstraint(_in_list("status", PO_STATUSES), name="ck_po_status"),
    )

    items = relationship("PurchaseOrderItem", back_populates="purchase_order", cascade="all, delete-orphan")


# ─── 8. Purchase Order Items ────────────────────────────────────────────────


class PurchaseOrderItem(Base):
    __tablename__ = "purchase_order_items"

    item_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    po_id = Column(GUID(), ForeignKey("purchase_orders.po_id"), nullable=False)
    product_id = Column(GUID(), ForeignKey("products.product_id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)
    total_price = Column(Float, nullable=False)
    received_quantity = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_po_items_po", "po_id"),
        CheckConstraint("quantity > 0", name="ck_po_item_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_po_item_price_positive"),
        CheckConstraint("received_quantity >= 0", name="ck_po_item_received_non_negative"),
    )

    purchase_order = relationship("PurchaseOrder", back_populates="items")


# ─── 9. Alerts ──────────────────────────────────────────────────────────────


class Alert(Base):
    __tablename__ = "alerts"

    alert_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    product_id = Column(GUID(), ForeignKey("products.product_id"), nullable=False)
    alert_type = Column(String(50), nullable=False)
    message = Column(Text, nullable=False)
    is_resolved = Column(Boolean, nullable=False, default=False)
    resolved_at = Column(DateTime)
    resolved_by = Column(String(64))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_alerts_open", "product_id", "alert_type", "is_resolved"),
        CheckConstraint(_in_list("alert_type", ALERT_TYPES), name="ck_alert_type"),
    )


# ─── 10. Notification Logs ──────────────────────────────────────────────────


class NotificationLog(Base):
    __tablename__ = "notification_logs"

    log_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    alert_id = Column(GUID(), ForeignKey("alerts.alert_id"), nullable=True)
    product_id = Column(GUID(), ForeignKey("products.product_id"), nullable=True)
    notification_type = Column(String(50), nullable=False)
    recipient = Column(String(320))
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    attempts = Column(Integer, nullable=False, default=0)
    error_message = Column(Text)
    sent_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_notification_logs_status", "status"),
        CheckConstraint(_in_list("status", NOTIFICATION_STATUSES), name="ck_notification_status"),
        CheckConstraint(_in_list("notification_type", NOTIFICATION_TYPES), name="ck_notification_type"),
        CheckConstraint("attempts >= 0", name="ck_notification_attempts"),
    )


# ─── 11. Demand Forecasts ───────────────────────────────────────────────────


class DemandForecast(Base):
    __tablename__ = "demand_forecasts"

    forecast_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    product_id = Column(GUID(), ForeignKey("products.product_id"), nullable=False)
    forecasted_demand = Column(Integer, nullable=False)
    suggested_order_quantity = Column(Integer, nullable=False)
    confidence = Column(Float)
    analysis_data = Column(JSON, default=dict)
    generated_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    valid_until = Column(DateTime)

    __table_args__ = (
        Index("ix_forecast_product_generated", "product_id", "generated_at"),
        CheckConstraint("forecasted_demand >= 0", name="ck_forecast_demand_positive"),
        CheckConstraint("suggested_order_quantity >= 0", name="ck_forecast_quantity_positive"),
        CheckConstraint("confidence IS NULL OR (confidence >= 0 AND confidence <= 100)", name="ck_forecast_confidence_range"),
    )
