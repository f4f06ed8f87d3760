"""
Alert Engine — stock and expiration conditions, alert lifecycle.

Alert Types:
  - out_of_stock: stock == 0
  - low_stock: 0 < stock <= min_stock
  - expiring_soon: expiration within the warning window (default 30 days)
  - expired: expiration date in the past
  - purchase_order_pending: raised manually, never by the evaluator

Creation is idempotent per (product, type) while an alert is unresolved.
Resolution is always explicit; a condition clearing does not resolve its alert.
"""

import math
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.errors import InvalidOperationError, NotFoundError
from db.models import Alert, Product

logger = structlog.get_logger()

SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class AlertCondition:
    alert_type: str
    message: str


# ──────────────────────────────────────────────────────────────────────────
# Detection Rules
# ──────────────────────────────────────────────────────────────────────────


def days_until(expiration: datetime, now: datetime) -> int:
    """Whole days until `expiration`, rounded up. Negative once expired."""
    return math.ceil((expiration - now).total_seconds() / SECONDS_PER_DAY)


def classify_stock(stock: int, min_stock: int) -> str | None:
    if stock == 0:
        return "out_of_stock"
    if 0 < stock <= min_stock:
        return "low_stock"
    return None


def classify_expiration(expiration: datetime | None, now: datetime, warning_days: int) -> str | None:
    if expiration is None:
        return None
    remaining = days_until(expiration, now)
    if remaining < 0:
        return "expired"
    if remaining <= warning_days:
        return "expiring_soon"
    return None


def evaluate_product(
    product: Product,
    now: datetime | None = None,
    warning_days: int | None = None,
) -> list[AlertCondition]:
    """Alert conditions currently true for a product snapshot."""
    now = now or datetime.utcnow()
    if warning_days is None:
        warning_days = get_settings().expiration_warning_days

    conditions = []
    stock_type = classify_stock(product.stock, product.min_stock)
    if stock_type == "out_of_stock":
        conditions.append(AlertCondition("out_of_stock", f"{product.name} is out of stock."))
    elif stock_type == "low_stock":
        conditions.append(
            AlertCondition(
                "low_stock",
                f"{product.name} is low on stock: {product.stock} left, minimum is {product.min_stock}.",
            )
        )

    expiration_type = classify_expiration(product.expiration_date, now, warning_days)
    if expiration_type == "expired":
        conditions.append(
            AlertCondition("expired", f"{product.name} expired on {product.expiration_date.date().isoformat()}.")
        )
    elif expiration_type == "expiring_soon":
        remaining = days_until(product.expiration_date, now)
        conditions.append(
            AlertCondition(
                "expiring_soon",
                f"{product.name} expires in {remaining} days ({product.expiration_date.date().isoformat()}).",
            )
        )
    return conditions


# ──────────────────────────────────────────────────────────────────────────
# Persistence
# ──────────────────────────────────────────────────────────────────────────


async def find_open_alert(db: AsyncSession, product_id: uuid.UUID, alert_type: str) -> Alert | None:
    result = await db.execute(
        select(Alert)
        .where(
            Alert.product_id == product_id,
            Alert.alert_type == alert_type,
            Alert.is_resolved.is_(False),
        )
        .limit(1)
    )
    return result.scalar_one_or_none()


async def create_alert(db: AsyncSession, product_id: uuid.UUID, alert_type: str, message: str) -> tuple[Alert, bool]:
    """Return the open alert for (product, type), creating it if needed.

    The boolean is True when a new row was staged. Does not commit.
    """
    existing = await find_open_alert(db, product_id, alert_type)
    if existing is not None:
        return existing, False
    alert = Alert(product_id=product_id, alert_type=alert_type, message=message, is_resolved=False)
    db.add(alert)
    await db.flush()
    return alert, True


async def upsert_alerts(db: AsyncSession, product_id: uuid.UUID, conditions: list[AlertCondition]) -> list[Alert]:
    """Stage alerts for new conditions; returns only the newly created ones."""
    created = []
    for condition in conditions:
        alert, is_new = await create_alert(db, product_id, condition.alert_type, condition.message)
        if is_new:
            created.append(alert)
    return created


async def evaluate_and_upsert(db: AsyncSession, product: Product, now: datetime | None = None) -> list[Alert]:
    conditions = evaluate_product(product, now=now)
    created = await upsert_alerts(db, product.product_id, conditions)
    if created:
        logger.info(
            "alerts.created",
            product_id=str(product.product_id),
            alert_types=[a.alert_type for a in created],
        )
    return created


async def list_active_alerts(db: AsyncSession, product_id: uuid.UUID | None = None) -> list[Alert]:
    query = select(Alert).where(Alert.is_resolved.is_(False))
    if product_id:
        query = query.where(Alert.product_id == product_id)
    query = query.order_by(Alert.created_at.desc())
    result = await db.execute(query)
    return list(result.scalars().all())


async def resolve_alert(db: AsyncSession, alert_id: uuid.UUID, actor_id: str) -> Alert:
    alert = await db.get(Alert, alert_id)
    if alert is None:
        raise NotFoundError("Alert not found", alert_id=alert_id)
    if alert.is_resolved:
        raise InvalidOperationError("Alert is already resolved", alert_id=alert_id)

    alert.is_resolved = True
    alert.resolved_at = datetime.utcnow()
    alert.resolved_by = actor_id
    await db.commit()
    await db.refresh(alert)
    logger.info("alerts.resolved", alert_id=str(alert_id), resolved_by=actor_id)
    return alert


# ──────────────────────────────────────────────────────────────────────────
# Batch scan (expiration conditions change with time, so this runs periodically)
# ──────────────────────────────────────────────────────────────────────────


async def scan_products(db: AsyncSession, now: datetime | None = None) -> dict[str, Any]:
    """
    Evaluate every active product and persist new alerts.

    Products are read once up front; each is committed on its own so a failing
    product does not roll back the others.
    """
    now = now or datetime.utcnow()
    result = await db.execute(select(Product.product_id).where(Product.status == "active"))
    product_ids = [row.product_id for row in result.all()]

    created = 0
    failed = 0
    for product_id in product_ids:
        try:
            product = await db.get(Product, product_id)
            if product is None:
                continue
            created += len(await evaluate_and_upsert(db, product, now=now))
            await db.commit()
        except Exception as exc:
            await db.rollback()
            failed += 1
            logger.error("alerts.scan_failed", product_id=str(product_id), error=str(exc))

    summary = {"scanned": len(product_ids), "created": created, "failed": failed}
    logger.info("alerts.scan_completed", **summary)
    return summary
