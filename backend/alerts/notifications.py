"""
Notification Dispatcher — alert and forecast messages with retry bookkeeping.

Every send writes (and commits) a `pending` log row before the channel is
called, so a crash mid-delivery leaves an auditable row that the retry batch
picks up later. A delivery then moves the row to `sent` or `failed`.

Retry policy:
  - retry_pending_notifications() re-attempts every `pending` row.
  - A failed retry increments `attempts`; the row stays `pending` until
    `attempts` reaches notification_max_attempts, then becomes `failed`.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from alerts.channel import DeliveryResult, NotificationChannel
from core.config import get_settings
from core.errors import InvalidOperationError, NotFoundError
from db.models import Alert, DemandForecast, NotificationLog, Product

logger = structlog.get_logger()


@dataclass
class NotificationPayload:
    notification_type: str
    title: str
    content: str
    product_id: uuid.UUID | None = None
    alert_id: uuid.UUID | None = None


@dataclass
class DispatchResult:
    success: bool
    log_id: uuid.UUID
    error: str | None = None


# ──────────────────────────────────────────────────────────────────────────
# Message builders
# ──────────────────────────────────────────────────────────────────────────


def build_alert_payload(alert: Alert, product: Product) -> NotificationPayload:
    lines = [
        alert.message,
        "",
        "Details:",
        f"- Product: {product.name} ({product.code})",
        f"- Current stock: {product.stock} units",
        f"- Minimum stock: {product.min_stock} units",
    ]
    if product.expiration_date:
        lines.append(f"- Expiration date: {product.expiration_date.date().isoformat()}")
    lines += ["", "Please review the dashboard for more information."]

    return NotificationPayload(
        notification_type=alert.alert_type,
        title=f"Inventory alert: {product.name}",
        content="\n".join(lines),
        product_id=product.product_id,
        alert_id=alert.alert_id,
    )


def build_purchase_suggestion_payload(product: Product, forecast: DemandForecast) -> NotificationPayload:
    analysis = ""
    if isinstance(forecast.analysis_data, dict):
        analysis = forecast.analysis_data.get("analysis", "")
    confidence = f"{forecast.confidence:.0f}%" if forecast.confidence is not None else "n/a"

    content = "\n".join(
        [
            f"A purchase order is recommended for {product.name}.",
            "",
            "Recommendation:",
            f"- Suggested quantity: {forecast.suggested_order_quantity} units",
            f"- Forecasted demand (next month): {forecast.forecasted_demand} units",
            f"- Confidence: {confidence}",
            f"- Analysis: {analysis}",
            "",
            "This recommendation is based on the product's consumption history.",
        ]
    )
    return NotificationPayload(
        notification_type="purchase_order",
        title=f"Purchase suggestion: {product.name}",
        content=content,
        product_id=product.product_id,
    )


# ──────────────────────────────────────────────────────────────────────────
# Delivery
# ──────────────────────────────────────────────────────────────────────────


async def _attempt(channel: NotificationChannel, title: str, content: str) -> DeliveryResult:
    """One delivery attempt. A raising channel is recorded as a failed delivery."""
    try:
        return await channel.send(title, content)
    except Exception as exc:
        return DeliveryResult(False, f"{type(exc).__name__}: {exc}")


async def send_notification(
    db: AsyncSession,
    channel: NotificationChannel,
    payload: NotificationPayload,
) -> DispatchResult:
    log = NotificationLog(
        alert_id=payload.alert_id,
        product_id=payload.product_id,
        notification_type=payload.notification_type,
        title=payload.title[:255],
        content=payload.content,
        status="pending",
        attempts=0,
    )
    db.add(log)
    await db.commit()

    delivery = await _attempt(channel, log.title, log.content)

    log.attempts = 1
    log.recipient = delivery.recipient
    if delivery.success:
        log.status = "sent"
        log.sent_at = datetime.utcnow()
        log.error_message = None
    else:
        log.status = "failed"
        log.error_message = delivery.error or "Failed to send notification"
    await db.commit()

    logger.info(
        "notification.sent" if delivery.success else "notification.failed",
        log_id=str(log.log_id),
        notification_type=payload.notification_type,
        error=delivery.error,
    )
    return DispatchResult(success=delivery.success, log_id=log.log_id, error=delivery.error)


async def send_purchase_order_suggestion(
    db: AsyncSession,
    channel: NotificationChannel,
    product: Product,
    forecast: DemandForecast,
) -> DispatchResult:
    return await send_notification(db, channel, build_purchase_suggestion_payload(product, forecast))


# ──────────────────────────────────────────────────────────────────────────
# Batch operations
# ──────────────────────────────────────────────────────────────────────────


async def process_active_alerts(db: AsyncSession, channel: NotificationChannel) -> dict[str, int]:
    """Send one notification per unresolved alert (snapshot taken once)."""
    result = await db.execute(
        select(Alert.alert_id).where(Alert.is_resolved.is_(False)).order_by(Alert.created_at.desc())
    )
    alert_ids = [row.alert_id for row in result.all()]

    sent = failed = skipped = 0
    for alert_id in alert_ids:
        try:
            alert = await db.get(Alert, alert_id)
            product = await db.get(Product, alert.product_id) if alert else None
            if alert is None or product is None:
                skipped += 1
                continue
            dispatch = await send_notification(db, channel, build_alert_payload(alert, product))
            if dispatch.success:
                sent += 1
            else:
                failed += 1
        except Exception as exc:
            await db.rollback()
            failed += 1
            logger.error("notification.alert_processing_failed", alert_id=str(alert_id), error=str(exc))

    summary = {"processed": len(alert_ids), "sent": sent, "failed": failed, "skipped": skipped}
    logger.info("notification.alerts_processed", **summary)
    return summary


async def retry_pending_notifications(
    db: AsyncSession,
    channel: NotificationChannel,
    max_attempts: int | None = None,
) -> dict[str, int]:
    """Re-attempt every pending notification; one failure never stops the batch."""
    if max_attempts is None:
        max_attempts = get_settings().notification_max_attempts

    result = await db.execute(
        select(NotificationLog.log_id)
        .where(NotificationLog.status == "pending")
        .order_by(NotificationLog.created_at.asc())
    )
    log_ids = [row.log_id for row in result.all()]

    sent = failed = exhausted = 0
    for log_id in log_ids:
        try:
            log = await db.get(NotificationLog, log_id)
            if log is None or log.status != "pending":
                continue

            delivery = await _attempt(channel, log.title, log.content)
            log.attempts = (log.attempts or 0) + 1
            if delivery.recipient:
                log.recipient = delivery.recipient

            if delivery.success:
                log.status = "sent"
                log.sent_at = datetime.utcnow()
                log.error_message = None
                sent += 1
            else:
                log.error_message = delivery.error or "Retry failed"
                failed += 1
                if log.attempts >= max_attempts:
                    log.status = "failed"
                    exhausted += 1
            await db.commit()
        except Exception as exc:
            await db.rollback()
            failed += 1
            logger.error("notification.retry_failed", log_id=str(log_id), error=str(exc))

    summary = {"retried": len(log_ids), "sent": sent, "failed": failed, "exhausted": exhausted}
    logger.info("notification.retry_completed", **summary)
    return summary


async def list_pending_notifications(db: AsyncSession) -> list[NotificationLog]:
    result = await db.execute(
        select(NotificationLog).where(NotificationLog.status == "pending").order_by(NotificationLog.created_at.asc())
    )
    return list(result.scalars().all())


async def update_notification_status(
    db: AsyncSession,
    log_id: uuid.UUID,
    status: str,
    error_message: str | None = None,
) -> NotificationLog:
    """Manual status override (admin)."""
    log = await db.get(NotificationLog, log_id)
    if log is None:
        raise NotFoundError("Notification not found", log_id=log_id)
    if log.status == "sent" and status != "sent":
        raise InvalidOperationError("A sent notification cannot change status", log_id=log_id)

    log.status = status
    log.error_message = error_message
    log.sent_at = datetime.utcnow() if status == "sent" else None
    await db.commit()
    await db.refresh(log)
    return log
