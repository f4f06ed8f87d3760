"""
Alert and notification batch jobs.

Each task opens its own Database handle, runs one batch operation, and
disposes the handle. Per-item failures are isolated inside the batch and
reported in the returned counts.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from workers.celery_app import celery_app

logger = structlog.get_logger()


async def run_with_session(job: Callable[[AsyncSession], Awaitable[dict[str, Any]]]) -> dict[str, Any]:
    from core.config import get_settings
    from db.session import Database

    settings = get_settings()
    database = Database(settings.database_url)
    await database.connect()
    try:
        async with database.session() as db:
            return await job(db)
    finally:
        await database.dispose()


@celery_app.task(
    name="workers.alerts.scan_products",
    bind=True,
    max_retries=2,
    default_retry_delay=60,
    acks_late=True,
)
def scan_products(self):
    """Evaluate every active product and persist new alerts."""
    from alerts.engine import scan_products as scan

    try:
        summary = asyncio.run(run_with_session(scan))
    except Exception as exc:
        logger.error("workers.scan_products_failed", error=str(exc), exc_info=True)
        raise self.retry(exc=exc)
    return {"status": "success", **summary}


@celery_app.task(
    name="workers.alerts.process_active_alerts",
    bind=True,
    max_retries=2,
    default_retry_delay=60,
    acks_late=True,
)
def process_active_alerts(self):
    """Send one notification per unresolved alert."""
    from alerts.channel import SendGridChannel
    from alerts.notifications import process_active_alerts as process

    channel = SendGridChannel()
    try:
        summary = asyncio.run(run_with_session(lambda db: process(db, channel)))
    except Exception as exc:
        logger.error("workers.process_active_alerts_failed", error=str(exc), exc_info=True)
        raise self.retry(exc=exc)
    return {"status": "success", **summary}


@celery_app.task(
    name="workers.alerts.retry_pending_notifications",
    bind=True,
    max_retries=2,
    default_retry_delay=60,
    acks_late=True,
)
def retry_pending_notifications(self):
    """Re-attempt pending notifications until they are sent or exhausted."""
    from alerts.channel import SendGridChannel
    from alerts.notifications import retry_pending_notifications as retry_pending

    channel = SendGridChannel()
    try:
        summary = asyncio.run(run_with_session(lambda db: retry_pending(db, channel)))
    except Exception as exc:
        logger.error("workers.retry_pending_notifications_failed", error=str(exc), exc_info=True)
        raise self.retry(exc=exc)
    return {"status": "success", **summary}
