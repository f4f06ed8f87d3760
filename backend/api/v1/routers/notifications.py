"""
Notifications Router — outbound notification log and retries.
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from alerts.channel import NotificationChannel
from alerts.notifications import (
    list_pending_notifications,
    retry_pending_notifications,
    update_notification_status,
)
from api.deps import get_channel, get_db, require

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class NotificationResponse(BaseModel):
    log_id: UUID
    alert_id: UUID | None
    product_id: UUID | None
    notification_type: str
    recipient: str | None
    title: str
    content: str
    status: str
    attempts: int
    error_message: str | None
    sent_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class StatusUpdate(BaseModel):
    status: Literal["pending", "sent", "failed"]
    error_message: str | None = None


class RetrySummary(BaseModel):
    retried: int
    sent: int
    failed: int
    exhausted: int


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/pending", response_model=list[NotificationResponse])
async def get_pending(
    db: AsyncSession = Depends(get_db),
    user=Depends(require("notifications.list_pending")),
):
    return await list_pending_notifications(db)


@router.patch("/{log_id}/status", response_model=NotificationResponse)
async def set_status(
    log_id: UUID,
    body: StatusUpdate,
    db: AsyncSession = Depends(get_db),
    user=Depends(require("notifications.update_status")),
):
    return await update_notification_status(db, log_id, body.status, body.error_message)


@router.post("/retry", response_model=RetrySummary)
async def retry_pending(
    db: AsyncSession = Depends(get_db),
    channel: NotificationChannel = Depends(get_channel),
    user=Depends(require("notifications.retry")),
):
    """Re-attempt every pending notification."""
    return await retry_pending_notifications(db, channel)
