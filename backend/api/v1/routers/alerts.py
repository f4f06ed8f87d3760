"""
Alerts Router — Alert management endpoints.
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from alerts.channel import NotificationChannel
from alerts.engine import create_alert, list_active_alerts, resolve_alert, scan_products
from alerts.notifications import process_active_alerts
from api.deps import get_channel, get_current_user, get_db, require
from core.errors import NotFoundError
from core.security import Actor
from db.models import Product

router = APIRouter(prefix="/api/v1/alerts", tags=["alerts"])

AlertType = Literal["low_stock", "out_of_stock", "expiring_soon", "expired", "purchase_order_pending"]


# ─── Schemas ────────────────────────────────────────────────────────────────


class AlertResponse(BaseModel):
    alert_id: UUID
    product_id: UUID
    alert_type: str
    message: str
    is_resolved: bool
    resolved_at: datetime | None
    resolved_by: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class AlertCreate(BaseModel):
    product_id: UUID
    alert_type: AlertType
    message: str = Field(..., min_length=1)


class ScanSummary(BaseModel):
    scanned: int
    created: int
    failed: int


class ProcessSummary(BaseModel):
    processed: int
    sent: int
    failed: int
    skipped: int


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/", response_model=list[AlertResponse])
async def get_active_alerts(
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    """Unresolved alerts, newest first."""
    return await list_active_alerts(db)


@router.get("/product/{product_id}", response_model=list[AlertResponse])
async def get_product_alerts(
    product_id: UUID,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    return await list_active_alerts(db, product_id=product_id)


@router.post("/", response_model=AlertResponse, status_code=201)
async def raise_alert(
    body: AlertCreate,
    db: AsyncSession = Depends(get_db),
    user=Depends(require("alerts.create")),
):
    """Raise an alert manually. Returns the open alert if one already exists."""
    if await db.get(Product, body.product_id) is None:
        raise NotFoundError("Product not found", product_id=body.product_id)
    alert, _ = await create_alert(db, body.product_id, body.alert_type, body.message)
    await db.commit()
    await db.refresh(alert)
    return alert


@router.post("/{alert_id}/resolve", response_model=AlertResponse)
async def resolve(
    alert_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: Actor = Depends(require("alerts.resolve")),
):
    return await resolve_alert(db, alert_id, user.user_id)


@router.post("/scan", response_model=ScanSummary)
async def run_scan(
    db: AsyncSession = Depends(get_db),
    user=Depends(require("alerts.scan")),
):
    """Evaluate every active product now."""
    return await scan_products(db)


@router.post("/process", response_model=ProcessSummary)
async def run_process(
    db: AsyncSession = Depends(get_db),
    channel: NotificationChannel = Depends(get_channel),
    user=Depends(require("alerts.process")),
):
    """Send one notification per unresolved alert."""
    return await process_active_alerts(db, channel)
