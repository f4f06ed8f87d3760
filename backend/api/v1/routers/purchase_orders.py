"""
Purchase Order Router — PO workflow management endpoints.

  1. Create a draft and add line items
  2. draft → pending → confirmed via PATCH (status transitions are validated)
  3. POST /{po_id}/receive books every line into stock in one transaction
  Any non-terminal order can be cancelled.
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, get_db, require
from core.security import Actor
from core.timezones import UTCDateTime
from db.models import PurchaseOrder
from supply_chain.receiving import (
    add_item,
    create_purchase_order,
    list_items,
    receive_purchase_order,
    update_purchase_order,
)

router = APIRouter(prefix="/api/v1/purchase-orders", tags=["purchase-orders"])

POStatus = Literal["draft", "pending", "confirmed", "received", "cancelled"]


# ─── Schemas ────────────────────────────────────────────────────────────────


class POCreate(BaseModel):
    supplier_id: UUID
    total_amount: float = Field(0.0, ge=0)
    expected_delivery_date: UTCDateTime | None = None
    notes: str | None = None


class POUpdate(BaseModel):
    """Header edits. A status change must follow the PO workflow."""

    supplier_id: UUID | None = None
    status: POStatus | None = None
    total_amount: float | None = Field(None, ge=0)
    expected_delivery_date: UTCDateTime | None = None
    notes: str | None = None


class POResponse(BaseModel):
    po_id: UUID
    order_number: str
    supplier_id: UUID
    status: str
    total_amount: float
    expected_delivery_date: datetime | None
    received_date: datetime | None
    notes: str | None
    created_by: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class POItemCreate(BaseModel):
    product_id: UUID
    quantity: int = Field(..., gt=0)
    unit_price: float = Field(..., ge=0)


class POItemResponse(BaseModel):
    item_id: UUID
    po_id: UUID
    product_id: UUID
    quantity: int
    unit_price: float
    total_price: float
    received_quantity: int

    model_config = {"from_attributes": True}


class ReceivedLine(BaseModel):
    item_id: UUID
    received_quantity: int = Field(..., ge=0)


class POReceivingRequest(BaseModel):
    """Receive a confirmed PO. Lines not listed are received in full."""

    items: list[ReceivedLine] = Field(default_factory=list)
    notes: str | None = None


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/", response_model=list[POResponse])
async def list_purchase_orders(
    status: POStatus | None = None,
    supplier_id: UUID | None = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    """List purchase orders with filters."""
    query = select(PurchaseOrder)
    if status:
        query = query.where(PurchaseOrder.status == status)
    if supplier_id:
        query = query.where(PurchaseOrder.supplier_id == supplier_id)
    query = query.order_by(PurchaseOrder.created_at.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/{po_id}", response_model=POResponse)
async def get_purchase_order(
    po_id: UUID,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    """Get a single purchase order by ID."""
    po = await db.get(PurchaseOrder, po_id)
    if not po:
        raise HTTPException(status_code=404, detail="Purchase order not found")
    return po


@router.post("/", response_model=POResponse, status_code=201)
async def create_order(
    body: POCreate,
    db: AsyncSession = Depends(get_db),
    user: Actor = Depends(require("purchase_orders.create")),
):
    return await create_purchase_order(db, **body.model_dump(), created_by=user.user_id)


@router.patch("/{po_id}", response_model=POResponse)
async def update_order(
    po_id: UUID,
    update: POUpdate,
    db: AsyncSession = Depends(get_db),
    user=Depends(require("purchase_orders.update")),
):
    changes = update.model_dump(exclude_unset=True)
    for field in ("supplier_id", "total_amount", "status"):
        if field in changes and changes[field] is None:
            raise HTTPException(status_code=422, detail=f"{field} cannot be cleared")
    return await update_purchase_order(db, po_id, changes)


@router.get("/{po_id}/items", response_model=list[POItemResponse])
async def get_order_items(
    po_id: UUID,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    if await db.get(PurchaseOrder, po_id) is None:
        raise HTTPException(status_code=404, detail="Purchase order not found")
    return await list_items(db, po_id)


@router.post("/{po_id}/items", response_model=POItemResponse, status_code=201)
async def add_order_item(
    po_id: UUID,
    body: POItemCreate,
    db: AsyncSession = Depends(get_db),
    user=Depends(require("purchase_orders.add_item")),
):
    return await add_item(db, po_id, **body.model_dump())


@router.post("/{po_id}/receive")
async def receive_order(
    po_id: UUID,
    body: POReceivingRequest,
    db: AsyncSession = Depends(get_db),
    user: Actor = Depends(require("purchase_orders.receive")),
):
    """Book every line of a confirmed PO into stock and mark it received."""
    quantities = {line.item_id: line.received_quantity for line in body.items}
    return await receive_purchase_order(db, po_id, user.user_id, received_quantities=quantities, notes=body.notes)
