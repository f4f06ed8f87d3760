"""
Purchase Order Workflow — status transitions and receiving.

Transitions:
  draft     → pending | cancelled
  pending   → confirmed | cancelled
  confirmed → received | cancelled   (received only through receive_purchase_order)
  received, cancelled are terminal

Receiving a confirmed order:
1. Record one `entry` movement per line item through the stock mutation service
2. Store received quantities and flag shortages/overages
3. Mark the order received
All in a single transaction.
"""

import uuid
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import InvalidOperationError, NotFoundError, ValidationError
from db.models import Product, PurchaseOrder, PurchaseOrderItem, Supplier
from inventory.mutations import StockMutation, apply_stock_mutation

logger = structlog.get_logger()

PO_TRANSITIONS: dict[str, frozenset[str]] = {
    "draft": frozenset({"pending", "cancelled"}),
    "pending": frozenset({"confirmed", "cancelled"}),
    "confirmed": frozenset({"received", "cancelled"}),
    "received": frozenset(),
    "cancelled": frozenset(),
}
EDITABLE_STATUSES = frozenset({"draft", "pending"})


def can_transition(current: str, target: str) -> bool:
    return target in PO_TRANSITIONS.get(current, frozenset())


def next_order_number(now: datetime | None = None) -> str:
    now = now or datetime.utcnow()
    return f"PO-{int(now.timestamp() * 1000)}-{uuid.uuid4().hex[:4].upper()}"


async def get_purchase_order(db: AsyncSession, po_id: uuid.UUID) -> PurchaseOrder:
    po = await db.get(PurchaseOrder, po_id)
    if po is None:
        raise NotFoundError("Purchase order not found", po_id=po_id)
    return po


async def create_purchase_order(
    db: AsyncSession,
    *,
    supplier_id: uuid.UUID,
    total_amount: float,
    created_by: str,
    expected_delivery_date: datetime | None = None,
    notes: str | None = None,
) -> PurchaseOrder:
    if await db.get(Supplier, supplier_id) is None:
        raise NotFoundError("Supplier not found", supplier_id=supplier_id)

    po = PurchaseOrder(
        order_number=next_order_number(),
        supplier_id=supplier_id,
        status="draft",
        total_amount=total_amount,
        expected_delivery_date=expected_delivery_date,
        notes=notes,
        created_by=created_by,
    )
    db.add(po)
    await db.commit()
    await db.refresh(po)
    logger.info("purchase_order.created", po_id=str(po.po_id), order_number=po.order_number)
    return po


async def update_purchase_order(db: AsyncSession, po_id: uuid.UUID, changes: dict[str, Any]) -> PurchaseOrder:
    """Apply header changes; a status change must follow PO_TRANSITIONS."""
    po = await get_purchase_order(db, po_id)

    target = changes.pop("status", None)
    if target is not None and target != po.status:
        if target == "received":
            raise InvalidOperationError("Use the receive operation to mark an order received", po_id=po_id)
        if not can_transition(po.status, target):
            raise InvalidOperationError(
                f"Cannot move purchase order from '{po.status}' to '{target}'",
                po_id=po_id,
            )
        po.status = target

    if changes and po.status in ("received", "cancelled"):
        raise InvalidOperationError(f"Purchase order is '{po.status}' and can no longer be edited", po_id=po_id)
    if "supplier_id" in changes and await db.get(Supplier, changes["supplier_id"]) is None:
        raise NotFoundError("Supplier not found", supplier_id=changes["supplier_id"])

    for field, value in changes.items():
        setattr(po, field, value)
    po.updated_at = datetime.utcnow()

    await db.commit()
    await db.refresh(po)
    return po


async def add_item(
    db: AsyncSession,
    po_id: uuid.UUID,
    *,
    product_id: uuid.UUID,
    quantity: int,
    unit_price: float,
) -> PurchaseOrderItem:
    po = await get_purchase_order(db, po_id)
    if po.status not in EDITABLE_STATUSES:
        raise InvalidOperationError(f"Cannot add items to a '{po.status}' purchase order", po_id=po_id)
    if await db.get(Product, product_id) is None:
        raise NotFoundError("Product not found", product_id=product_id)

    item = PurchaseOrderItem(
        po_id=po_id,
        product_id=product_id,
        quantity=quantity,
        unit_price=unit_price,
        total_price=round(quantity * unit_price, 2),
        received_quantity=0,
    )
    db.add(item)
    await db.commit()
    await db.refresh(item)
    return item


async def list_items(db: AsyncSession, po_id: uuid.UUID) -> list[PurchaseOrderItem]:
    result = await db.execute(
        select(PurchaseOrderItem).where(PurchaseOrderItem.po_id == po_id).order_by(PurchaseOrderItem.created_at)
    )
    return list(result.scalars().all())


async def receive_purchase_order(
    db: AsyncSession,
    po_id: uuid.UUID,
    actor_id: str,
    received_quantities: dict[uuid.UUID, int] | None = None,
    notes: str | None = None,
) -> dict:
    """
    Receive a confirmed order into stock.

    `received_quantities` maps item_id → units received; items not listed are
    received in full. Returns a summary with per-item discrepancies.
    """
    po = await get_purchase_order(db, po_id)
    if po.status != "confirmed":
        raise InvalidOperationError(f"Cannot receive purchase order in status '{po.status}'", po_id=po_id)

    items = await list_items(db, po_id)
    if not items:
        raise InvalidOperationError("Purchase order has no items to receive", po_id=po_id)

    received_quantities = received_quantities or {}
    unknown = set(received_quantities) - {item.item_id for item in items}
    if unknown:
        raise ValidationError("Received quantities reference unknown items", item_ids=sorted(str(i) for i in unknown))

    now = datetime.utcnow()
    lines = []
    try:
        for item in items:
            qty = received_quantities.get(item.item_id, item.quantity)
            if qty < 0:
                raise ValidationError("Received quantity must not be negative", item_id=item.item_id)
            if qty > 0:
                await apply_stock_mutation(
                    db,
                    StockMutation(
                        product_id=item.product_id,
                        movement_type="entry",
                        quantity=qty,
                        reference_number=po.order_number,
                        reason="Purchase order received",
                        notes=notes,
                        purchase_order_id=po.po_id,
                    ),
                    actor_id,
                    now=now,
                    commit=False,
                )
            item.received_quantity = qty
            diff = qty - item.quantity
            lines.append(
                {
                    "item_id": str(item.item_id),
                    "product_id": str(item.product_id),
                    "ordered_qty": item.quantity,
                    "received_qty": qty,
                    "discrepancy_type": None if diff == 0 else ("shortage" if diff < 0 else "overage"),
                    "discrepancy_qty": abs(diff),
                }
            )

        po.status = "received"
        po.received_date = now
        if notes:
            po.notes = f"{po.notes}\n{notes}" if po.notes else notes
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    result = {
        "po_id": str(po_id),
        "order_number": po.order_number,
        "status": "received",
        "items": lines,
        "has_discrepancy": any(line["discrepancy_type"] for line in lines),
    }
    logger.info(
        "receiving.processed",
        po_id=str(po_id),
        items=len(lines),
        has_discrepancy=result["has_discrepancy"],
    )
    return result
