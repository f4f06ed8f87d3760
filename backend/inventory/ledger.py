"""
Ledger Store — append-only kardex of stock movements.

Entries are inserted once and never updated or deleted. The product row
carries the current stock snapshot; the ledger is the history behind it.

Signed effect per movement type:
  entry, return       stock + quantity
  exit, write_off     stock - quantity
  adjustment          quantity is the counted (absolute) stock
"""

import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ValidationError
from db.models import MOVEMENT_TYPES, StockMovement

INBOUND_TYPES = frozenset({"entry", "return"})
OUTBOUND_TYPES = frozenset({"exit", "write_off"})


def signed_effect(movement_type: str, quantity: int, previous_stock: int) -> int:
    """Stock delta produced by a movement applied on top of `previous_stock`."""
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"Unknown movement type '{movement_type}'", movement_type=movement_type)
    if quantity < 0:
        raise ValidationError("quantity must not be negative", quantity=quantity)

    if movement_type in INBOUND_TYPES:
        return quantity
    if movement_type in OUTBOUND_TYPES:
        return -quantity
    return quantity - previous_stock


def append_movement(
    db: AsyncSession,
    *,
    product_id: uuid.UUID,
    movement_type: str,
    quantity: int,
    previous_stock: int,
    resulting_stock: int,
    user_id: str,
    reference_number: str | None = None,
    reason: str | None = None,
    notes: str | None = None,
    purchase_order_id: uuid.UUID | None = None,
    created_at: datetime | None = None,
) -> StockMovement:
    """Stage a new ledger entry on the session. Caller owns the transaction."""
    if resulting_stock - previous_stock != signed_effect(movement_type, quantity, previous_stock):
        raise ValidationError(
            "resulting_stock does not match the movement's signed effect",
            movement_type=movement_type,
            quantity=quantity,
            previous_stock=previous_stock,
            resulting_stock=resulting_stock,
        )

    movement = StockMovement(
        product_id=product_id,
        movement_type=movement_type,
        quantity=quantity,
        previous_stock=previous_stock,
        resulting_stock=resulting_stock,
        user_id=user_id,
        reference_number=reference_number,
        reason=reason,
        notes=notes,
        purchase_order_id=purchase_order_id,
        created_at=created_at or datetime.utcnow(),
    )
    db.add(movement)
    return movement


async def list_movements(
    db: AsyncSession,
    product_id: uuid.UUID | None = None,
    movement_type: str | None = None,
    limit: int | None = None,
) -> list[StockMovement]:
    """Ledger entries, newest first."""
    query = select(StockMovement)
    if product_id:
        query = query.where(StockMovement.product_id == product_id)
    if movement_type:
        query = query.where(StockMovement.movement_type == movement_type)
    query = query.order_by(StockMovement.created_at.desc(), StockMovement.movement_id.desc())
    if limit:
        query = query.limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def recent_exits(db: AsyncSession, product_id: uuid.UUID, limit: int = 100) -> list[StockMovement]:
    return await list_movements(db, product_id=product_id, movement_type="exit", limit=limit)


async def has_movements(db: AsyncSession, product_id: uuid.UUID) -> bool:
    result = await db.execute(select(StockMovement.movement_id).where(StockMovement.product_id == product_id).limit(1))
    return result.first() is not None
