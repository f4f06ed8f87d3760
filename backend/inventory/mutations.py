"""
Stock Mutation Service — the only writer of Product.stock.

Each call reads the current stock, derives the resulting stock from the
movement type, then writes the ledger entry and the new snapshot in one
transaction. The snapshot update is a compare-and-set on the stock value that
was read, so two concurrent mutations cannot both apply against the same
previous stock: the loser matches zero rows and gets a ConflictError.

Alert evaluation for the product runs inside the same transaction, so the
active alerts are current as soon as the mutation commits.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

import structlog
from pydantic import BaseModel, Field, model_validator
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from alerts.engine import evaluate_and_upsert
from core.errors import ConflictError, InvalidOperationError, NotFoundError
from db.models import Alert, Product, PurchaseOrder, StockMovement
from inventory.ledger import append_movement, signed_effect

logger = structlog.get_logger()

MovementType = Literal["entry", "exit", "adjustment", "return", "write_off"]


class StockMutation(BaseModel):
    """A requested stock change.

    `previous_stock` and `resulting_stock` are optional expectations from the
    caller; when given they must match what the service computes.
    For `adjustment`, `quantity` is the counted stock, not a delta.
    """

    product_id: uuid.UUID
    movement_type: MovementType
    quantity: int = Field(..., ge=0)
    previous_stock: int | None = Field(None, ge=0)
    resulting_stock: int | None = Field(None, ge=0)
    reference_number: str | None = Field(None, max_length=100)
    reason: str | None = None
    notes: str | None = None
    purchase_order_id: uuid.UUID | None = None

    @model_validator(mode="after")
    def _quantity_positive_for_deltas(self):
        if self.movement_type != "adjustment" and self.quantity == 0:
            raise ValueError("quantity must be greater than 0")
        return self


@dataclass
class MutationResult:
    movement: StockMovement
    product: Product
    alerts: list[Alert] = field(default_factory=list)


async def _load_product_for_update(db: AsyncSession, product_id: uuid.UUID) -> Product:
    result = await db.execute(
        select(Product)
        .where(Product.product_id == product_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    product = result.scalar_one_or_none()
    if product is None:
        raise NotFoundError("Product not found", product_id=product_id)
    return product


async def apply_stock_mutation(
    db: AsyncSession,
    mutation: StockMutation,
    actor_id: str,
    *,
    now: datetime | None = None,
    commit: bool = True,
) -> MutationResult:
    """
    Validate and apply one stock change.

    With commit=False the caller owns the transaction (used when several
    mutations must land together, e.g. receiving a purchase order).
    """
    now = now or datetime.utcnow()
    try:
        product = await _load_product_for_update(db, mutation.product_id)
        previous_stock = product.stock

        if mutation.previous_stock is not None and mutation.previous_stock != previous_stock:
            raise ConflictError(
                "previous_stock does not match the stored stock",
                product_id=product.product_id,
                expected=mutation.previous_stock,
                actual=previous_stock,
            )

        resulting_stock = previous_stock + signed_effect(mutation.movement_type, mutation.quantity, previous_stock)

        if mutation.resulting_stock is not None and mutation.resulting_stock != resulting_stock:
            raise ConflictError(
                "resulting_stock does not match the computed stock",
                product_id=product.product_id,
                expected=mutation.resulting_stock,
                actual=resulting_stock,
            )
        if resulting_stock < 0:
            raise InvalidOperationError(
                f"Insufficient stock: {previous_stock} on hand, {mutation.movement_type} of {mutation.quantity}",
                product_id=product.product_id,
                previous_stock=previous_stock,
                quantity=mutation.quantity,
            )

        if mutation.purchase_order_id is not None:
            if await db.get(PurchaseOrder, mutation.purchase_order_id) is None:
                raise NotFoundError("Purchase order not found", purchase_order_id=mutation.purchase_order_id)

        guarded = await db.execute(
            update(Product)
            .where(Product.product_id == product.product_id, Product.stock == previous_stock)
            .values(stock=resulting_stock, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if guarded.rowcount != 1:
            logger.warning(
                "stock.mutation_conflict",
                product_id=str(product.product_id),
                previous_stock=previous_stock,
            )
            raise ConflictError("Stock changed concurrently; retry the movement", product_id=product.product_id)

        movement = append_movement(
            db,
            product_id=product.product_id,
            movement_type=mutation.movement_type,
            quantity=mutation.quantity,
            previous_stock=previous_stock,
            resulting_stock=resulting_stock,
            user_id=actor_id,
            reference_number=mutation.reference_number,
            reason=mutation.reason,
            notes=mutation.notes,
            purchase_order_id=mutation.purchase_order_id,
            created_at=now,
        )
        await db.flush()
        await db.refresh(product)

        alerts: list[Alert] = []
        if product.status == "active":
            alerts = await evaluate_and_upsert(db, product, now=now)

        if commit:
            await db.commit()
    except Exception:
        if commit:
            await db.rollback()
        raise

    logger.info(
        "stock.mutation_applied",
        product_id=str(product.product_id),
        movement_type=mutation.movement_type,
        quantity=mutation.quantity,
        previous_stock=previous_stock,
        resulting_stock=resulting_stock,
        user_id=actor_id,
        alerts_created=len(alerts),
    )
    return MutationResult(movement=movement, product=product, alerts=alerts)
