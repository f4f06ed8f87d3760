"""
Transactions Router — the kardex.

POST is the only way stock changes: it records one ledger entry and updates
the product's stock in a single transaction.
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, get_db
from core.security import Actor
from inventory.ledger import list_movements
from inventory.mutations import MovementType, StockMutation, apply_stock_mutation

router = APIRouter(prefix="/api/v1/transactions", tags=["transactions"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class MovementResponse(BaseModel):
    movement_id: int
    product_id: UUID
    movement_type: str
    quantity: int
    previous_stock: int
    resulting_stock: int
    reference_number: str | None
    reason: str | None
    notes: str | None
    user_id: str
    purchase_order_id: UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}


class MutationResponse(BaseModel):
    movement: MovementResponse
    stock: int
    alerts_created: list[str]


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/", response_model=list[MovementResponse])
async def list_transactions(
    product_id: UUID | None = None,
    movement_type: MovementType | None = Query(None, alias="type"),
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    """Ledger entries, newest first."""
    return await list_movements(db, product_id=product_id, movement_type=movement_type, limit=limit)


@router.post("/", response_model=MutationResponse, status_code=201)
async def create_transaction(
    body: StockMutation,
    db: AsyncSession = Depends(get_db),
    user: Actor = Depends(get_current_user),
):
    """Apply a stock movement for the current actor."""
    result = await apply_stock_mutation(db, body, actor_id=user.user_id)
    return MutationResponse(
        movement=MovementResponse.model_validate(result.movement),
        stock=result.product.stock,
        alerts_created=[a.alert_type for a in result.alerts],
    )
