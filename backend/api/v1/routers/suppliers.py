"""
Suppliers Router — supplier master data.

Suppliers are never deleted; `is_active=False` hides them from the list.
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, get_db, require
from db.models import Supplier

router = APIRouter(prefix="/api/v1/suppliers", tags=["suppliers"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class SupplierCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    contact_person: str | None = Field(None, max_length=255)
    email: str | None = Field(None, max_length=320)
    phone: str | None = Field(None, max_length=20)
    address: str | None = None
    city: str | None = Field(None, max_length=100)
    country: str | None = Field(None, max_length=100)
    payment_terms: str | None = Field(None, max_length=255)
    notes: str | None = None


class SupplierUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    contact_person: str | None = Field(None, max_length=255)
    email: str | None = Field(None, max_length=320)
    phone: str | None = Field(None, max_length=20)
    address: str | None = None
    city: str | None = Field(None, max_length=100)
    country: str | None = Field(None, max_length=100)
    payment_terms: str | None = Field(None, max_length=255)
    notes: str | None = None
    is_active: bool | None = None


class SupplierResponse(BaseModel):
    supplier_id: UUID
    name: str
    contact_person: str | None
    email: str | None
    phone: str | None
    address: str | None
    city: str | None
    country: str | None
    payment_terms: str | None
    notes: str | None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/", response_model=list[SupplierResponse])
async def list_suppliers(
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    """List active suppliers."""
    result = await db.execute(select(Supplier).where(Supplier.is_active.is_(True)).order_by(Supplier.name))
    return result.scalars().all()


@router.get("/{supplier_id}", response_model=SupplierResponse)
async def get_supplier(
    supplier_id: UUID,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    supplier = await db.get(Supplier, supplier_id)
    if not supplier:
        raise HTTPException(status_code=404, detail="Supplier not found")
    return supplier


@router.post("/", response_model=SupplierResponse, status_code=201)
async def create_supplier(
    body: SupplierCreate,
    db: AsyncSession = Depends(get_db),
    user=Depends(require("suppliers.create")),
):
    supplier = Supplier(**body.model_dump(), is_active=True)
    db.add(supplier)
    await db.commit()
    await db.refresh(supplier)
    return supplier


@router.patch("/{supplier_id}", response_model=SupplierResponse)
async def update_supplier(
    supplier_id: UUID,
    update: SupplierUpdate,
    db: AsyncSession = Depends(get_db),
    user=Depends(require("suppliers.update")),
):
    supplier = await db.get(Supplier, supplier_id)
    if not supplier:
        raise HTTPException(status_code=404, detail="Supplier not found")

    changes = update.model_dump(exclude_unset=True)
    if changes.get("name", supplier.name) is None or changes.get("is_active", supplier.is_active) is None:
        raise HTTPException(status_code=422, detail="name and is_active cannot be cleared")
    for field, value in changes.items():
        setattr(supplier, field, value)
    supplier.updated_at = datetime.utcnow()

    await db.commit()
    await db.refresh(supplier)
    return supplier
