"""
Warehouses Router — warehouses and the storage locations inside them.
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, get_db, require
from db.models import Location, Warehouse

router = APIRouter(prefix="/api/v1/warehouses", tags=["warehouses"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class WarehouseCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    location: str | None = None
    capacity: int | None = Field(None, ge=0)


class WarehouseResponse(BaseModel):
    warehouse_id: UUID
    name: str
    location: str | None
    capacity: int | None
    created_at: datetime

    model_config = {"from_attributes": True}


class LocationCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=100)
    aisle: str | None = Field(None, max_length=50)
    shelf: str | None = Field(None, max_length=50)
    bin: str | None = Field(None, max_length=50)
    description: str | None = None


class LocationResponse(BaseModel):
    location_id: UUID
    warehouse_id: UUID
    code: str
    aisle: str | None
    shelf: str | None
    bin: str | None
    description: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/", response_model=list[WarehouseResponse])
async def list_warehouses(
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    result = await db.execute(select(Warehouse).order_by(Warehouse.name))
    return result.scalars().all()


@router.post("/", response_model=WarehouseResponse, status_code=201)
async def create_warehouse(
    body: WarehouseCreate,
    db: AsyncSession = Depends(get_db),
    user=Depends(require("warehouses.create")),
):
    warehouse = Warehouse(**body.model_dump())
    db.add(warehouse)
    await db.commit()
    await db.refresh(warehouse)
    return warehouse


@router.get("/{warehouse_id}/locations", response_model=list[LocationResponse])
async def list_locations(
    warehouse_id: UUID,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    if await db.get(Warehouse, warehouse_id) is None:
        raise HTTPException(status_code=404, detail="Warehouse not found")
    result = await db.execute(select(Location).where(Location.warehouse_id == warehouse_id).order_by(Location.code))
    return result.scalars().all()


@router.post("/{warehouse_id}/locations", response_model=LocationResponse, status_code=201)
async def create_location(
    warehouse_id: UUID,
    body: LocationCreate,
    db: AsyncSession = Depends(get_db),
    user=Depends(require("locations.create")),
):
    if await db.get(Warehouse, warehouse_id) is None:
        raise HTTPException(status_code=404, detail="Warehouse not found")
    location = Location(warehouse_id=warehouse_id, **body.model_dump())
    db.add(location)
    await db.commit()
    await db.refresh(location)
    return location
