"""
Products Router — CRUD for the product catalog.

Stock is never written here: new products start at zero and every later
change goes through the transactions endpoint.
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, model_validator
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, get_db, require
from core.errors import ConflictError, InvalidOperationError, NotFoundError, ValidationError
from core.timezones import UTCDateTime
from db.models import Category, Location, Product, Supplier
from inventory.ledger import has_movements

router = APIRouter(prefix="/api/v1/products", tags=["products"])

ProductStatus = Literal["active", "discontinued", "inactive"]
REQUIRED_FIELDS = ("category_id", "name", "unit", "price", "min_stock", "max_stock", "reorder_quantity", "status")


# ─── Schemas ────────────────────────────────────────────────────────────────


class ProductCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=100)
    barcode: str | None = Field(None, max_length=100)
    qr_code: str | None = Field(None, max_length=255)
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    category_id: UUID
    supplier_id: UUID | None = None
    unit: str = Field(..., min_length=1, max_length=50)
    price: float = Field(..., ge=0)
    cost: float | None = Field(None, ge=0)
    min_stock: int = Field(10, ge=0)
    max_stock: int = Field(100, ge=0)
    reorder_quantity: int = Field(50, ge=0)
    expiration_date: UTCDateTime | None = None
    location_id: UUID | None = None

    @model_validator(mode="after")
    def _check_bounds(self):
        if self.min_stock > self.max_stock:
            raise ValueError("min_stock must not exceed max_stock")
        return self


class ProductUpdate(BaseModel):
    barcode: str | None = Field(None, max_length=100)
    qr_code: str | None = Field(None, max_length=255)
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    category_id: UUID | None = None
    supplier_id: UUID | None = None
    unit: str | None = Field(None, min_length=1, max_length=50)
    price: float | None = Field(None, ge=0)
    cost: float | None = Field(None, ge=0)
    min_stock: int | None = Field(None, ge=0)
    max_stock: int | None = Field(None, ge=0)
    reorder_quantity: int | None = Field(None, ge=0)
    expiration_date: UTCDateTime | None = None
    status: ProductStatus | None = None
    location_id: UUID | None = None


class ProductResponse(BaseModel):
    product_id: UUID
    code: str
    barcode: str | None
    qr_code: str | None
    name: str
    description: str | None
    category_id: UUID
    supplier_id: UUID | None
    unit: str
    price: float
    cost: float | None
    stock: int
    min_stock: int
    max_stock: int
    reorder_quantity: int
    expiration_date: datetime | None
    status: str
    location_id: UUID | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ─── Helpers ────────────────────────────────────────────────────────────────


async def _get_or_404(db: AsyncSession, product_id: UUID) -> Product:
    product = await db.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found", product_id=product_id)
    return product


async def _check_references(db: AsyncSession, fields: dict) -> None:
    checks = (("category_id", Category, "Category"), ("supplier_id", Supplier, "Supplier"), ("location_id", Location, "Location"))
    for key, model, label in checks:
        value = fields.get(key)
        if value is not None and await db.get(model, value) is None:
            raise NotFoundError(f"{label} not found", **{key: value})


async def _commit_unique(db: AsyncSession) -> None:
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise ConflictError("A product with this code or barcode already exists") from exc


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/", response_model=list[ProductResponse])
async def list_products(
    search: str | None = None,
    category_id: UUID | None = None,
    status: ProductStatus | None = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    """List products with optional text search, category and status filters."""
    query = select(Product)
    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(Product.name.ilike(pattern), Product.code.ilike(pattern), Product.barcode.ilike(pattern))
        )
    if category_id:
        query = query.where(Product.category_id == category_id)
    if status:
        query = query.where(Product.status == status)
    query = query.order_by(Product.name).offset(skip).limit(limit)
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/by-code/{code}", response_model=ProductResponse)
async def get_product_by_code(
    code: str,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    result = await db.execute(select(Product).where(Product.code == code))
    product = result.scalar_one_or_none()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.get("/by-barcode/{barcode}", response_model=ProductResponse)
async def get_product_by_barcode(
    barcode: str,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    result = await db.execute(select(Product).where(Product.barcode == barcode))
    product = result.scalar_one_or_none()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: UUID,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    """Get a single product by ID."""
    return await _get_or_404(db, product_id)


@router.post("/", response_model=ProductResponse, status_code=201)
async def create_product(
    body: ProductCreate,
    db: AsyncSession = Depends(get_db),
    user=Depends(require("products.create")),
):
    """Create a new product. Stock starts at 0."""
    fields = body.model_dump()
    await _check_references(db, fields)
    product = Product(**fields, stock=0, status="active")
    db.add(product)
    await _commit_unique(db)
    await db.refresh(product)
    return product


@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: UUID,
    update: ProductUpdate,
    db: AsyncSession = Depends(get_db),
    user=Depends(require("products.update")),
):
    """Update catalog fields. Stock is not editable here."""
    product = await _get_or_404(db, product_id)
    changes = update.model_dump(exclude_unset=True)
    cleared = sorted(f for f in REQUIRED_FIELDS if f in changes and changes[f] is None)
    if cleared:
        raise ValidationError("Required fields cannot be cleared", fields=", ".join(cleared))

    min_stock = changes.get("min_stock", product.min_stock)
    max_stock = changes.get("max_stock", product.max_stock)
    if min_stock > max_stock:
        raise ValidationError("min_stock must not exceed max_stock", min_stock=min_stock, max_stock=max_stock)

    await _check_references(db, changes)
    for field, value in changes.items():
        setattr(product, field, value)
    product.updated_at = datetime.utcnow()

    await _commit_unique(db)
    await db.refresh(product)
    return product


@router.delete("/{product_id}", status_code=204)
async def delete_product(
    product_id: UUID,
    db: AsyncSession = Depends(get_db),
    user=Depends(require("products.delete")),
):
    """Delete a product that has no ledger history."""
    product = await _get_or_404(db, product_id)
    if await has_movements(db, product_id):
        raise InvalidOperationError(
            "Product has stock movements; mark it discontinued instead",
            product_id=product_id,
        )
    await db.delete(product)
    await db.commit()
