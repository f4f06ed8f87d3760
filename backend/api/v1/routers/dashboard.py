"""
Dashboard Router — inventory overview numbers.

Low/out-of-stock and expiration counts use the same rules as the alert
engine, so the dashboard and the alert list never disagree.
"""

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from alerts.engine import classify_expiration, classify_stock, list_active_alerts
from api.deps import get_current_user, get_db
from api.v1.routers.alerts import AlertResponse
from core.config import get_settings
from db.models import Category, Product

router = APIRouter(prefix="/api/v1/dashboard", tags=["dashboard"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class DashboardStats(BaseModel):
    total_products: int
    total_value: float
    low_stock_count: int
    out_of_stock_count: int
    expiring_count: int
    expired_count: int


class CategoryStock(BaseModel):
    category_id: str | None
    category_name: str
    total_stock: int
    product_count: int


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/stats", response_model=DashboardStats)
async def get_stats(
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    result = await db.execute(
        select(Product.stock, Product.min_stock, Product.price, Product.expiration_date)
    )
    rows = result.all()

    now = datetime.utcnow()
    warning_days = get_settings().expiration_warning_days
    counts = {"low_stock": 0, "out_of_stock": 0, "expiring_soon": 0, "expired": 0}
    total_value = 0.0
    for row in rows:
        total_value += (row.price or 0.0) * row.stock
        stock_type = classify_stock(row.stock, row.min_stock)
        if stock_type:
            counts[stock_type] += 1
        expiration_type = classify_expiration(row.expiration_date, now, warning_days)
        if expiration_type:
            counts[expiration_type] += 1

    return DashboardStats(
        total_products=len(rows),
        total_value=round(total_value, 2),
        low_stock_count=counts["low_stock"],
        out_of_stock_count=counts["out_of_stock"],
        expiring_count=counts["expiring_soon"],
        expired_count=counts["expired"],
    )


@router.get("/stock-by-category", response_model=list[CategoryStock])
async def stock_by_category(
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    result = await db.execute(
        select(
            Category.category_id,
            Category.name,
            func.coalesce(func.sum(Product.stock), 0).label("total_stock"),
            func.count(Product.product_id).label("product_count"),
        )
        .select_from(Category)
        .outerjoin(Product, Product.category_id == Category.category_id)
        .group_by(Category.category_id, Category.name)
        .order_by(Category.name)
    )
    return [
        CategoryStock(
            category_id=str(row.category_id),
            category_name=row.name,
            total_stock=int(row.total_stock),
            product_count=int(row.product_count),
        )
        for row in result.all()
    ]


@router.get("/active-alerts", response_model=list[AlertResponse])
async def active_alerts(
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    return await list_active_alerts(db)
