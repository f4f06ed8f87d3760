"""
Forecast Cache/Refresh — per-product demand forecasts.

States per product:
  no forecast ──generate──▶ valid (valid_until = now + 30d)
  valid ──time passes──▶ expired ──generate──▶ valid

Rows are append-only; reads take the most recent by generated_at. A cache hit
never touches the predictor. A predictor failure aborts before anything is
written.
"""

import uuid
from datetime import datetime, timedelta
from typing import Protocol

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.errors import NotFoundError
from db.models import DemandForecast, Product
from inventory.ledger import recent_exits
from ml.consumption import ConsumptionPattern, analyze_consumption
from ml.predictor import Prediction

logger = structlog.get_logger()


class Predictor(Protocol):
    async def predict(self, pattern: ConsumptionPattern, min_stock: int, max_stock: int) -> Prediction: ...


def is_valid(forecast: DemandForecast | None, now: datetime) -> bool:
    return forecast is not None and forecast.valid_until is not None and forecast.valid_until > now


async def get_latest_forecast(db: AsyncSession, product_id: uuid.UUID) -> DemandForecast | None:
    result = await db.execute(
        select(DemandForecast)
        .where(DemandForecast.product_id == product_id)
        .order_by(DemandForecast.generated_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def _get_product(db: AsyncSession, product_id: uuid.UUID) -> Product:
    product = await db.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found", product_id=product_id)
    return product


async def generate_forecast(
    db: AsyncSession,
    product: Product,
    predictor: Predictor,
    now: datetime | None = None,
) -> DemandForecast:
    """Analyze the kardex, ask the predictor, store a new forecast row."""
    settings = get_settings()
    now = now or datetime.utcnow()

    exits = await recent_exits(db, product.product_id, limit=settings.forecast_history_limit)
    pattern = analyze_consumption(product.product_id, product.name, exits)
    prediction = await predictor.predict(pattern, product.min_stock, product.max_stock)

    forecast = DemandForecast(
        product_id=product.product_id,
        forecasted_demand=prediction.forecasted_demand,
        suggested_order_quantity=prediction.suggested_order_quantity,
        confidence=float(prediction.confidence),
        analysis_data={"pattern": pattern.to_dict(), "analysis": prediction.analysis},
        generated_at=now,
        valid_until=now + timedelta(days=settings.forecast_validity_days),
    )
    db.add(forecast)
    await db.commit()
    await db.refresh(forecast)

    logger.info(
        "forecast.generated",
        product_id=str(product.product_id),
        forecast_id=str(forecast.forecast_id),
        trend=pattern.trend,
        months=len(pattern.recent_consumption),
    )
    return forecast


async def get_or_generate_forecast(
    db: AsyncSession,
    product_id: uuid.UUID,
    predictor: Predictor,
    now: datetime | None = None,
) -> DemandForecast:
    now = now or datetime.utcnow()
    product = await _get_product(db, product_id)

    existing = await get_latest_forecast(db, product_id)
    if is_valid(existing, now):
        logger.debug("forecast.cache_hit", product_id=str(product_id), forecast_id=str(existing.forecast_id))
        return existing

    return await generate_forecast(db, product, predictor, now=now)


async def create_manual_forecast(
    db: AsyncSession,
    product_id: uuid.UUID,
    forecasted_demand: int,
    suggested_order_quantity: int,
    confidence: float | None = None,
    analysis_data: dict | None = None,
    valid_until: datetime | None = None,
) -> DemandForecast:
    """Store an operator-entered forecast (same append-only table)."""
    await _get_product(db, product_id)
    now = datetime.utcnow()
    forecast = DemandForecast(
        product_id=product_id,
        forecasted_demand=forecasted_demand,
        suggested_order_quantity=suggested_order_quantity,
        confidence=confidence,
        analysis_data=analysis_data or {},
        generated_at=now,
        valid_until=valid_until or now + timedelta(days=get_settings().forecast_validity_days),
    )
    db.add(forecast)
    await db.commit()
    await db.refresh(forecast)
    return forecast
