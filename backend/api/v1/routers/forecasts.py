"""
Forecasts Router — Demand forecast endpoints.

GET /product/{id} serves the cached forecast while it is valid and only calls
the external predictor when none is valid.
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from alerts.channel import NotificationChannel
from alerts.notifications import send_purchase_order_suggestion
from api.deps import get_channel, get_current_user, get_db, get_predictor, require
from core.errors import NotFoundError
from core.timezones import UTCDateTime
from db.models import Product
from ml.forecasting import Predictor, create_manual_forecast, get_latest_forecast, get_or_generate_forecast

router = APIRouter(prefix="/api/v1/forecasts", tags=["forecasts"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class ForecastResponse(BaseModel):
    forecast_id: UUID
    product_id: UUID
    forecasted_demand: int
    suggested_order_quantity: int
    confidence: float | None
    analysis_data: dict | None
    generated_at: datetime
    valid_until: datetime | None

    model_config = {"from_attributes": True}


class ForecastCreate(BaseModel):
    product_id: UUID
    forecasted_demand: int = Field(..., ge=0)
    suggested_order_quantity: int = Field(..., ge=0)
    confidence: float | None = Field(None, ge=0, le=100)
    analysis_data: dict | None = None
    valid_until: UTCDateTime | None = None


class SuggestionResponse(BaseModel):
    success: bool
    log_id: UUID
    error: str | None
    forecast: ForecastResponse


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/product/{product_id}/latest", response_model=ForecastResponse | None)
async def latest_forecast(
    product_id: UUID,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    """Most recent stored forecast, valid or not. Null when none exists."""
    if await db.get(Product, product_id) is None:
        raise NotFoundError("Product not found", product_id=product_id)
    return await get_latest_forecast(db, product_id)


@router.get("/product/{product_id}", response_model=ForecastResponse)
async def product_forecast(
    product_id: UUID,
    db: AsyncSession = Depends(get_db),
    predictor: Predictor = Depends(get_predictor),
    user=Depends(get_current_user),
):
    """Valid cached forecast, or a freshly generated one."""
    return await get_or_generate_forecast(db, product_id, predictor)


@router.post("/", response_model=ForecastResponse, status_code=201)
async def create_forecast(
    body: ForecastCreate,
    db: AsyncSession = Depends(get_db),
    user=Depends(require("forecasts.create")),
):
    return await create_manual_forecast(db, **body.model_dump())


@router.post("/product/{product_id}/suggest-order", response_model=SuggestionResponse)
async def suggest_order(
    product_id: UUID,
    db: AsyncSession = Depends(get_db),
    predictor: Predictor = Depends(get_predictor),
    channel: NotificationChannel = Depends(get_channel),
    user=Depends(require("forecasts.suggest_order")),
):
    """Notify the owner with a purchase suggestion built from the forecast."""
    forecast = await get_or_generate_forecast(db, product_id, predictor)
    product = await db.get(Product, product_id)
    result = await send_purchase_order_suggestion(db, channel, product, forecast)
    return SuggestionResponse(
        success=result.success,
        log_id=result.log_id,
        error=result.error,
        forecast=ForecastResponse.model_validate(forecast),
    )
