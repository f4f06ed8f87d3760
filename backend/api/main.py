"""
Kardex API — FastAPI Application Entry Point
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from starlette.requests import Request

from alerts.channel import SendGridChannel
from core.config import get_settings
from core.errors import InventoryError
from core.logging import configure_logging
from db.session import Database
from ml.predictor import DemandPredictor

settings = get_settings()
configure_logging(settings)
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    database = Database(settings.database_url, echo=settings.database_echo)
    await database.connect()
    predictor = DemandPredictor(settings)
    app.state.database = database
    app.state.predictor = predictor
    app.state.channel = SendGridChannel(settings)
    logger.info("Kardex API starting up", version=settings.app_version, env=settings.app_env)
    try:
        yield
    finally:
        await predictor.aclose()
        await database.dispose()
        logger.info("Kardex API shutting down")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Warehouse inventory with a stock-movement ledger, alerts and demand forecasting",
    lifespan=lifespan,
)


@app.exception_handler(InventoryError)
async def inventory_error_handler(request: Request, exc: InventoryError):
    if exc.status_code >= 500:
        logger.error("api.unavailable", path=request.url.path, error=exc.message)
    else:
        logger.info("api.rejected", path=request.url.path, code=exc.code, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(OperationalError)
async def database_error_handler(request: Request, exc: OperationalError):
    logger.error("api.database_unavailable", path=request.url.path, error=str(exc.orig))
    return JSONResponse(
        status_code=503,
        content={"error": "not_available", "detail": "Database is not available"},
    )


# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Import and register routers
from api.v1.routers import (  # noqa: E402
    alerts,
    categories,
    dashboard,
    forecasts,
    notifications,
    products,
    purchase_orders,
    suppliers,
    transactions,
    warehouses,
)

app.include_router(dashboard.router)
app.include_router(products.router)
app.include_router(categories.router)
app.include_router(suppliers.router)
app.include_router(transactions.router)
app.include_router(purchase_orders.router)
app.include_router(alerts.router)
app.include_router(notifications.router)
app.include_router(warehouses.router)
app.include_router(forecasts.router)


@app.get("/health")
async def health_check(request: Request):
    """Health check endpoint for load balancers."""
    database = getattr(request.app.state, "database", None)
    return {
        "status": "healthy",
        "version": settings.app_version,
        "database": "connected" if database is not None and database.is_connected else "unavailable",
    }
