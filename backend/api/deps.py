"""
Kardex API Dependencies

Dependency injection for DB sessions, the authenticated actor, operation
permissions, and the external predictor/notification clients.
"""

from collections.abc import AsyncGenerator, Callable

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from alerts.channel import NotificationChannel
from core.config import get_settings
from core.errors import NotAvailableError
from core.permissions import is_allowed
from core.security import ROLE_ADMIN, Actor, decode_access_token
from db.session import Database
from ml.forecasting import Predictor

settings = get_settings()
security = HTTPBearer(auto_error=not settings.debug)

DEV_ACTOR = Actor(user_id="dev-user", email="dev@kardex.local", name="Developer", role=ROLE_ADMIN)


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield a session from the app's Database handle."""
    database: Database | None = getattr(request.app.state, "database", None)
    if database is None or not database.is_connected:
        raise NotAvailableError("Database is not available")
    async with database.session() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Actor:
    """Decode JWT and return the actor. Bypassed in debug mode."""
    if settings.debug:
        return DEV_ACTOR

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    return Actor.from_claims(payload)


def require(operation: str) -> Callable:
    """Dependency factory: the current actor, if allowed to run `operation`."""

    async def _check(user: Actor = Depends(get_current_user)) -> Actor:
        if not is_allowed(user, operation):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Not allowed to perform {operation}",
            )
        return user

    return _check


def get_predictor(request: Request) -> Predictor:
    predictor = getattr(request.app.state, "predictor", None)
    if predictor is None:
        raise NotAvailableError("Demand predictor is not configured")
    return predictor


def get_channel(request: Request) -> NotificationChannel:
    channel = getattr(request.app.state, "channel", None)
    if channel is None:
        raise NotAvailableError("Notification channel is not configured")
    return channel
