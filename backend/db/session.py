"""
Kardex Database Session Management

Explicit async SQLAlchemy store handle. The application creates one
`Database` at startup, connects it, and disposes it at shutdown; services
receive sessions from it instead of reaching for a module-level engine.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from core.errors import NotAvailableError


class Base(DeclarativeBase):
    """Declarative base for all SQLAlchemy models."""
    pass


class Database:
    """Owns the engine and session factory for one database URL."""

    def __init__(self, url: str, echo: bool = False, **engine_kwargs):
        self.url = url
        self.echo = echo
        self.engine_kwargs = engine_kwargs
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise NotAvailableError("Database is not connected")
        return self._engine

    async def connect(self) -> None:
        if self._engine is not None:
            return
        kwargs = dict(self.engine_kwargs)
        if not self.url.startswith("sqlite"):
            kwargs.setdefault("pool_size", 20)
            kwargs.setdefault("max_overflow", 10)
            kwargs.setdefault("pool_pre_ping", True)
        self._engine = create_async_engine(self.url, echo=self.echo, **kwargs)
        self._sessionmaker = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def dispose(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None

    def session(self) -> AsyncSession:
        """New session; raises NotAvailableError when the handle is closed."""
        if self._sessionmaker is None:
            raise NotAvailableError("Database is not connected")
        return self._sessionmaker()

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
