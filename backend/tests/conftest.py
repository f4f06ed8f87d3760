"""
Test Configuration — Fixtures for async DB, test client, and mock data.

Each test gets its own in-memory SQLite database (StaticPool keeps the single
connection alive), so commits and rollbacks inside app code behave exactly as
they do in production.
"""

import uuid
from datetime import datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from api.deps import get_channel, get_current_user, get_db, get_predictor
from api.main import app
from core.security import ROLE_ADMIN, ROLE_USER, Actor
from db.session import Base
from fakes import FakeChannel, FakePredictor

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def test_engine():
    """Fresh in-memory database with all tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def test_db(test_engine):
    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def mock_user():
    """Authenticated admin."""
    return Actor(user_id="admin-1", email="admin@kardex.test", name="Admin", role=ROLE_ADMIN)


@pytest.fixture
def regular_user():
    return Actor(user_id="user-1", email="clerk@kardex.test", name="Clerk", role=ROLE_USER)


@pytest.fixture
def fake_predictor():
    return FakePredictor()


@pytest.fixture
def fake_channel():
    return FakeChannel()


def _override(test_db, actor, predictor, channel):
    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: actor
    app.dependency_overrides[get_predictor] = lambda: predictor
    app.dependency_overrides[get_channel] = lambda: channel


@pytest.fixture
async def client(test_db, mock_user, fake_predictor, fake_channel):
    """Async test client authenticated as an admin."""
    _override(test_db, mock_user, fake_predictor, fake_channel)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def user_client(test_db, regular_user, fake_predictor, fake_channel):
    """Async test client authenticated as a non-admin user."""
    _override(test_db, regular_user, fake_predictor, fake_channel)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def seeded_db(test_db):
    """Seed a category, a supplier, a warehouse location and two products.

    Returns plain ids so tests never touch expired ORM state.
    """
    from db.models import Category, Location, Product, Supplier, Warehouse

    category = Category(name="Dairy", description="Milk and cheese")
    supplier = Supplier(name="Test Distributor", email="orders@testdist.com", is_active=True)
    warehouse = Warehouse(name="Main Warehouse", location="Minneapolis", capacity=10000)
    test_db.add_all([category, supplier, warehouse])
    await test_db.flush()

    location = Location(warehouse_id=warehouse.warehouse_id, code="A-01-1", aisle="A", shelf="01", bin="1")
    test_db.add(location)
    await test_db.flush()

    milk = Product(
        code="MILK-001",
        barcode="7501234567890",
        name="Whole Milk",
        category_id=category.category_id,
        supplier_id=supplier.supplier_id,
        unit="liter",
        price=1.5,
        cost=0.9,
        stock=0,
        min_stock=10,
        max_stock=100,
        location_id=location.location_id,
    )
    cheese = Product(
        code="CHEESE-001",
        name="Aged Cheese",
        category_id=category.category_id,
        supplier_id=supplier.supplier_id,
        unit="kg",
        price=12.0,
        stock=50,
        min_stock=5,
        max_stock=80,
        expiration_date=datetime.utcnow() + timedelta(days=90),
    )
    test_db.add_all([milk, cheese])
    await test_db.commit()

    return {
        "category_id": category.category_id,
        "supplier_id": supplier.supplier_id,
        "warehouse_id": warehouse.warehouse_id,
        "location_id": location.location_id,
        "product_id": milk.product_id,
        "cheese_id": cheese.product_id,
    }


@pytest.fixture
def reload(test_db):
    """Fresh copy of a row, bypassing identity-map state."""

    async def _reload(model, pk: uuid.UUID):
        return await test_db.get(model, pk, populate_existing=True)

    return _reload
