"""
Tests for the Alert Engine — condition detection and alert lifecycle.

Covers:
  - Stock classification (out of stock vs low stock)
  - Expiration classification with rounded-up days
  - Idempotent creation, explicit resolution, batch scan
"""

from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy import func, select

from alerts.engine import (
    classify_expiration,
    classify_stock,
    create_alert,
    days_until,
    evaluate_and_upsert,
    evaluate_product,
    list_active_alerts,
    resolve_alert,
    scan_products,
)
from core.errors import InvalidOperationError, NotFoundError
from db.models import Alert, Product

NOW = datetime(2026, 6, 1, 12, 0, 0)


def _snapshot(stock=50, min_stock=10, expiration_date=None):
    return SimpleNamespace(name="Yogurt", stock=stock, min_stock=min_stock, expiration_date=expiration_date)


# ── Detection rules ────────────────────────────────────────────────────


class TestStockClassification:
    def test_zero_is_out_of_stock(self):
        assert classify_stock(0, 10) == "out_of_stock"

    def test_at_minimum_is_low(self):
        assert classify_stock(10, 10) == "low_stock"

    def test_below_minimum_is_low(self):
        assert classify_stock(1, 10) == "low_stock"

    def test_above_minimum_is_fine(self):
        assert classify_stock(11, 10) is None

    def test_zero_minimum_only_alerts_when_empty(self):
        assert classify_stock(1, 0) is None
        assert classify_stock(0, 0) == "out_of_stock"


class TestDaysUntil:
    def test_partial_day_rounds_up(self):
        assert days_until(NOW + timedelta(hours=1), NOW) == 1

    def test_exact_days(self):
        assert days_until(NOW + timedelta(days=30), NOW) == 30

    def test_past_is_negative(self):
        assert days_until(NOW - timedelta(days=2), NOW) == -2

    def test_less_than_a_day_ago_is_zero(self):
        assert days_until(NOW - timedelta(hours=3), NOW) == 0


class TestExpirationClassification:
    def test_no_expiration(self):
        assert classify_expiration(None, NOW, 30) is None

    def test_within_window(self):
        assert classify_expiration(NOW + timedelta(days=30), NOW, 30) == "expiring_soon"

    def test_outside_window(self):
        assert classify_expiration(NOW + timedelta(days=31), NOW, 30) is None

    def test_expired(self):
        assert classify_expiration(NOW - timedelta(days=1, hours=1), NOW, 30) == "expired"


class TestEvaluateProduct:
    def test_healthy_product(self):
        assert evaluate_product(_snapshot(), now=NOW, warning_days=30) == []

    def test_out_of_stock_only(self):
        conditions = evaluate_product(_snapshot(stock=0), now=NOW, warning_days=30)
        assert [c.alert_type for c in conditions] == ["out_of_stock"]

    def test_stock_and_expiration_together(self):
        conditions = evaluate_product(
            _snapshot(stock=3, expiration_date=NOW + timedelta(days=5)), now=NOW, warning_days=30
        )
        assert [c.alert_type for c in conditions] == ["low_stock", "expiring_soon"]
        assert "5 days" in conditions[1].message


# ── Persistence ────────────────────────────────────────────────────────


@pytest.mark.asyncio
class TestAlertLifecycle:
    async def test_out_of_stock_evaluated_twice_creates_one_alert(self, test_db, seeded_db, reload):
        product = await reload(Product, seeded_db["product_id"])
        assert product.stock == 0

        first = await evaluate_and_upsert(test_db, product, now=NOW)
        await test_db.commit()
        second = await evaluate_and_upsert(test_db, product, now=NOW)
        await test_db.commit()

        assert [a.alert_type for a in first] == ["out_of_stock"]
        assert second == []
        active = await list_active_alerts(test_db, product_id=seeded_db["product_id"])
        assert [a.alert_type for a in active] == ["out_of_stock"]

    async def test_create_alert_returns_existing_open_alert(self, test_db, seeded_db):
        product_id = seeded_db["product_id"]
        alert, created = await create_alert(test_db, product_id, "purchase_order_pending", "Order placed")
        again, created_again = await create_alert(test_db, product_id, "purchase_order_pending", "Order placed")

        assert created is True
        assert created_again is False
        assert again.alert_id == alert.alert_id

    async def test_resolved_alert_allows_a_new_one(self, test_db, seeded_db, reload):
        product = await reload(Product, seeded_db["product_id"])
        [alert] = await evaluate_and_upsert(test_db, product, now=NOW)
        await test_db.commit()

        resolved = await resolve_alert(test_db, alert.alert_id, "admin-1")
        assert resolved.is_resolved is True
        assert resolved.resolved_by == "admin-1"
        assert resolved.resolved_at is not None

        recreated = await evaluate_and_upsert(test_db, product, now=NOW)
        await test_db.commit()
        assert [a.alert_type for a in recreated] == ["out_of_stock"]
        assert recreated[0].alert_id != alert.alert_id

    async def test_resolve_twice_is_invalid(self, test_db, seeded_db):
        alert, _ = await create_alert(test_db, seeded_db["product_id"], "low_stock", "Low")
        await test_db.commit()
        await resolve_alert(test_db, alert.alert_id, "admin-1")

        with pytest.raises(InvalidOperationError):
            await resolve_alert(test_db, alert.alert_id, "admin-1")

    async def test_resolve_unknown_alert(self, test_db, seeded_db):
        with pytest.raises(NotFoundError):
            await resolve_alert(test_db, "00000000-0000-0000-0000-0000000000ff", "admin-1")


@pytest.mark.asyncio
class TestScanProducts:
    async def test_scan_creates_alerts_for_active_products(self, test_db, seeded_db):
        expiring = Product(
            code="YOG-1",
            name="Yogurt",
            category_id=seeded_db["category_id"],
            unit="cup",
            price=0.8,
            stock=40,
            expiration_date=NOW + timedelta(days=3),
        )
        discontinued = Product(
            code="OLD-1",
            name="Old Stock",
            category_id=seeded_db["category_id"],
            unit="unit",
            price=1.0,
            stock=0,
            status="discontinued",
        )
        test_db.add_all([expiring, discontinued])
        await test_db.commit()

        summary = await scan_products(test_db, now=NOW)

        # milk (out of stock), cheese (fine), yogurt (expiring soon)
        assert summary == {"scanned": 3, "created": 2, "failed": 0}
        types = (await test_db.execute(select(Alert.alert_type).order_by(Alert.alert_type))).scalars().all()
        assert types == ["expiring_soon", "out_of_stock"]

    async def test_second_scan_creates_nothing(self, test_db, seeded_db):
        await scan_products(test_db, now=NOW)
        summary = await scan_products(test_db, now=NOW)

        assert summary["created"] == 0
        count = (await test_db.execute(select(func.count()).select_from(Alert))).scalar_one()
        assert count == 1
