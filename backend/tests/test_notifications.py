"""
Tests for the Notification Dispatcher — logging, batch processing, retries.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from alerts.channel import DeliveryResult, SendGridChannel, render_html
from alerts.engine import create_alert
from alerts.notifications import (
    NotificationPayload,
    build_alert_payload,
    build_purchase_suggestion_payload,
    list_pending_notifications,
    process_active_alerts,
    retry_pending_notifications,
    send_notification,
    send_purchase_order_suggestion,
    update_notification_status,
)
from core.config import Settings
from core.errors import InvalidOperationError
from db.models import DemandForecast, NotificationLog, Product
from fakes import FakeChannel


async def _pending_logs(test_db, seeded_db, titles):
    logs = []
    for i, title in enumerate(titles):
        log = NotificationLog(
            product_id=seeded_db["product_id"],
            notification_type="low_stock",
            title=title,
            content=f"content {i}",
            status="pending",
            attempts=1,
            created_at=datetime(2026, 1, 1) + timedelta(minutes=i),
        )
        test_db.add(log)
        logs.append(log)
    await test_db.commit()
    return [log.log_id for log in logs]


class RaisingChannel:
    async def send(self, title, content):
        raise ConnectionError("smtp down")


@pytest.mark.asyncio
class TestSendNotification:
    async def test_success_marks_sent(self, test_db, seeded_db, reload):
        channel = FakeChannel()
        result = await send_notification(
            test_db, channel, NotificationPayload("low_stock", "Low milk", "Only 3 left", seeded_db["product_id"])
        )

        assert result.success is True
        log = await reload(NotificationLog, result.log_id)
        assert log.status == "sent"
        assert log.attempts == 1
        assert log.sent_at is not None
        assert log.recipient == "owner@test.local"
        assert channel.sent == [("Low milk", "Only 3 left")]

    async def test_failure_marks_failed_with_channel_error(self, test_db, seeded_db, reload):
        result = await send_notification(
            test_db, FakeChannel(fail_all=True), NotificationPayload("low_stock", "Low milk", "Only 3 left")
        )

        assert result.success is False
        assert result.error == "mailbox unavailable"
        log = await reload(NotificationLog, result.log_id)
        assert log.status == "failed"
        assert log.error_message == "mailbox unavailable"

    async def test_raising_channel_is_recorded_as_failure(self, test_db, seeded_db, reload):
        result = await send_notification(test_db, RaisingChannel(), NotificationPayload("low_stock", "t", "c"))

        assert result.success is False
        log = await reload(NotificationLog, result.log_id)
        assert log.status == "failed"
        assert "smtp down" in log.error_message


@pytest.mark.asyncio
class TestProcessActiveAlerts:
    async def test_one_notification_per_unresolved_alert(self, test_db, seeded_db):
        await create_alert(test_db, seeded_db["product_id"], "out_of_stock", "Whole Milk is out of stock.")
        await create_alert(test_db, seeded_db["cheese_id"], "expiring_soon", "Aged Cheese expires soon.")
        await test_db.commit()

        channel = FakeChannel(fail_titles={"Inventory alert: Aged Cheese"})
        summary = await process_active_alerts(test_db, channel)

        assert summary == {"processed": 2, "sent": 1, "failed": 1, "skipped": 0}
        statuses = sorted((await test_db.execute(select(NotificationLog.status))).scalars().all())
        assert statuses == ["failed", "sent"]

    async def test_no_alerts(self, test_db, seeded_db):
        summary = await process_active_alerts(test_db, FakeChannel())
        assert summary == {"processed": 0, "sent": 0, "failed": 0, "skipped": 0}


@pytest.mark.asyncio
class TestRetryPendingNotifications:
    async def test_failure_of_one_log_does_not_stop_the_batch(self, test_db, seeded_db, reload):
        ids = await _pending_logs(test_db, seeded_db, ["first", "second", "third"])
        channel = FakeChannel(fail_titles={"second"})

        summary = await retry_pending_notifications(test_db, channel, max_attempts=5)

        assert summary["retried"] == 3
        assert summary["sent"] == 2
        assert summary["failed"] == 1
        first, second, third = [await reload(NotificationLog, i) for i in ids]
        assert first.status == "sent"
        assert third.status == "sent"
        assert second.status == "pending"
        assert second.attempts == 2
        assert second.error_message == "mailbox unavailable"

    async def test_exhausted_log_becomes_failed(self, test_db, seeded_db, reload):
        [log_id] = await _pending_logs(test_db, seeded_db, ["stubborn"])
        channel = FakeChannel(fail_all=True)

        first = await retry_pending_notifications(test_db, channel, max_attempts=3)
        assert first["exhausted"] == 0
        assert (await reload(NotificationLog, log_id)).status == "pending"

        second = await retry_pending_notifications(test_db, channel, max_attempts=3)
        assert second["exhausted"] == 1
        log = await reload(NotificationLog, log_id)
        assert log.status == "failed"
        assert log.attempts == 3

        third = await retry_pending_notifications(test_db, channel, max_attempts=3)
        assert third["retried"] == 0

    async def test_list_pending_oldest_first(self, test_db, seeded_db):
        ids = await _pending_logs(test_db, seeded_db, ["a", "b"])
        pending = await list_pending_notifications(test_db)
        assert [log.log_id for log in pending] == ids


@pytest.mark.asyncio
class TestUpdateNotificationStatus:
    async def test_manual_failure(self, test_db, seeded_db):
        [log_id] = await _pending_logs(test_db, seeded_db, ["manual"])
        log = await update_notification_status(test_db, log_id, "failed", "bounced")
        assert log.status == "failed"
        assert log.error_message == "bounced"

    async def test_sent_cannot_be_reopened(self, test_db, seeded_db):
        [log_id] = await _pending_logs(test_db, seeded_db, ["manual"])
        await update_notification_status(test_db, log_id, "sent")
        with pytest.raises(InvalidOperationError):
            await update_notification_status(test_db, log_id, "pending")


@pytest.mark.asyncio
class TestMessages:
    async def test_alert_payload_mentions_product(self, test_db, seeded_db, reload):
        alert, _ = await create_alert(test_db, seeded_db["product_id"], "out_of_stock", "Whole Milk is out of stock.")
        product = await reload(Product, seeded_db["product_id"])

        payload = build_alert_payload(alert, product)
        assert payload.notification_type == "out_of_stock"
        assert payload.alert_id == alert.alert_id
        assert "MILK-001" in payload.content
        assert "Current stock: 0 units" in payload.content

    async def test_purchase_suggestion(self, test_db, seeded_db, reload):
        product = await reload(Product, seeded_db["product_id"])
        forecast = DemandForecast(
            product_id=product.product_id,
            forecasted_demand=30,
            suggested_order_quantity=45,
            confidence=72.0,
            analysis_data={"analysis": "Demand is rising"},
            generated_at=datetime.utcnow(),
        )
        test_db.add(forecast)
        await test_db.commit()

        payload = build_purchase_suggestion_payload(product, forecast)
        assert payload.notification_type == "purchase_order"
        assert "Suggested quantity: 45 units" in payload.content
        assert "72%" in payload.content

        channel = FakeChannel()
        result = await send_purchase_order_suggestion(test_db, channel, product, forecast)
        assert result.success is True
        assert channel.sent[0][0] == "Purchase suggestion: Whole Milk"


@pytest.mark.asyncio
class TestSendGridChannel:
    async def test_missing_api_key_fails_without_sending(self):
        channel = SendGridChannel(Settings(sendgrid_api_key="", owner_email="owner@test.local"))
        result = await channel.send("t", "c")
        assert result == DeliveryResult(False, "SendGrid API key is not configured", "owner@test.local")

    async def test_missing_owner_email(self):
        channel = SendGridChannel(Settings(sendgrid_api_key="SG.key", owner_email=""))
        result = await channel.send("t", "c")
        assert result.success is False
        assert result.error == "Owner email is not configured"

    async def test_non_2xx_is_a_failure(self, monkeypatch):
        channel = SendGridChannel(Settings(sendgrid_api_key="SG.key", owner_email="owner@test.local"))
        monkeypatch.setattr(channel, "_send_sync", lambda title, content: 401)
        result = await channel.send("t", "c")
        assert result.success is False
        assert "401" in result.error

    async def test_accepted(self, monkeypatch):
        channel = SendGridChannel(Settings(sendgrid_api_key="SG.key", owner_email="owner@test.local"))
        monkeypatch.setattr(channel, "_send_sync", lambda title, content: 202)
        result = await channel.send("t", "c")
        assert result == DeliveryResult(True, None, "owner@test.local")


class TestRenderHtml:
    def test_html_is_escaped(self):
        html = render_html("<b>Alert</b>", "line 1\nline <2>")
        assert "&lt;b&gt;Alert&lt;/b&gt;" in html
        assert "line 1<br>line &lt;2&gt;" in html
