"""
Test doubles for the external demand predictor and the notification channel.
"""

from alerts.channel import DeliveryResult
from ml.consumption import ConsumptionPattern
from ml.predictor import Prediction


class FakePredictor:
    """Deterministic predictor that records every call."""

    def __init__(self, prediction: Prediction | None = None, error: Exception | None = None):
        self.prediction = prediction or Prediction(
            forecasted_demand=42,
            suggested_order_quantity=60,
            confidence=80,
            analysis="Stable demand",
        )
        self.error = error
        self.calls: list[tuple[ConsumptionPattern, int, int]] = []

    async def predict(self, pattern: ConsumptionPattern, min_stock: int, max_stock: int) -> Prediction:
        self.calls.append((pattern, min_stock, max_stock))
        if self.error is not None:
            raise self.error
        return self.prediction


class FakeChannel:
    """Records deliveries; titles listed in `fail_titles` fail."""

    def __init__(self, fail_titles: set[str] | None = None, fail_all: bool = False):
        self.fail_titles = fail_titles or set()
        self.fail_all = fail_all
        self.sent: list[tuple[str, str]] = []
        self.attempts = 0

    async def send(self, title: str, content: str) -> DeliveryResult:
        self.attempts += 1
        if self.fail_all or title in self.fail_titles:
            return DeliveryResult(False, "mailbox unavailable", "owner@test.local")
        self.sent.append((title, content))
        return DeliveryResult(True, None, "owner@test.local")
