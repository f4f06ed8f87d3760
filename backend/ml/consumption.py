"""
Consumption Pattern Analysis — monthly exit volumes from the kardex.

Input is the most recent `exit` ledger entries for a product. They are
bucketed by calendar month; the last six non-empty months (chronological)
drive the trend and seasonality flags handed to the demand predictor.
"""

from dataclasses import asdict, dataclass, field
from typing import Iterable

import pandas as pd

RECENT_MONTHS = 6
TREND_THRESHOLD = 0.20
SEASONALITY_THRESHOLD = 0.30


@dataclass
class ConsumptionPattern:
    product_id: str
    product_name: str
    months: list[str] = field(default_factory=list)
    recent_consumption: list[int] = field(default_factory=list)
    average_monthly_consumption: float = 0.0
    trend: str = "stable"  # increasing, stable, decreasing
    seasonality: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


def monthly_consumption(movements: Iterable) -> pd.Series:
    """Total exit quantity per calendar month, oldest month first."""
    rows = [{"created_at": m.created_at, "quantity": int(m.quantity)} for m in movements]
    if not rows:
        return pd.Series(dtype="int64")

    df = pd.DataFrame(rows)
    month = pd.to_datetime(df["created_at"]).dt.to_period("M")
    return df.groupby(month)["quantity"].sum().sort_index()


def detect_trend(values: list[int]) -> str:
    if len(values) < 2:
        return "stable"
    previous, last = values[-2], values[-1]
    if last > previous * (1 + TREND_THRESHOLD):
        return "increasing"
    if last < previous * (1 - TREND_THRESHOLD):
        return "decreasing"
    return "stable"


def detect_seasonality(values: list[int]) -> bool:
    if not values:
        return False
    average = sum(values) / len(values)
    if average <= 0:
        return False
    return (max(values) - min(values)) / average > SEASONALITY_THRESHOLD


def analyze_consumption(product_id, product_name: str, movements: Iterable) -> ConsumptionPattern:
    series = monthly_consumption(movements).tail(RECENT_MONTHS)
    values = [int(v) for v in series.tolist()]
    average = float(sum(values) / len(values)) if values else 0.0

    return ConsumptionPattern(
        product_id=str(product_id),
        product_name=product_name,
        months=[str(period) for period in series.index],
        recent_consumption=values,
        average_monthly_consumption=round(average, 2),
        trend=detect_trend(values),
        seasonality=detect_seasonality(values),
    )
