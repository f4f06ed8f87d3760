"""
Timestamp normalization.

Every DateTime column holds naive UTC and every comparison uses
datetime.utcnow(), so offset-aware input is converted at the API boundary.
"""

from datetime import datetime, timezone
from typing import Annotated

from pydantic import AfterValidator


def as_naive_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


UTCDateTime = Annotated[datetime, AfterValidator(as_naive_utc)]
