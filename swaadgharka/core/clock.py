from __future__ import annotations

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from swaadgharka.core.config import BUSINESS_TIMEZONE

BUSINESS_TZ = ZoneInfo(BUSINESS_TIMEZONE)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_business_time(moment: datetime) -> datetime:
    """Convert to the kitchen's local time. Naive values are treated as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(BUSINESS_TZ)


def business_today(moment: datetime | None = None) -> date:
    return to_business_time(moment or utcnow()).date()
