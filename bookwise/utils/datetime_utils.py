# bookwise/utils/datetime_utils.py
"""Timezone helpers shared by the repository, calendar clients and the slot core"""
from datetime import date, datetime, time, timedelta
from typing import Tuple

import pytz

from bookwise.core.exceptions import InvalidInputError


def resolve_timezone(timezone_name: str):
    """Return the pytz timezone for an IANA name, rejecting unknown names"""
    try:
        return pytz.timezone(timezone_name)
    except pytz.UnknownTimeZoneError:
        raise InvalidInputError(f"Unknown timezone: {timezone_name!r}")


def is_aware(value: datetime) -> bool:
    return value.tzinfo is not None and value.utcoffset() is not None


def require_aware(value: datetime, field: str) -> datetime:
    if not isinstance(value, datetime) or not is_aware(value):
        raise InvalidInputError(f"{field} must be a timezone-aware datetime")
    return value


def as_utc(value: datetime) -> datetime:
    """Normalize to UTC. Naive values are read back from storage as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=pytz.UTC)
    return value.astimezone(pytz.UTC)


def day_bounds(target_date: date, tz) -> Tuple[datetime, datetime]:
    """Inclusive [start of day, end of day] of a calendar date in ``tz``"""
    day_start = tz.localize(datetime.combine(target_date, time.min))
    day_end = tz.localize(datetime.combine(target_date + timedelta(days=1), time.min)) - timedelta(microseconds=1)
    return day_start, day_end


def local_today(now: datetime, tz) -> date:
    return now.astimezone(tz).date()
