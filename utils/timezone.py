"""UTC storage, business-timezone calendar math.

Timestamps are always stored in UTC. Calendar questions (which year does a
document number belong to, is a quotation past its validity date, what counts
as "today" on the dashboard) are answered in the shop's business timezone.
"""

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    Raises ValueError if datetime is naive (no timezone).
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime to UTC. Datetime must be timezone-aware."
        )
    return dt.astimezone(timezone.utc)


def get_zone(tz_name: str) -> ZoneInfo:
    """Resolve an IANA name. Raises ValueError for unknown zones."""
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone: {tz_name}")


def to_local(dt: datetime, tz_name: str) -> datetime:
    """
    Convert UTC datetime to the business timezone.

    Args:
        dt: UTC datetime
        tz_name: IANA timezone name (e.g., "Asia/Kuala_Lumpur")

    Raises:
        ValueError: If datetime is naive or timezone name is invalid
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime. Datetime must be timezone-aware."
        )
    return dt.astimezone(get_zone(tz_name))


def business_date(dt: datetime, tz_name: str) -> date:
    """Calendar date of a UTC instant in the business timezone."""
    return to_local(dt, tz_name).date()


def day_bounds(day: date, tz_name: str) -> tuple[datetime, datetime]:
    """
    UTC half-open range [start, end) covering one business-timezone day.
    """
    zone = get_zone(tz_name)
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return to_utc(start), to_utc(end)


def month_bounds(day: date, tz_name: str) -> tuple[datetime, datetime]:
    """UTC half-open range covering the business-timezone month containing day."""
    zone = get_zone(tz_name)
    first = day.replace(day=1)
    if first.month == 12:
        next_first = first.replace(year=first.year + 1, month=1)
    else:
        next_first = first.replace(month=first.month + 1)
    start = datetime.combine(first, time.min, tzinfo=zone)
    end = datetime.combine(next_first, time.min, tzinfo=zone)
    return to_utc(start), to_utc(end)


def parse_iso(iso_string: str) -> datetime:
    """
    Parse ISO 8601 datetime string to UTC datetime.

    Raises ValueError if string has no timezone info.
    """
    dt = datetime.fromisoformat(iso_string)
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot parse naive datetime string. "
            "Include timezone offset (e.g., 'Z' or '+00:00')."
        )
    return to_utc(dt)
