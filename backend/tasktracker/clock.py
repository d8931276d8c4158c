from __future__ import annotations

from datetime import datetime, time, timedelta, timezone

# Timestamps are stored as naive UTC datetimes.


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: datetime | None) -> datetime | None:
    """Naive input is taken as UTC already; aware input is converted."""
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def as_utc(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def local_day_bounds(now: datetime) -> tuple[datetime, datetime]:
    """[start of the server's local day, start of the next one) as naive UTC."""
    local_now = as_utc(now).astimezone()
    start = datetime.combine(local_now.date(), time.min, tzinfo=local_now.tzinfo)
    end = datetime.combine(local_now.date() + timedelta(days=1), time.min, tzinfo=local_now.tzinfo)
    return to_naive_utc(start), to_naive_utc(end)
