from datetime import datetime, date, time, timedelta, timezone
import zoneinfo
from .config import settings

TZ = zoneinfo.ZoneInfo(settings.APP_TZ)

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def as_utc(dt: datetime) -> datetime:
    # SQLite hands DateTime(timezone=True) back naive; we only ever store UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)

def resolve_now(now: datetime | None) -> datetime:
    return utcnow() if now is None else as_utc(now)

def local_date(dt: datetime) -> date:
    return as_utc(dt).astimezone(TZ).date()

def noon_of(d: date) -> datetime:
    return datetime.combine(d, time(12, 0)).replace(tzinfo=TZ)

def days_between(start: date, end: date) -> int:
    """Whole calendar days from start to end, measured noon to noon so a DST shift can't round it off."""
    delta = noon_of(end) - noon_of(start)
    return round(delta.total_seconds() / 86400)

def add_days(d: date, n: int) -> date:
    return (noon_of(d) + timedelta(days=n)).date()

def month_bounds(year: int, month: int):
    if not 1 <= month <= 12:
        raise ValueError("month must be 1-12")
    first = date(year, month, 1)
    nxt = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return first, nxt - timedelta(days=1)

def week_bucket(dt: datetime) -> int:
    """ISO year * 100 + ISO week of the local date, e.g. 202611."""
    iso = local_date(dt).isocalendar()
    return iso[0] * 100 + iso[1]
