from datetime import date, datetime, time, timedelta, timezone

import pytz

from core.config import get_settings


def now_utc() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Treat naive datetimes (as SQLite returns them) as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def clinic_tz():
    """The clinic's wall-clock timezone (CLINIC_TIMEZONE)."""
    return pytz.timezone(get_settings().clinic_timezone)


def to_local(dt: datetime) -> datetime:
    """Stored timestamp in clinic time."""
    return as_utc(dt).astimezone(clinic_tz())


def now_local() -> datetime:
    return datetime.now(clinic_tz())


def today_local() -> date:
    return now_local().date()


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Return [start, end) UTC datetimes covering the clinic's local ``day``."""
    tz = clinic_tz()
    start = tz.localize(datetime.combine(day, time.min))
    end = tz.localize(datetime.combine(day + timedelta(days=1), time.min))
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def format_long_date(dt: date | datetime) -> str:
    """Format as '5 March 2026'."""
    return f"{dt.day} {dt.strftime('%B %Y')}"
