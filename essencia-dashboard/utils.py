import math
from datetime import date, datetime, timezone
from typing import Any, Optional

import config

# Shared helpers for dates, cycles and numeric cleanup.

def ensure_timezone_aware(dt: datetime) -> datetime:
    """Ensures a datetime object is timezone-aware, assuming UTC if naive."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt

def time_ago(dt: Optional[datetime]) -> str:
    """Converts a datetime object to a human-readable string like '2h ago'."""
    if not dt: return "N/A"
    now = datetime.now(timezone.utc)
    dt_aware = ensure_timezone_aware(dt)
    diff = now - dt_aware
    seconds = diff.total_seconds()
    if seconds < 60: return "Just now"
    if seconds < 3600: return f"{int(seconds / 60)}m ago"
    if seconds < 86400: return f"{int(seconds / 3600)}h ago"
    return f"{diff.days}d ago"

def parse_report_date(value: Any) -> Optional[datetime]:
    """Parses a stored report date (ISO date, ISO datetime or epoch millis)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_timezone_aware(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    try:
        return ensure_timezone_aware(datetime.fromisoformat(str(value).replace('Z', '+00:00')))
    except ValueError:
        return None

def to_number(value: Any) -> Optional[float]:
    """Returns value as a float, or None when it is not a number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None

def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    scaled = value * factor
    # Too large to scale: a float that big has no fractional part left to round.
    if not math.isfinite(scaled):
        return value
    return math.floor(scaled + 0.5) / factor

def current_cycle_day(report_day: Optional[int], today: Optional[date] = None) -> int:
    if report_day:
        return int(report_day)
    today = today or datetime.now(timezone.utc).date()
    return min(today.day, config.DEFAULT_CYCLE_DAYS)

def total_cycle_days(report_total: Optional[int]) -> int:
    return int(report_total) if report_total else config.DEFAULT_CYCLE_DAYS

def days_remaining(current_day: int, total_days: int) -> int:
    return max(0, total_days - current_day)
