import math
from datetime import datetime, timezone


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (``round`` uses banker's rounding)."""
    return math.floor(value + 0.5)


def format_time(seconds: float) -> str:
    """Render a duration as ``MM:SS``, or ``HH:MM:SS`` from one hour up."""
    if seconds is None or math.isnan(seconds) or seconds < 0:
        return "00:00"

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    remaining = int(seconds % 60)

    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{remaining:02d}"
    return f"{minutes:02d}:{remaining:02d}"


def format_hours_minutes(seconds: float) -> str:
    """Render a cumulative duration as ``Xh Ym``, rounded to the nearest minute."""
    total_minutes = round_half_up(seconds / 60)
    return f"{total_minutes // 60}h {total_minutes % 60}m"


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'} ago"


def time_ago(timestamp: str, now: datetime | None = None) -> str:
    """Human-friendly age of an ISO-8601 timestamp, e.g. ``3 hours ago``."""
    then = datetime.fromisoformat(timestamp)
    if then.tzinfo is None:
        then = then.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    seconds = math.floor((now - then).total_seconds())

    if seconds < 60:
        return "just now"
    minutes = seconds // 60
    if minutes < 60:
        return _plural(minutes, "minute")
    hours = minutes // 60
    if hours < 24:
        return _plural(hours, "hour")
    days = hours // 24
    if days < 30:
        return _plural(days, "day")
    months = days // 30
    if months < 12:
        return _plural(months, "month")
    return _plural(months // 12, "year")
