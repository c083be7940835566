"""
Time helpers.

All timestamps produced by the core are timezone-aware UTC datetimes. Human-facing
strings ("16 minutes", "1:54 PM") are rendered here so fallback routing and matching
speak the same format the remote agents use.
"""

from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def humanize_minutes(minutes: float) -> str:
    """Render a duration like the agents do: "16 minutes", "1 hour", "4 hours"."""
    total = max(1, int(round(float(minutes))))
    if total < 60:
        return f"{total} minute" if total == 1 else f"{total} minutes"
    hours, rest = divmod(total, 60)
    if rest == 0:
        return f"{hours} hour" if hours == 1 else f"{hours} hours"
    return f"{hours} h {rest} min"


def format_clock(dt: datetime, timezone_name: str) -> str:
    """Render a wall-clock ETA such as "1:54 PM" in the given timezone."""
    local = ensure_utc(dt).astimezone(ZoneInfo(timezone_name))
    hour = local.hour % 12 or 12
    suffix = "AM" if local.hour < 12 else "PM"
    return f"{hour}:{local.minute:02d} {suffix}"
