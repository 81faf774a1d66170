"""
Formatting and time-conversion helpers shared by the view models.

Device timestamps are UTC epoch seconds; the user works in local wall-clock
date/time. A tz of None means the system's local timezone.
"""

import math
from datetime import date, datetime, time, tzinfo

from .exceptions import ValidationError

PLACEHOLDER = "–"
MINUTES_PER_DAY = 1440


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def format_temp(value) -> str:
    """One decimal, or the placeholder when unknown."""
    if not _is_number(value) or not math.isfinite(value):
        return PLACEHOLDER
    return f"{value:.1f}"


def format_elapsed(seconds) -> str:
    """Whole-seconds duration: "45s", "1m 30s", "1h 2m"."""
    if not _is_number(seconds) or not math.isfinite(seconds) or seconds <= 0:
        return PLACEHOLDER
    total = int(seconds)
    if total < 60:
        return f"{total}s"
    minutes, secs = divmod(total, 60)
    if minutes < 60:
        return f"{minutes}m {secs}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m"


def format_warmup(seconds) -> str:
    """Minute-rounded duration: "10 min", "1 h", "1 h 30 min"."""
    if not _is_number(seconds) or not math.isfinite(seconds) or seconds <= 0:
        return PLACEHOLDER
    # Python rounds halves to even, the device UI rounds them up
    mins = math.floor(seconds / 60 + 0.5)
    if mins < 60:
        return f"{mins} min"
    hours, rest = divmod(mins, 60)
    return f"{hours} h {rest} min" if rest else f"{hours} h"


def parse_hhmm(value: str) -> time:
    """Parse "HH:MM" (24h) into a time.

    Raises:
        ValidationError: If the value is not a valid wall-clock time
    """
    if not isinstance(value, str):
        raise ValidationError(f"Expected HH:MM, got {value!r}")
    parts = value.strip().split(":")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise ValidationError(f"Expected HH:MM, got {value!r}")
    hours, minutes = int(parts[0]), int(parts[1])
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ValidationError(f"Time out of range: {value!r}")
    return time(hours, minutes)


def parse_minute_of_day(value: str) -> int:
    """ "07:30" -> 450."""
    t = parse_hhmm(value)
    return t.hour * 60 + t.minute


def format_minute_of_day(minutes: int) -> str:
    """450 -> "07:30". Values past midnight wrap."""
    minutes = int(minutes)
    return f"{(minutes // 60) % 24:02d}:{minutes % 60:02d}"


def parse_local_date(value) -> date:
    """Accept a date or an ISO "YYYY-MM-DD" string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as e:
        raise ValidationError(f"Expected YYYY-MM-DD, got {value!r}") from e


def local_to_epoch(local_date, local_time, tz: tzinfo | None = None) -> int:
    """Convert a local wall-clock date + time to UTC epoch seconds."""
    d = parse_local_date(local_date)
    t = local_time if isinstance(local_time, time) else parse_hhmm(local_time)
    wall = datetime.combine(d, t.replace(tzinfo=None))
    if tz is not None:
        wall = wall.replace(tzinfo=tz)
    # Naive datetimes are interpreted in the system's local timezone
    return int(wall.timestamp())


def epoch_to_local(epoch_utc: int, tz: tzinfo | None = None) -> datetime:
    """Convert UTC epoch seconds to local wall-clock time."""
    return datetime.fromtimestamp(epoch_utc, tz)


def format_local_date(dt: datetime) -> str:
    return f"{dt.year:04d}-{dt.month:02d}-{dt.day:02d}"


def format_local_hm(dt: datetime) -> str:
    return f"{dt.hour:02d}:{dt.minute:02d}"


def format_local_datetime(dt: datetime) -> str:
    return f"{format_local_date(dt)} {format_local_hm(dt)}"


def format_epoch_local(epoch_utc, tz: tzinfo | None = None) -> str:
    """ "YYYY-MM-DD HH:MM" in local time, or the placeholder for unknown or unrepresentable epochs."""
    if epoch_utc is None:
        return PLACEHOLDER
    try:
        return format_local_datetime(epoch_to_local(epoch_utc, tz))
    except (OverflowError, OSError, ValueError):
        return PLACEHOLDER
