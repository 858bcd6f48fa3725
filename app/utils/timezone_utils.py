"""
Timezone helpers for measurement queries and display.

Offsets are resolved per instant, so the same zone name yields different
offsets either side of a DST change. None of the helpers raise on a bad zone
name: offsets fall back to 0.0 (UTC) and formatted timestamps fall back to
plain UTC ISO strings.
"""

from datetime import datetime, timedelta, timezone
from typing import NamedTuple, Optional
from zoneinfo import ZoneInfo

import pytz

from app.core.logger import get_logger
from app.exceptions.errors import InvalidInputError

logger = get_logger("timezone_utils")

DATE_FORMAT = "%Y-%m-%d"
END_OF_DAY = timedelta(hours=23, minutes=59, seconds=59, milliseconds=999)


class DayWindow(NamedTuple):
    """Inclusive UTC range covering one local calendar day."""
    start_utc: datetime
    end_utc: datetime


def utc_now() -> datetime:
    """Current time as a naive UTC datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert timezone-aware datetime to naive UTC for database storage"""
    if value.tzinfo is not None:
        return value.astimezone(pytz.UTC).replace(tzinfo=None)
    return value


def start_of_utc_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def _as_aware_utc(instant: datetime) -> datetime:
    # Naive datetimes are UTC throughout the app
    if instant.tzinfo is None:
        return pytz.UTC.localize(instant)
    return instant.astimezone(pytz.UTC)


def _offset_from_tz_database(timezone_name: str, instant: datetime) -> float:
    tz = pytz.timezone(timezone_name)
    offset = _as_aware_utc(instant).astimezone(tz).utcoffset()
    return offset.total_seconds() / 3600


def _offset_from_wall_clock(timezone_name: str, instant: datetime) -> float:
    aware = _as_aware_utc(instant)
    utc_wall = aware.replace(tzinfo=None)
    local_wall = aware.astimezone(ZoneInfo(timezone_name)).replace(tzinfo=None)
    return (local_wall - utc_wall).total_seconds() / 3600


def resolve_offset_hours(timezone_name: str, instant: Optional[datetime] = None) -> float:
    """
    UTC offset, in fractional hours, that ``timezone_name`` has at ``instant``.

    ``America/New_York`` gives -5.0 in January and -4.0 in July;
    ``Asia/Kolkata`` gives 5.5. ``instant`` defaults to now.

    Lookup order: the pytz database, then the system zoneinfo database
    (differencing wall-clock renderings), then 0.0.
    """
    if instant is None:
        instant = utc_now()

    try:
        return _offset_from_tz_database(timezone_name, instant)
    except Exception as e:
        logger.debug(f"pytz could not resolve {timezone_name!r}: {e!r}")

    try:
        return _offset_from_wall_clock(timezone_name, instant)
    except Exception:
        logger.warning(f'Invalid timezone "{timezone_name}", defaulting to UTC')

    return 0.0


def format_offset(offset_hours: float) -> str:
    """Render an hour offset as ``+HH:MM`` / ``-HH:MM``."""
    sign = "-" if offset_hours < 0 else "+"
    total_minutes = int(round(abs(offset_hours) * 60))
    return f"{sign}{total_minutes // 60:02d}:{total_minutes % 60:02d}"


def _utc_day_window(day) -> DayWindow:
    start = datetime(day.year, day.month, day.day)
    return DayWindow(start, start + END_OF_DAY)


def day_window(date_str: str, timezone_name: str) -> DayWindow:
    """
    UTC instants bounding local midnight-to-midnight of ``date_str`` (YYYY-MM-DD)
    in ``timezone_name``, e.g. 2025-06-15 in America/Phoenix is
    2025-06-15 07:00:00 .. 2025-06-16 06:59:59.999.

    The offset in effect at local midnight is applied to both ends, so on a DST
    transition day ``end_utc`` is off by the size of the shift.

    Strings that are not strict YYYY-MM-DD but still read as an ISO date or
    datetime get the plain UTC day window. Anything else is INVALID_INPUT.
    """
    try:
        local_date = datetime.strptime(date_str, DATE_FORMAT).date()
    except (TypeError, ValueError):
        return _fallback_day_window(date_str)

    midnight = datetime(local_date.year, local_date.month, local_date.day)

    # Midnight-as-UTC is only a first guess; re-resolve at the local midnight it implies
    offset = resolve_offset_hours(timezone_name, midnight)
    try:
        offset = resolve_offset_hours(timezone_name, midnight - timedelta(hours=offset))
        shift = timedelta(hours=offset)
        return DayWindow(midnight - shift, midnight + END_OF_DAY - shift)
    except OverflowError:
        return _utc_day_window(local_date)


def _fallback_day_window(date_str) -> DayWindow:
    try:
        parsed = datetime.fromisoformat(str(date_str).strip().replace("Z", "+00:00"))
    except ValueError:
        raise InvalidInputError(f"Invalid date {date_str!r}, expected YYYY-MM-DD")

    logger.info(f"Date {date_str!r} is not YYYY-MM-DD, using its UTC day")
    return _utc_day_window(to_naive_utc(parsed).date())


def to_utc_iso(instant: datetime) -> str:
    """``2025-06-15T07:00:00.000Z`` style rendering."""
    aware = _as_aware_utc(instant)
    return f"{aware.strftime('%Y-%m-%dT%H:%M:%S')}.{aware.microsecond // 1000:03d}Z"


def format_in_timezone(instant: datetime, timezone_name: str) -> str:
    """
    Render ``instant`` as local wall-clock time with its offset,
    e.g. ``2025-12-12T18:11:55.000-07:00``. Falls back to UTC ISO on any error.
    """
    try:
        aware = _as_aware_utc(instant)
        local = aware.astimezone(pytz.timezone(timezone_name))
        offset = format_offset(resolve_offset_hours(timezone_name, aware))
        return (
            f"{local.year:04d}-{local.month:02d}-{local.day:02d}"
            f"T{local.hour:02d}:{local.minute:02d}:{local.second:02d}"
            f".{aware.microsecond // 1000:03d}{offset}"
        )
    except Exception:
        return to_utc_iso(instant)


def date_in_timezone(instant: datetime, timezone_name: str) -> str:
    """Local calendar date (YYYY-MM-DD) of ``instant``; the UTC date on error."""
    try:
        return _as_aware_utc(instant).astimezone(pytz.timezone(timezone_name)).date().isoformat()
    except Exception:
        return _as_aware_utc(instant).date().isoformat()
