"""Date parsing for calendar exports, photo metadata and user input."""

import re
from datetime import date, datetime, timedelta, tzinfo
from typing import Optional, Tuple, Union

from dateutil import parser as dateutil_parser
from dateutil import tz as dateutil_tz

DateLike = Union[str, date, datetime, None]


def _to_local(dt: datetime, local_tz: Optional[tzinfo]) -> datetime:
    if dt.tzinfo is None:
        return dt  # floating time: already local
    return dt.astimezone(local_tz or dateutil_tz.tzlocal())


def parse_datetime(raw: DateLike, local_tz: Optional[tzinfo] = None) -> Optional[datetime]:
    """Parse a timestamp in the formats device exports use.

    Handles:
      - datetime / date objects
      - ISO 8601 with or without offset (2024-06-01T10:00:00+02:00)
      - EXIF "2024:06:01 10:20:30"
      - iCalendar basic form 20240601T100000Z / 20240601
      - anything dateutil understands
    Aware values are converted to `local_tz` (system zone by default).
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return _to_local(raw, local_tz)
    if isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day)

    raw = raw.strip()
    if not raw or raw.lower() in ("null", "none", "unknown"):
        return None

    # 1. EXIF: YYYY:MM:DD HH:MM:SS
    m = re.match(r'^(\d{4}):(\d{2}):(\d{2})[ T](\d{2}):(\d{2}):(\d{2})$', raw)
    if m:
        try:
            return datetime(*(int(g) for g in m.groups()))
        except ValueError:
            return None

    # 2. iCalendar basic: YYYYMMDD[THHMMSS[Z]]
    m = re.match(r'^(\d{4})(\d{2})(\d{2})(?:T(\d{2})(\d{2})(\d{2})(Z)?)?$', raw)
    if m:
        year, month, day, hh, mm, ss, utc = m.groups()
        try:
            dt = datetime(int(year), int(month), int(day), int(hh or 0), int(mm or 0), int(ss or 0))
        except ValueError:
            return None
        if utc:
            dt = dt.replace(tzinfo=dateutil_tz.UTC)
        return _to_local(dt, local_tz)

    # 3. ISO 8601 / general fallback
    try:
        dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        try:
            dt = dateutil_parser.parse(raw)
        except (ValueError, OverflowError):
            return None
    return _to_local(dt, local_tz)


def parse_date(raw: DateLike, local_tz: Optional[tzinfo] = None) -> Optional[date]:
    dt = parse_datetime(raw, local_tz)
    return dt.date() if dt else None


def parse_iso_date(raw: str) -> date:
    """Strict YYYY-MM-DD parsing for stored records and CLI arguments."""
    try:
        return date.fromisoformat(raw.strip())
    except (AttributeError, ValueError) as exc:
        raise ValueError(f"Invalid date: {raw!r} (expected YYYY-MM-DD)") from exc


def event_span(
    start_raw: DateLike,
    end_raw: DateLike,
    all_day: bool = False,
    local_tz: Optional[tzinfo] = None,
) -> Optional[Tuple[date, date]]:
    """Inclusive calendar-day span of an event, or None without a usable start.

    All-day events and events ending exactly at midnight have an exclusive end,
    so the last day is the day before.
    """
    start = parse_datetime(start_raw, local_tz)
    if start is None:
        return None
    end = parse_datetime(end_raw, local_tz) or start

    start_day = start.date()
    end_day = end.date()
    ends_at_midnight = all_day or (end.time() == datetime.min.time() and end > start)
    if ends_at_midnight and end_day > start_day:
        end_day -= timedelta(days=1)
    if end_day < start_day:
        end_day = start_day
    return start_day, end_day
