"""
Parsing for the APEX timestamp format used by the soil collection.

The sensor table stores `corrected_created_at` as text shaped like
"27-OCT-2025 14:49:04". Anything that does not fit that shape parses to
EPOCH so it sorts first instead of raising.
"""

import logging
from datetime import datetime

logger = logging.getLogger(__name__)

MONTHS = {
    'JAN': 1, 'FEB': 2, 'MAR': 3, 'APR': 4, 'MAY': 5, 'JUN': 6,
    'JUL': 7, 'AUG': 8, 'SEP': 9, 'OCT': 10, 'NOV': 11, 'DEC': 12,
}

# Sentinel returned for unparseable input.
EPOCH = datetime(1970, 1, 1)


def _to_int(part: str) -> int | None:
    part = part.strip()
    # isdigit() alone accepts superscripts and other non-ASCII digits
    if not (part.isascii() and part.isdigit()):
        return None
    return int(part)


def _split_date(date_part: str) -> tuple[int, int, int] | None:
    pieces = date_part.split('-')
    if len(pieces) != 3:
        return None
    day = _to_int(pieces[0])
    month = MONTHS.get(pieces[1].strip().upper())
    year = _to_int(pieces[2])
    if day is None or month is None or year is None:
        return None
    return year, month, day


def _split_time(time_part: str) -> tuple[int, int, int] | None:
    pieces = time_part.split(':')
    if len(pieces) != 3:
        return None
    values = [_to_int(p) for p in pieces]
    if any(v is None for v in values):
        return None
    return values[0], values[1], values[2]


def parse_apex_datetime(value) -> datetime:
    """Parse "DD-MON-YYYY HH:MM:SS" into a naive local datetime, or EPOCH."""
    if not isinstance(value, str):
        return EPOCH
    parts = value.strip().split(' ')
    if len(parts) < 2:
        return EPOCH
    date = _split_date(parts[0])
    clock = _split_time(parts[1])
    if date is None or clock is None:
        return EPOCH
    try:
        return datetime(*date, *clock)
    except ValueError:
        logger.debug("Out of range timestamp: %r", value)
        return EPOCH


def parse_apex_date(value) -> datetime:
    """Parse only the "DD-MON-YYYY" part; returns midnight of that day, or EPOCH."""
    if not isinstance(value, str):
        return EPOCH
    date = _split_date(value.strip().split(' ')[0])
    if date is None:
        return EPOCH
    try:
        return datetime(*date)
    except ValueError:
        logger.debug("Out of range date: %r", value)
        return EPOCH


def is_sentinel(dt: datetime) -> bool:
    return dt == EPOCH


def sort_newest_first(readings) -> list:
    # sorted() is stable, and reverse=True keeps equal keys in their original order
    return sorted(readings, key=lambda r: parse_apex_datetime(r.captured_at), reverse=True)


def sort_oldest_first(readings) -> list:
    return sorted(readings, key=lambda r: parse_apex_datetime(r.captured_at))


def format_last_reading(value: str | None) -> str:
    """Human label for the newest reading, e.g. "Last reading: October 27, 2025 at 2:49 PM"."""
    if not value:
        return 'No date available'
    dt = parse_apex_datetime(value)
    if is_sentinel(dt):
        return value
    hour = dt.hour % 12 or 12
    suffix = 'AM' if dt.hour < 12 else 'PM'
    return f"Last reading: {dt:%B} {dt.day}, {dt.year} at {hour}:{dt.minute:02d} {suffix}"
