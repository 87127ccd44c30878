"""Tolerant timestamp parsing for heterogeneous source records.

Date-only values are returned as midnight with ``time_unknown=True`` so that
downstream formatting can suppress a misleading clock time. Timezone-aware
values keep their wall-clock time and drop the offset, so a visit logged at
00:30+01:00 stays on the same calendar day as a date-only value for that day.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time
from typing import Any, NamedTuple


class ParsedTimestamp(NamedTuple):
    value: datetime
    time_unknown: bool


_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_EU_DATE = re.compile(
    r"^(?P<day>\d{1,2})/(?P<month>\d{1,2})/(?P<year>\d{4})"
    r"(?:[ T](?P<hour>\d{1,2}):(?P<minute>\d{2})(?::(?P<second>\d{2}))?)?$"
)


def parse_timestamp(value: Any) -> ParsedTimestamp | None:
    """Parse a raw date/date-time value.

    Accepted forms:
    - ``datetime`` / ``date`` objects
    - ISO 8601 date (``2024-12-05``) or date-time, with optional offset or ``Z``
    - ``YYYY-MM-DD HH:MM[:SS]``
    - European ``DD/MM/YYYY`` with optional ``HH:MM[:SS]``

    Args:
        value: Raw value from the source record

    Returns:
        ParsedTimestamp, or None when the value is empty

    Raises:
        ValueError: If the value is present but cannot be parsed
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return ParsedTimestamp(_to_naive_local(value), False)

    if isinstance(value, date):
        return ParsedTimestamp(datetime.combine(value, time.min), True)

    text = str(value).strip()
    if not text:
        return None

    if _DATE_ONLY.match(text):
        try:
            day = date.fromisoformat(text)
        except ValueError:
            raise ValueError(f"Unparseable date: {value!r}") from None
        return ParsedTimestamp(datetime.combine(day, time.min), True)

    eu_match = _EU_DATE.match(text)
    if eu_match:
        return _parse_eu(eu_match)

    iso_text = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        parsed = datetime.fromisoformat(iso_text)
    except ValueError:
        raise ValueError(f"Unparseable date: {value!r}") from None

    return ParsedTimestamp(_to_naive_local(parsed), False)


def _parse_eu(match: re.Match[str]) -> ParsedTimestamp:
    try:
        day = date(int(match["year"]), int(match["month"]), int(match["day"]))
    except ValueError:
        raise ValueError(f"Unparseable date: {match.string!r}") from None

    if match["hour"] is None:
        return ParsedTimestamp(datetime.combine(day, time.min), True)

    try:
        clock = time(int(match["hour"]), int(match["minute"]), int(match["second"] or 0))
    except ValueError:
        raise ValueError(f"Unparseable date: {match.string!r}") from None
    return ParsedTimestamp(datetime.combine(day, clock), False)


def _to_naive_local(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.replace(tzinfo=None)


def day_distance(a: datetime | date, b: datetime | date) -> int:
    """Absolute distance in calendar days between two dates or timestamps."""
    a_day = a.date() if isinstance(a, datetime) else a
    b_day = b.date() if isinstance(b, datetime) else b
    return abs((a_day - b_day).days)
