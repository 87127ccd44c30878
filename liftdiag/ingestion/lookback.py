"""Lookback window parsing from free-text request context."""

from __future__ import annotations

import re

DEFAULT_DAYS_BACK = 90
MIN_DAYS_BACK = 1
MAX_DAYS_BACK = 730  # two years

_NUMBER_WORDS = {
    "one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "six": 6,
    "seven": 7, "eight": 8, "nine": 9, "ten": 10, "twelve": 12,
}

_COUNT = r"(\d+|" + "|".join(_NUMBER_WORDS) + r")"

# Checked in order, first match wins
_PATTERNS: list[tuple[re.Pattern[str], int]] = [
    (re.compile(rf"last\s+{_COUNT}\s+weeks?"), 7),
    (re.compile(r"last\s+week"), 7),
    (re.compile(rf"\b{_COUNT}\s+weeks?"), 7),
    (re.compile(rf"last\s+{_COUNT}\s+months?"), 30),
    (re.compile(r"last\s+month"), 30),
    (re.compile(rf"\b{_COUNT}\s+months?"), 30),
    (re.compile(rf"last\s+{_COUNT}\s+days?"), 1),
    (re.compile(rf"\b{_COUNT}\s+days?"), 1),
    (re.compile(r"last\s+year"), 365),
    (re.compile(rf"\b{_COUNT}\s+years?"), 365),
]


def parse_days_from_context(context: str | None, default: int = DEFAULT_DAYS_BACK) -> int:
    """Parse a lookback window in days from request context text.

    Examples:
        "last 2 weeks" -> 14, "last week" -> 7, "last 30 days" -> 30,
        "last month" -> 30, "last three months" -> 90, "last year" -> 365,
        "focus on issues in the last 2 weeks" -> 14

    Args:
        context: Free text, may be None
        default: Window when nothing matches

    Returns:
        Days, clamped to [1, 730]
    """
    if not context:
        return default

    text = context.lower()
    for regex, multiplier in _PATTERNS:
        match = regex.search(text)
        if not match:
            continue
        count = _to_int(match.group(1)) if match.groups() else 1
        return max(MIN_DAYS_BACK, min(count * multiplier, MAX_DAYS_BACK))

    return default


def _to_int(token: str) -> int:
    if token.isdigit():
        return int(token)
    return _NUMBER_WORDS[token]
