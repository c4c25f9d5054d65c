# File: utils/dt_utils.py
"""Date key utilities for period_rollup.

Pure Python functions for validating, converting and bounding period keys.
All functions here can be unit tested without any engine setup.

⚠️ UTILS PURITY: NO imports from engines, helpers or managers.
   Uses standard library datetime and python-dateutil.

Functions:
    - get_key_period: Detect the granularity of a date key
    - is_day_key: Check a key is a real YYYY-MM-DD calendar date
    - dt_parse_day_key: Parse a day key into a date
    - format_date_as_key: Format a date as a key of a given granularity
    - convert_date_key: Map a finer key to its coarser key
    - dt_period_bounds: First and last calendar day covered by a key
"""

from __future__ import annotations

from datetime import date
from functools import lru_cache
import logging
import re

# Third-party date utilities
from dateutil.relativedelta import relativedelta

from .. import const

# Module-level logger
_LOGGER = logging.getLogger(__name__)

_KEY_PATTERNS: dict[str, re.Pattern[str]] = {
    period: re.compile(pattern)
    for period, pattern in const.PERIOD_KEY_PATTERNS.items()
}

# Allowed conversions: source period -> target periods
_CONVERSIONS: dict[str, tuple[str, ...]] = {
    const.PERIOD_DAY: (
        const.PERIOD_DAY,
        const.PERIOD_WEEK,
        const.PERIOD_MONTH,
        const.PERIOD_YEAR,
    ),
    const.PERIOD_WEEK: (const.PERIOD_WEEK, const.PERIOD_YEAR),
    const.PERIOD_MONTH: (const.PERIOD_MONTH, const.PERIOD_YEAR),
    const.PERIOD_YEAR: (const.PERIOD_YEAR,),
}


class InvalidDateKeyError(ValueError):
    """Raised when a date key is malformed or cannot be converted.

    Attributes:
        key: The offending key
        target: Requested target granularity, if any
    """

    def __init__(self, key: object, target: str | None = None) -> None:
        """Initialize InvalidDateKeyError.

        Args:
            key: The offending key
            target: Requested target granularity, if any
        """
        self.key = key
        self.target = target
        if target is None:
            message = f"Invalid date key: {key!r}"
        else:
            message = f"Cannot convert date key {key!r} to {target!r}"
        super().__init__(message)


# ==============================================================================
# Key Detection & Parsing
# ==============================================================================


def get_key_period(key: object) -> str | None:
    """Return the granularity of a date key, or None if it is malformed.

    Checks both the shape and that the key names a real calendar period
    (e.g. "2024-02-30" and "2024-W54" are rejected).

    Examples:
        get_key_period("2024-01-31") → "day"
        get_key_period("2025-W01") → "week"
        get_key_period("2024-13") → None
    """
    if not isinstance(key, str):
        return None

    for period, pattern in _KEY_PATTERNS.items():
        if not pattern.match(key):
            continue
        try:
            dt_period_bounds(key, period)
        except InvalidDateKeyError:
            return None
        return period

    return None


def is_day_key(key: object) -> bool:
    """Return True if key is a valid YYYY-MM-DD day key."""
    return get_key_period(key) == const.PERIOD_DAY


def dt_parse_day_key(key: str | None) -> date | None:
    """Safely parse a day key into a `datetime.date`.

    Returns:
        datetime.date or None if the key is not a valid day key.
    """
    if not key or not isinstance(key, str):
        return None
    if not _KEY_PATTERNS[const.PERIOD_DAY].match(key):
        return None
    try:
        return date.fromisoformat(key)
    except ValueError:
        return None


def format_date_as_key(value: date, period: str) -> str:
    """Format a date as the key of the given granularity.

    Examples:
        format_date_as_key(date(2024, 12, 30), "week") → "2025-W01"
        format_date_as_key(date(2024, 12, 30), "month") → "2024-12"
    """
    try:
        fmt = const.PERIOD_FORMATS[period]
    except KeyError as err:
        raise InvalidDateKeyError(value.isoformat(), period) from err
    return value.strftime(fmt)


# ==============================================================================
# Key Conversion
# ==============================================================================


@lru_cache(maxsize=8192)
def convert_date_key(key: str, target: str) -> str:
    """Convert a date key to the key of a coarser (or equal) granularity.

    Supported directions: day → week/month/year, week → year (ISO year),
    month → year, and identity. Results are memoized since the same day keys
    are converted on every rollup.

    Args:
        key: Source key (day, week, month or year)
        target: Target granularity (one of const.KEYED_PERIODS)

    Returns:
        The coarser key.

    Raises:
        InvalidDateKeyError: key is malformed or the direction is unsupported.

    Examples:
        convert_date_key("2024-01-02", "week") → "2024-W01"
        convert_date_key("2024-12-30", "week") → "2025-W01"
        convert_date_key("2024-07", "year") → "2024"
    """
    source = get_key_period(key)
    if source is None or target not in _CONVERSIONS[source]:
        raise InvalidDateKeyError(key, target)

    if source == target:
        return key
    if target == const.PERIOD_YEAR:
        # Week keys already carry the ISO year; day and month keys the calendar year
        return key[:4]

    parsed = date.fromisoformat(key)
    return format_date_as_key(parsed, target)


# ==============================================================================
# Period Bounds
# ==============================================================================


def dt_period_bounds(key: str, period: str | None = None) -> tuple[date, date]:
    """Return the first and last calendar day covered by a period key.

    Args:
        key: Day, week, month or year key
        period: Granularity of key; detected when omitted

    Returns:
        (start, end) dates, both inclusive.

    Raises:
        InvalidDateKeyError: key is malformed.

    Examples:
        dt_period_bounds("2024-02") → (date(2024, 2, 1), date(2024, 2, 29))
        dt_period_bounds("2025-W01") → (date(2024, 12, 30), date(2025, 1, 5))
    """
    if period is None:
        period = get_key_period(key)
    if period is None or not _KEY_PATTERNS[period].match(key):
        raise InvalidDateKeyError(key)

    try:
        if period == const.PERIOD_DAY:
            start = date.fromisoformat(key)
            return start, start
        if period == const.PERIOD_WEEK:
            start = date.fromisocalendar(int(key[:4]), int(key[6:]), 1)
            return start, start + relativedelta(days=6)
        if period == const.PERIOD_MONTH:
            start = date(int(key[:4]), int(key[5:]), 1)
            return start, start + relativedelta(months=1, days=-1)
        start = date(int(key), 1, 1)
        return start, start + relativedelta(years=1, days=-1)
    except ValueError as err:
        _LOGGER.debug("dt_period_bounds: rejecting key %s (%s)", key, err)
        raise InvalidDateKeyError(key) from err
