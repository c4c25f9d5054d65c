# File: const.py
"""Constants for the period_rollup package.

This file centralizes period names, date key formats, statistic field names,
option keys, defaults and analysis presets for consistency across engines,
helpers and managers.
"""

from __future__ import annotations

from datetime import date
import logging
from typing import Any, Final

# Logger
LOGGER = logging.getLogger(__package__)

# ------------------------------------------------------------------------------------------------
# Periods (granularities)
# ------------------------------------------------------------------------------------------------
PERIOD_DAY: Final = "day"
PERIOD_WEEK: Final = "week"
PERIOD_MONTH: Final = "month"
PERIOD_YEAR: Final = "year"
PERIOD_ANYTIME: Final = "anytime"

# Keyed periods, finest first
KEYED_PERIODS: Final = (PERIOD_DAY, PERIOD_WEEK, PERIOD_MONTH, PERIOD_YEAR)

# strftime formats for period keys. Weekly keys use the ISO week-numbering
# year (%G) so keys stay in chronological order across a year boundary.
PERIOD_FORMAT_DAY: Final = "%Y-%m-%d"
PERIOD_FORMAT_WEEK: Final = "%G-W%V"
PERIOD_FORMAT_MONTH: Final = "%Y-%m"
PERIOD_FORMAT_YEAR: Final = "%Y"

PERIOD_FORMATS: Final[dict[str, str]] = {
    PERIOD_DAY: PERIOD_FORMAT_DAY,
    PERIOD_WEEK: PERIOD_FORMAT_WEEK,
    PERIOD_MONTH: PERIOD_FORMAT_MONTH,
    PERIOD_YEAR: PERIOD_FORMAT_YEAR,
}

# Shape checks for keys (value validity is checked separately)
PERIOD_KEY_PATTERNS: Final[dict[str, str]] = {
    PERIOD_DAY: r"^\d{4}-\d{2}-\d{2}$",
    PERIOD_WEEK: r"^\d{4}-W\d{2}$",
    PERIOD_MONTH: r"^\d{4}-\d{2}$",
    PERIOD_YEAR: r"^\d{4}$",
}

# ------------------------------------------------------------------------------------------------
# Day Records (input)
# ------------------------------------------------------------------------------------------------
DATA_DAY_DATE_KEY: Final = "date_key"
DATA_DAY_NUMBERS: Final = "numbers"

# ------------------------------------------------------------------------------------------------
# Number Stats Fields
# ------------------------------------------------------------------------------------------------
STAT_COUNT: Final = "count"
STAT_TOTAL: Final = "total"
STAT_MEAN: Final = "mean"
STAT_MEDIAN: Final = "median"
STAT_MIN: Final = "min"
STAT_MAX: Final = "max"
STAT_FIRST: Final = "first"
STAT_LAST: Final = "last"
STAT_RANGE: Final = "range"
STAT_CHANGE: Final = "change"
STAT_CHANGE_PERCENT: Final = "change_percent"

STAT_FIELDS: Final = (
    STAT_COUNT,
    STAT_TOTAL,
    STAT_MEAN,
    STAT_MEDIAN,
    STAT_MIN,
    STAT_MAX,
    STAT_FIRST,
    STAT_LAST,
    STAT_RANGE,
    STAT_CHANGE,
    STAT_CHANGE_PERCENT,
)

# Extremes keys are "highest_<field>" / "lowest_<field>"
EXTREME_HIGHEST_PREFIX: Final = "highest_"
EXTREME_LOWEST_PREFIX: Final = "lowest_"

# ------------------------------------------------------------------------------------------------
# Period Aggregates (output)
# ------------------------------------------------------------------------------------------------
DATA_AGG_DATE_KEY: Final = "date_key"
DATA_AGG_PERIOD: Final = "period"
DATA_AGG_NUMBERS: Final = "numbers"
DATA_AGG_STATS: Final = "stats"
DATA_AGG_DELTAS: Final = "deltas"
DATA_AGG_PERCENTS: Final = "percents"
DATA_AGG_CUMULATIVES: Final = "cumulatives"
DATA_AGG_CUMULATIVE_DELTAS: Final = "cumulative_deltas"
DATA_AGG_CUMULATIVE_PERCENTS: Final = "cumulative_percents"
DATA_AGG_EXTREMES: Final = "extremes"

# ------------------------------------------------------------------------------------------------
# Cache
# ------------------------------------------------------------------------------------------------
CACHE_RECORDS: Final = "records"
CACHE_DAYS: Final = "days"
CACHE_WEEKS: Final = "weeks"
CACHE_MONTHS: Final = "months"
CACHE_YEARS: Final = "years"
CACHE_ALLTIME: Final = "alltime"
CACHE_HISTORY: Final = "history"
CACHE_OPTIONS: Final = "options"

# ------------------------------------------------------------------------------------------------
# Options
# ------------------------------------------------------------------------------------------------
CONF_NON_FINITE_POLICY: Final = "non_finite_policy"
CONF_EXTREMES_MIN_CHILDREN: Final = "extremes_min_children"

NON_FINITE_DROP: Final = "drop"
NON_FINITE_ZERO: Final = "zero"
NON_FINITE_POLICIES: Final = (NON_FINITE_DROP, NON_FINITE_ZERO)

DEFAULT_NON_FINITE_POLICY: Final = NON_FINITE_DROP
DEFAULT_EXTREMES_MIN_CHILDREN: Final = 1

# ------------------------------------------------------------------------------------------------
# Time-Frame Presets (analysis ranges)
# ------------------------------------------------------------------------------------------------
TIME_FRAME_LAST_7_DAYS: Final = "last-7-days"
TIME_FRAME_LAST_30_DAYS: Final = "last-30-days"
TIME_FRAME_THIS_WEEK: Final = "this-week"
TIME_FRAME_LAST_WEEK: Final = "last-week"
TIME_FRAME_LAST_4_WEEKS: Final = "last-4-weeks"
TIME_FRAME_THIS_MONTH: Final = "this-month"
TIME_FRAME_LAST_MONTH: Final = "last-month"
TIME_FRAME_LAST_6_MONTHS: Final = "last-6-months"
TIME_FRAME_LAST_12_MONTHS: Final = "last-12-months"
TIME_FRAME_THIS_YEAR: Final = "this-year"
TIME_FRAME_LAST_YEAR: Final = "last-year"
TIME_FRAME_ALL_TIME: Final = "all-time"
TIME_FRAME_CUSTOM: Final = "custom"

# Preset -> label and the granularities worth charting over that range
TIME_FRAME_PRESETS: Final[dict[str, dict[str, Any]]] = {
    TIME_FRAME_LAST_7_DAYS: {"label": "Last 7 Days", "aggregations": (PERIOD_DAY,)},
    TIME_FRAME_LAST_30_DAYS: {"label": "Last 30 Days", "aggregations": (PERIOD_DAY,)},
    TIME_FRAME_THIS_WEEK: {"label": "This Week", "aggregations": (PERIOD_DAY,)},
    TIME_FRAME_LAST_WEEK: {"label": "Last Week", "aggregations": (PERIOD_DAY,)},
    TIME_FRAME_LAST_4_WEEKS: {"label": "Last 4 Weeks", "aggregations": (PERIOD_WEEK,)},
    TIME_FRAME_THIS_MONTH: {
        "label": "This Month",
        "aggregations": (PERIOD_DAY, PERIOD_WEEK),
    },
    TIME_FRAME_LAST_MONTH: {
        "label": "Last Month",
        "aggregations": (PERIOD_DAY, PERIOD_WEEK),
    },
    TIME_FRAME_LAST_6_MONTHS: {
        "label": "Last 6 Months",
        "aggregations": (PERIOD_DAY, PERIOD_WEEK, PERIOD_MONTH),
    },
    TIME_FRAME_LAST_12_MONTHS: {
        "label": "Last 12 Months",
        "aggregations": (PERIOD_DAY, PERIOD_WEEK, PERIOD_MONTH),
    },
    TIME_FRAME_THIS_YEAR: {
        "label": "This Year",
        "aggregations": (PERIOD_DAY, PERIOD_WEEK, PERIOD_MONTH),
    },
    TIME_FRAME_LAST_YEAR: {
        "label": "Last Year",
        "aggregations": (PERIOD_DAY, PERIOD_WEEK, PERIOD_MONTH),
    },
    TIME_FRAME_ALL_TIME: {"label": "All Time", "aggregations": KEYED_PERIODS},
    TIME_FRAME_CUSTOM: {"label": "Custom Range", "aggregations": KEYED_PERIODS},
}

# Start of the all-time range
TIME_FRAME_EPOCH: Final = date(1970, 1, 1)
