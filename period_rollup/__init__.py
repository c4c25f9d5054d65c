"""Incremental day/week/month/year/all-time statistics for a daily numeric log.

Usage:
    from period_rollup import recompute

    result, cache = recompute(records)
    result, cache = recompute(updated_records, cache)
"""

from .engines import (
    AnalysisEngine,
    RollupEngine,
    StatsEngine,
    empty_cache,
    empty_stats,
    recompute,
)
from .managers import RollupManager
from .options import InvalidOptionsError, validate_options
from .utils.dt_utils import InvalidDateKeyError, convert_date_key

__all__ = [
    "AnalysisEngine",
    "InvalidDateKeyError",
    "InvalidOptionsError",
    "RollupEngine",
    "RollupManager",
    "StatsEngine",
    "convert_date_key",
    "empty_cache",
    "empty_stats",
    "recompute",
    "validate_options",
]
