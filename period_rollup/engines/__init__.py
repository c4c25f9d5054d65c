"""Engine modules for period_rollup.

Contains specialized computation engines:
- stats_engine: Number stats, deltas, cumulatives and extremes
- rollup_engine: Incremental day/week/month/year/all-time rollup
- analysis_engine: Range summaries over computed aggregates
"""

# Use relative imports within package to avoid mypy module resolution issues
from .analysis_engine import AnalysisEngine
from .rollup_engine import RollupEngine, empty_cache, flatten_numbers, recompute
from .stats_engine import RunningHistory, StatsEngine, empty_stats

__all__ = [
    "AnalysisEngine",
    "RollupEngine",
    "RunningHistory",
    "StatsEngine",
    "empty_cache",
    "empty_stats",
    "flatten_numbers",
    "recompute",
]
