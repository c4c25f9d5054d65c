# File: helpers/aggregate_helpers.py
"""Aggregate helper functions for period_rollup.

Small read-side helpers used by consumers of the rollup output (charts,
goal checks) that would otherwise poke at aggregate dicts directly.

Functions:
    - create_empty_aggregate: Placeholder aggregate for a key with no data
    - build_prior_aggregate_map: Key → last earlier aggregate that has numbers
    - get_high_for_metric / get_low_for_metric: Extremes accessors
    - calculate_year_daily_extremes: Extremes of the non-empty days of a year
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

from .. import const
from ..engines.stats_engine import StatsEngine, empty_stats

if TYPE_CHECKING:
    from ..type_defs import DateKey, PeriodAggregate, StatsExtremes


def create_empty_aggregate(date_key: DateKey | None, period: str) -> PeriodAggregate:
    """Return an aggregate with no numbers and empty stats everywhere."""
    return {
        const.DATA_AGG_DATE_KEY: date_key,
        const.DATA_AGG_PERIOD: period,
        const.DATA_AGG_NUMBERS: [],
        const.DATA_AGG_STATS: empty_stats(),
        const.DATA_AGG_DELTAS: empty_stats(),
        const.DATA_AGG_PERCENTS: {},
        const.DATA_AGG_CUMULATIVES: empty_stats(),
        const.DATA_AGG_CUMULATIVE_DELTAS: empty_stats(),
        const.DATA_AGG_CUMULATIVE_PERCENTS: {},
        const.DATA_AGG_EXTREMES: None,
    }  # type: ignore[return-value]


def build_prior_aggregate_map(
    items: Sequence[PeriodAggregate],
) -> dict[DateKey, PeriodAggregate | None]:
    """Map each key to the closest earlier aggregate that has numbers.

    Empty periods are skipped when picking a prior, so a gap day compares
    against the last day that actually had entries.
    """
    record: dict[DateKey, PeriodAggregate | None] = {}
    last_populated: PeriodAggregate | None = None
    for item in items:
        record[item[const.DATA_AGG_DATE_KEY]] = last_populated  # type: ignore[index]
        if item[const.DATA_AGG_NUMBERS]:
            last_populated = item
    return record


def get_high_for_metric(metric: str, extremes: Mapping[str, float]) -> float | None:
    """Return the highest value of `metric` among the children, if known."""
    return extremes.get(f"{const.EXTREME_HIGHEST_PREFIX}{metric}")


def get_low_for_metric(metric: str, extremes: Mapping[str, float]) -> float | None:
    """Return the lowest value of `metric` among the children, if known."""
    return extremes.get(f"{const.EXTREME_LOWEST_PREFIX}{metric}")


def calculate_year_daily_extremes(
    days: Sequence[PeriodAggregate], year: int
) -> StatsExtremes | None:
    """Calculate extremes across the days of one year that have data.

    Useful for scaling per-day visualizations within a year.
    """
    prefix = f"{year:04d}-"
    day_stats = [
        day[const.DATA_AGG_STATS]
        for day in days
        if str(day[const.DATA_AGG_DATE_KEY]).startswith(prefix)
        and day[const.DATA_AGG_STATS][const.STAT_COUNT] > 0
    ]
    return StatsEngine.calculate_extremes(day_stats)
