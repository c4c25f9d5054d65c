"""Analysis Engine - Range summaries over already-computed aggregates.

Works on the output of RollupEngine; nothing here recomputes the rollup.
Cumulatives and deltas are read from the aggregates, which already carry them.
Time-frame presets turn a named range such as "last-month" into dates.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import TYPE_CHECKING

from dateutil.relativedelta import MO, relativedelta

from .. import const
from ..utils.dt_utils import InvalidDateKeyError, dt_period_bounds
from .rollup_engine import flatten_numbers
from .stats_engine import StatsEngine

if TYPE_CHECKING:
    from ..type_defs import AnalysisData, PeriodAggregate, TimeFrameConfig


class AnalysisEngine:
    """Stateless helpers for summarizing a date range of aggregates."""

    @staticmethod
    def filter_periods_by_range(
        periods: Sequence[PeriodAggregate], start: date, end: date
    ) -> list[PeriodAggregate]:
        """Return aggregates whose period overlaps the inclusive [start, end] range.

        A week overlapping the range on a single day is included. The
        all-time aggregate has no date span and is never included.
        """
        if start > end:
            start, end = end, start

        selected: list[PeriodAggregate] = []
        for period in periods:
            key = period[const.DATA_AGG_DATE_KEY]
            if key is None:
                continue
            try:
                period_start, period_end = dt_period_bounds(
                    key, period[const.DATA_AGG_PERIOD]
                )
            except InvalidDateKeyError:
                const.LOGGER.warning(
                    "AnalysisEngine: Skipping period with malformed key %r", key
                )
                continue
            if period_start <= end and period_end >= start:
                selected.append(period)
        return selected

    @staticmethod
    def compute_analysis_data(
        all_periods: Sequence[PeriodAggregate],
        start: date,
        end: date,
        include_prior_period: bool = True,
    ) -> AnalysisData:
        """Summarize the periods of one granularity that fall in a date range.

        Args:
            all_periods: Aggregates of one granularity, sorted by key
            start: First day of the range (inclusive)
            end: Last day of the range (inclusive)
            include_prior_period: Look up the period before the range and
                report the first in-range period's deltas against it

        Returns:
            AnalysisData with stats over every data point in range, extremes
            across the non-empty periods, and the last period's cumulatives.
        """
        periods = AnalysisEngine.filter_periods_by_range(all_periods, start, end)
        data_points = flatten_numbers(periods)

        stats = (
            StatsEngine.compute_number_stats(data_points) if data_points else None
        )
        extremes = StatsEngine.calculate_extremes(
            [
                period[const.DATA_AGG_STATS]
                for period in periods
                if period[const.DATA_AGG_STATS][const.STAT_COUNT] > 0
            ]
        )
        cumulatives = periods[-1][const.DATA_AGG_CUMULATIVES] if periods else None

        prior_period: PeriodAggregate | None = None
        deltas = None
        if include_prior_period and periods:
            first_key = periods[0][const.DATA_AGG_DATE_KEY]
            first_index = next(
                (
                    index
                    for index, period in enumerate(all_periods)
                    if period[const.DATA_AGG_DATE_KEY] == first_key
                ),
                -1,
            )
            if first_index > 0:
                prior_period = all_periods[first_index - 1]
                deltas = periods[0][const.DATA_AGG_DELTAS]

        return {
            "periods": periods,
            "prior_period": prior_period,
            "data_points": data_points,
            "stats": stats,
            "deltas": deltas,
            "extremes": extremes,
            "cumulatives": cumulatives,
            "period_count": len(periods),
        }

    # ────────────────────────────────────────────────────────────────
    # Time Ranges
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def get_time_range(
        preset: str,
        today: date | None = None,
        custom_range: tuple[date, date] | None = None,
    ) -> tuple[date, date]:
        """Return the inclusive (start, end) dates a time-frame preset covers.

        Most presets end today. "last-week", "last-month" and "last-year"
        cover the whole previous week, month or year. Weeks start on Monday
        to line up with ISO week keys. "custom" returns `custom_range` when
        given, otherwise just today.

        Raises:
            ValueError: `preset` is not one of const.TIME_FRAME_PRESETS.
        """
        if preset not in const.TIME_FRAME_PRESETS:
            raise ValueError(f"Unknown time-frame preset: {preset!r}")
        if today is None:
            today = date.today()
        if preset == const.TIME_FRAME_CUSTOM and custom_range is not None:
            return custom_range

        week_start = relativedelta(weekday=MO(-1))
        if preset == const.TIME_FRAME_LAST_WEEK:
            start = today + relativedelta(weeks=-1) + week_start
            return start, start + relativedelta(days=6)
        if preset == const.TIME_FRAME_LAST_MONTH:
            start = today + relativedelta(months=-1, day=1)
            return start, start + relativedelta(months=1, days=-1)
        if preset == const.TIME_FRAME_LAST_YEAR:
            start = today + relativedelta(days=-365) + relativedelta(month=1, day=1)
            return start, start + relativedelta(month=12, day=31)
        if preset == const.TIME_FRAME_ALL_TIME:
            return const.TIME_FRAME_EPOCH, today

        starts = {
            const.TIME_FRAME_LAST_7_DAYS: relativedelta(days=-7),
            const.TIME_FRAME_LAST_30_DAYS: relativedelta(days=-30),
            const.TIME_FRAME_THIS_WEEK: week_start,
            const.TIME_FRAME_LAST_4_WEEKS: relativedelta(weeks=-4, weekday=MO(-1)),
            const.TIME_FRAME_THIS_MONTH: relativedelta(day=1),
            const.TIME_FRAME_LAST_6_MONTHS: relativedelta(months=-6, day=1),
            const.TIME_FRAME_LAST_12_MONTHS: relativedelta(months=-12, day=1),
            const.TIME_FRAME_THIS_YEAR: relativedelta(month=1, day=1),
        }
        return today + starts.get(preset, relativedelta()), today

    @staticmethod
    def get_available_presets(aggregation: str) -> list[TimeFrameConfig]:
        """Return the presets suited to one granularity, in display order."""
        return [
            {**config, "preset": preset}  # type: ignore[typeddict-item]
            for preset, config in const.TIME_FRAME_PRESETS.items()
            if aggregation in config["aggregations"]
        ]
