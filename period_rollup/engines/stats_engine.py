"""Stats Engine - Pure logic for number statistics and derived period stats.

This engine provides stateless functions for:
- NumberStats over a finite sequence (count, total, mean, median, min, max,
  first, last, range, change, change_percent)
- Deltas and percent changes against the preceding sibling period
- Cumulative stats threaded as a left fold across a chain of periods
- Extremes (highest/lowest per field) across a container's children

ARCHITECTURE: This is a pure logic engine. All methods are static and
operate on passed-in data. The incremental rollup lives in RollupEngine.

Empty convention: an empty sequence yields `empty_stats()`, every field 0.
`count == 0` is the only marker of emptiness; no field is ever None or NaN.
"""

from __future__ import annotations

from bisect import bisect_left, insort
from collections.abc import Iterable, Iterator, Sequence
import math
from typing import TYPE_CHECKING

from .. import const
from ..utils.math_utils import mean_of, median_of_sorted, percent_change, saturate

if TYPE_CHECKING:
    from ..type_defs import (
        NumberStats,
        PeriodDerivedStats,
        StatsExtremes,
        StatsPercents,
    )


def empty_stats() -> NumberStats:
    """Return a fresh NumberStats for an empty sequence."""
    return {
        const.STAT_COUNT: 0,
        const.STAT_TOTAL: 0,
        const.STAT_MEAN: 0,
        const.STAT_MEDIAN: 0,
        const.STAT_MIN: 0,
        const.STAT_MAX: 0,
        const.STAT_FIRST: 0,
        const.STAT_LAST: 0,
        const.STAT_RANGE: 0,
        const.STAT_CHANGE: 0,
        const.STAT_CHANGE_PERCENT: 0,
    }  # type: ignore[return-value]


def _change_percent(change: float, first: float) -> float:
    """Return change relative to |first| as a fraction, 0 when first is 0."""
    if first == 0:
        return 0
    return saturate(change / abs(first))


class RunningHistory:
    """Sorted multiset of every number in a history prefix.

    Cumulative medians are not mergeable from prior cumulative stats, so the
    rollup keeps one of these per granularity and adds each period's numbers
    before deriving that period's cumulatives. Removing numbers lets a cached
    history be rewound to a recompute boundary without rescanning the prefix.
    """

    __slots__ = ("_sorted",)

    def __init__(
        self, numbers: Iterable[float] | None = None, presorted: bool = False
    ) -> None:
        """Initialize from an optional iterable of numbers.

        Args:
            numbers: Initial contents
            presorted: Skip sorting when numbers is already ascending
        """
        if numbers is None:
            self._sorted: list[float] = []
        elif presorted:
            self._sorted = list(numbers)
        else:
            self._sorted = sorted(numbers)

    def __len__(self) -> int:
        return len(self._sorted)

    def __iter__(self) -> Iterator[float]:
        return iter(self._sorted)

    def add_all(self, numbers: Iterable[float]) -> None:
        """Insert every number, keeping ascending order."""
        for number in numbers:
            insort(self._sorted, number)

    def remove_all(self, numbers: Iterable[float]) -> None:
        """Remove one occurrence of every number.

        Raises:
            ValueError: a number is not present in the history.
        """
        for number in numbers:
            index = bisect_left(self._sorted, number)
            if index >= len(self._sorted) or self._sorted[index] != number:
                raise ValueError(f"{number!r} is not in the running history")
            del self._sorted[index]

    def median(self) -> float:
        """Median of the current contents (0 when empty)."""
        return median_of_sorted(self._sorted)

    def snapshot(self) -> list[float]:
        """Return a sorted copy of the contents."""
        return list(self._sorted)


class StatsEngine:
    """Pure logic engine for number statistics.

    All methods are static - no instance state.
    """

    # ────────────────────────────────────────────────────────────────
    # Statistics Primitive
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def compute_number_stats(numbers: Sequence[float]) -> NumberStats:
        """Compute NumberStats for a sequence of numbers.

        Median uses the even/odd split. The input is not mutated.

        Args:
            numbers: Finite numbers, in chronological order

        Returns:
            NumberStats, or empty_stats() for an empty sequence

        Example:
            >>> StatsEngine.compute_number_stats([3, -2])["median"]
            0.5
        """
        count = len(numbers)
        if count == 0:
            return empty_stats()

        total = sum(numbers)
        mean = mean_of(total, count, numbers)
        if not math.isfinite(total):
            const.LOGGER.warning(
                "StatsEngine: Total of %d number(s) overflowed, saturating", count
            )
            total = saturate(total)
        ordered = sorted(numbers)
        first = numbers[0]
        last = numbers[-1]
        change = saturate(last - first)
        return {
            const.STAT_COUNT: count,
            const.STAT_TOTAL: total,
            const.STAT_MEAN: mean,
            const.STAT_MEDIAN: median_of_sorted(ordered),
            const.STAT_MIN: ordered[0],
            const.STAT_MAX: ordered[-1],
            const.STAT_FIRST: first,
            const.STAT_LAST: last,
            const.STAT_RANGE: saturate(ordered[-1] - ordered[0]),
            const.STAT_CHANGE: change,
            const.STAT_CHANGE_PERCENT: _change_percent(change, first),
        }  # type: ignore[return-value]

    @staticmethod
    def compute_metric_stats(
        stats_list: Sequence[NumberStats], metric: str
    ) -> NumberStats | None:
        """Compute NumberStats over one metric picked from several NumberStats.

        Example: the stats of the daily totals within a month.

        Returns:
            NumberStats, or None when stats_list is empty.
        """
        if not stats_list:
            return None
        values = [
            stats[metric]  # type: ignore[literal-required]
            for stats in stats_list
            if isinstance(stats.get(metric), (int, float))
        ]
        return StatsEngine.compute_number_stats(values)

    # ────────────────────────────────────────────────────────────────
    # Deltas & Percents
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def seed_baseline(current: NumberStats) -> NumberStats:
        """Return the baseline used when a period has no preceding sibling.

        The baseline is the stats of the period's own first value, so the
        first period's deltas describe movement within the period instead of
        repeating its stats. An empty period is its own baseline.

        Example:
            >>> StatsEngine.seed_baseline(
            ...     StatsEngine.compute_number_stats([10, 20, 30])
            ... )["total"]
            10
        """
        if current[const.STAT_COUNT] == 0:
            return current
        return StatsEngine.compute_number_stats([current[const.STAT_FIRST]])

    @staticmethod
    def compute_stats_deltas(
        current: NumberStats, prior: NumberStats | None
    ) -> NumberStats:
        """Return current minus prior, field by field.

        A missing prior is replaced by seed_baseline(current).
        """
        baseline = prior if prior is not None else StatsEngine.seed_baseline(current)
        return {
            field: saturate(
                current[field] - baseline[field]  # type: ignore[literal-required]
            )
            for field in const.STAT_FIELDS
        }  # type: ignore[return-value]

    @staticmethod
    def compute_stats_percents(
        current: NumberStats, prior: NumberStats | None
    ) -> StatsPercents:
        """Return the fractional change against prior, field by field.

        Fields whose baseline value is 0 are left out rather than reported
        as 0. A missing prior is replaced by seed_baseline(current).
        """
        baseline = prior if prior is not None else StatsEngine.seed_baseline(current)
        percents: StatsPercents = {}
        for field in const.STAT_FIELDS:
            value = percent_change(
                current[field],  # type: ignore[literal-required]
                baseline[field],  # type: ignore[literal-required]
            )
            if value is not None:
                percents[field] = value
        return percents

    # ────────────────────────────────────────────────────────────────
    # Cumulatives
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def compute_cumulatives(
        stats: NumberStats,
        prior_cumulatives: NumberStats | None,
        history: RunningHistory,
    ) -> NumberStats:
        """Fold a period's stats into the prior cumulative stats.

        count/total add; min/max/first/last ignore empty sides; mean is
        total/count; median is read from `history`, which must already
        include this period's numbers.

        Args:
            stats: This period's stats
            prior_cumulatives: Cumulatives of the preceding sibling, or None
            history: Sorted history prefix ending at this period (inclusive)

        Returns:
            Cumulative NumberStats for this period
        """
        if prior_cumulatives is None or prior_cumulatives[const.STAT_COUNT] == 0:
            base = empty_stats()
        else:
            base = prior_cumulatives

        count = base[const.STAT_COUNT] + stats[const.STAT_COUNT]
        total = saturate(base[const.STAT_TOTAL] + stats[const.STAT_TOTAL])
        if count == 0:
            return empty_stats()

        if base[const.STAT_COUNT] == 0:
            low = stats[const.STAT_MIN]
            high = stats[const.STAT_MAX]
            first = stats[const.STAT_FIRST]
        elif stats[const.STAT_COUNT] == 0:
            low = base[const.STAT_MIN]
            high = base[const.STAT_MAX]
            first = base[const.STAT_FIRST]
        else:
            low = min(base[const.STAT_MIN], stats[const.STAT_MIN])
            high = max(base[const.STAT_MAX], stats[const.STAT_MAX])
            first = base[const.STAT_FIRST]

        if stats[const.STAT_COUNT] == 0:
            last = base[const.STAT_LAST]
        else:
            last = stats[const.STAT_LAST]

        change = saturate(last - first)
        return {
            const.STAT_COUNT: count,
            const.STAT_TOTAL: total,
            const.STAT_MEAN: mean_of(total, count, history),
            const.STAT_MEDIAN: history.median(),
            const.STAT_MIN: low,
            const.STAT_MAX: high,
            const.STAT_FIRST: first,
            const.STAT_LAST: last,
            const.STAT_RANGE: saturate(high - low),
            const.STAT_CHANGE: change,
            const.STAT_CHANGE_PERCENT: _change_percent(change, first),
        }  # type: ignore[return-value]

    # ────────────────────────────────────────────────────────────────
    # Derived-Period Computer
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def compute_period_derived_stats(
        numbers: Sequence[float],
        prior_stats: NumberStats | None,
        prior_cumulatives: NumberStats | None,
        history: RunningHistory | None = None,
    ) -> PeriodDerivedStats:
        """Compute every derived stat block for one period.

        Args:
            numbers: This period's numbers
            prior_stats: Stats of the preceding sibling, or None
            prior_cumulatives: Cumulatives of the preceding sibling, or None
            history: Sorted history prefix including `numbers`. Optional only
                when there are no prior cumulatives.

        Returns:
            PeriodDerivedStats dict

        Raises:
            ValueError: prior_cumulatives given without a history.
        """
        if history is None:
            if prior_cumulatives is not None:
                raise ValueError(
                    "Cumulative median needs the history prefix when prior "
                    "cumulatives are given"
                )
            history = RunningHistory(numbers)

        stats = StatsEngine.compute_number_stats(numbers)
        cumulatives = StatsEngine.compute_cumulatives(
            stats, prior_cumulatives, history
        )
        if prior_cumulatives is None:
            # Start of the chain: nothing accumulated yet to move from
            cumulative_deltas = empty_stats()
            cumulative_percents: StatsPercents = {}
        else:
            cumulative_deltas = StatsEngine.compute_stats_deltas(
                cumulatives, prior_cumulatives
            )
            cumulative_percents = StatsEngine.compute_stats_percents(
                cumulatives, prior_cumulatives
            )
        return {
            "stats": stats,
            "deltas": StatsEngine.compute_stats_deltas(stats, prior_stats),
            "percents": StatsEngine.compute_stats_percents(stats, prior_stats),
            "cumulatives": cumulatives,
            "cumulative_deltas": cumulative_deltas,
            "cumulative_percents": cumulative_percents,
        }

    # ────────────────────────────────────────────────────────────────
    # Extremes
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def calculate_extremes(
        stats_list: Sequence[NumberStats],
        min_children: int = const.DEFAULT_EXTREMES_MIN_CHILDREN,
    ) -> StatsExtremes | None:
        """Calculate highest/lowest of every field across children stats.

        Args:
            stats_list: Direct children's stats
            min_children: Smallest number of children that yields extremes

        Returns:
            StatsExtremes, or None for an empty list or too few children
        """
        if not stats_list or len(stats_list) < min_children:
            return None

        extremes: dict[str, float] = {}
        for field in const.STAT_FIELDS:
            values = [stats[field] for stats in stats_list]  # type: ignore[literal-required]
            extremes[f"{const.EXTREME_HIGHEST_PREFIX}{field}"] = max(values)
            extremes[f"{const.EXTREME_LOWEST_PREFIX}{field}"] = min(values)
        return extremes  # type: ignore[return-value]

    @staticmethod
    def are_extremes_equal(
        left: StatsExtremes | None, right: StatsExtremes | None
    ) -> bool:
        """Return True when both extremes are absent or match field by field."""
        if left is None and right is None:
            return True
        if left is None or right is None:
            return False
        if left.keys() != right.keys():
            return False
        return all(left[key] == right[key] for key in left)  # type: ignore[literal-required]
