"""Rollup Engine - Incremental day → week → month → year → all-time aggregation.

Turns a day-record log into PeriodAggregate lists for every granularity and
keeps them cheap to refresh as the log changes:

- Day records are compared by identity against the cached sorted log to find
  the earliest changed index. Day aggregates before it are reused by
  reference; from it onward each day is rebuilt chained on its predecessor.
- Each coarser level converts the earliest changed day key to its own
  granularity. Cached aggregates with smaller keys are reused by reference;
  the rest are rebuilt from their regrouped children.
- The running history (sorted multiset of every number) is rewound by
  removing the numbers of stale cached aggregates, so cumulative medians stay
  exact without rescanning the reused prefix.
- Extremes of a rebuilt container reuse the previous extremes object when all
  fields are equal.

ARCHITECTURE: This is a pure logic engine. The cache is an explicit value:
`recompute()` takes the previous RollupCache and returns a new one, which the
caller threads into the next call. RollupManager does this for a session.

Returned lists are shared with the returned cache and must be treated as
read-only by callers.
"""

from __future__ import annotations

from bisect import bisect_left
from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from .. import const
from ..options import validate_options
from ..utils.dt_utils import InvalidDateKeyError, convert_date_key, is_day_key
from ..utils.math_utils import sanitize_numbers
from .stats_engine import RunningHistory, StatsEngine

if TYPE_CHECKING:
    from ..type_defs import (
        AllPeriodsAggregate,
        DayRecord,
        PeriodAggregate,
        RollupCache,
        StatsExtremes,
    )


def empty_cache() -> RollupCache:
    """Return the initial cache (no previous snapshot)."""
    return {
        const.CACHE_RECORDS: [],
        const.CACHE_DAYS: [],
        const.CACHE_WEEKS: [],
        const.CACHE_MONTHS: [],
        const.CACHE_YEARS: [],
        const.CACHE_ALLTIME: None,
        const.CACHE_HISTORY: [],
        const.CACHE_OPTIONS: None,
    }  # type: ignore[return-value]


def flatten_numbers(items: Iterable[PeriodAggregate]) -> list[float]:
    """Concatenate the numbers of several aggregates, in order."""
    numbers: list[float] = []
    for item in items:
        numbers.extend(item[const.DATA_AGG_NUMBERS])
    return numbers


def _safe_convert(key: str | None, period: str) -> str | None:
    """Convert a key to `period`, logging and returning None when malformed."""
    try:
        return convert_date_key(key, period)  # type: ignore[arg-type]
    except (InvalidDateKeyError, TypeError):
        const.LOGGER.warning(
            "RollupEngine: Skipping %r, cannot convert to a %s key", key, period
        )
        return None


class RollupEngine:
    """Pure logic engine for the incremental period rollup.

    All methods are static - no instance state.

    Example:
        result, cache = RollupEngine.recompute(records)
        # ... log store changes ...
        result, cache = RollupEngine.recompute(new_records, cache)
    """

    # ────────────────────────────────────────────────────────────────
    # Change Detection
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def prepare_records(records: Iterable[Mapping[str, Any]]) -> list[DayRecord]:
        """Drop records with malformed day keys and sort the rest by key.

        The sort is stable, and record objects are kept as-is so identity
        comparison against the cached log keeps working.
        """
        accepted: list[DayRecord] = []
        for record in records:
            key = (
                record.get(const.DATA_DAY_DATE_KEY)
                if isinstance(record, Mapping)
                else None
            )
            if not is_day_key(key):
                const.LOGGER.warning(
                    "RollupEngine: Skipping day record with malformed date key %r",
                    key,
                )
                continue
            accepted.append(record)  # type: ignore[arg-type]

        accepted.sort(key=lambda record: record[const.DATA_DAY_DATE_KEY])
        return accepted

    @staticmethod
    def find_first_changed_index(
        prev: Sequence[DayRecord], new: Sequence[DayRecord]
    ) -> int:
        """Return the first index whose record object differs, or -1.

        A pure append or truncation yields min(len(prev), len(new)).
        """
        min_len = min(len(prev), len(new))
        for index in range(min_len):
            if prev[index] is not new[index]:
                return index
        return -1 if len(prev) == len(new) else min_len

    @staticmethod
    def find_first_key_index(keys: Sequence[str], start_key: str | None) -> int:
        """Return the index of the first key >= start_key in a sorted key list.

        None (nothing affected) or a key past the end yields len(keys).
        """
        if start_key is None:
            return len(keys)
        return bisect_left(keys, start_key)

    @staticmethod
    def earliest_changed_key(
        prev: Sequence[DayRecord], new: Sequence[DayRecord], index: int
    ) -> str | None:
        """Return the smallest day key at `index` in either log.

        Taking the smaller of the two covers removals, whose containers must
        be rebuilt even though the removed day is absent from the new log.
        """
        candidates = [
            records[index][const.DATA_DAY_DATE_KEY]
            for records in (prev, new)
            if 0 <= index < len(records)
        ]
        return min(candidates) if candidates else None

    # ────────────────────────────────────────────────────────────────
    # Grouping & Aggregate Construction
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def group_by_key(
        children: Iterable[PeriodAggregate], period: str
    ) -> dict[str, list[PeriodAggregate]]:
        """Bucket child aggregates by their key at `period` granularity.

        Bucket order and order within buckets follow the children's order.
        Children whose key cannot be converted are skipped.
        """
        buckets: dict[str, list[PeriodAggregate]] = {}
        for child in children:
            key = _safe_convert(child[const.DATA_AGG_DATE_KEY], period)
            if key is None:
                continue
            buckets.setdefault(key, []).append(child)
        return buckets

    @staticmethod
    def build_aggregate(
        date_key: str | None,
        period: str,
        numbers: list[float],
        prior: PeriodAggregate | None,
        history: RunningHistory | None,
        extremes: StatsExtremes | None = None,
    ) -> PeriodAggregate:
        """Build one PeriodAggregate chained on the preceding sibling."""
        derived = StatsEngine.compute_period_derived_stats(
            numbers,
            prior[const.DATA_AGG_STATS] if prior else None,
            prior[const.DATA_AGG_CUMULATIVES] if prior else None,
            history,
        )
        return {
            const.DATA_AGG_DATE_KEY: date_key,
            const.DATA_AGG_PERIOD: period,
            const.DATA_AGG_NUMBERS: numbers,
            **derived,
            const.DATA_AGG_EXTREMES: extremes,
        }  # type: ignore[return-value]

    @staticmethod
    def resolve_extremes(
        children: Sequence[PeriodAggregate],
        previous: PeriodAggregate | None,
        min_children: int = const.DEFAULT_EXTREMES_MIN_CHILDREN,
    ) -> StatsExtremes | None:
        """Compute extremes of children, reusing the previous object if equal."""
        extremes = StatsEngine.calculate_extremes(
            [child[const.DATA_AGG_STATS] for child in children], min_children
        )
        if previous is not None:
            previous_extremes = previous.get(const.DATA_AGG_EXTREMES)
            if StatsEngine.are_extremes_equal(previous_extremes, extremes):
                return previous_extremes
        return extremes

    @staticmethod
    def _rewind_history(
        base_history: list[float],
        stale: Sequence[PeriodAggregate],
        kept: Sequence[PeriodAggregate],
    ) -> RunningHistory:
        """Return the history prefix covering only the kept aggregates."""
        history = RunningHistory(base_history, presorted=True)
        try:
            for item in stale:
                history.remove_all(item[const.DATA_AGG_NUMBERS])
        except ValueError:
            const.LOGGER.warning(
                "RollupEngine: Cached history does not match cached aggregates, "
                "rebuilding history from %d kept period(s)",
                len(kept),
            )
            history = RunningHistory(flatten_numbers(kept))
        return history

    # ────────────────────────────────────────────────────────────────
    # Level Builders
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def build_days(
        records: Sequence[DayRecord],
        prev_days: Sequence[PeriodAggregate],
        changed_index: int,
        base_history: list[float],
        non_finite_policy: str = const.DEFAULT_NON_FINITE_POLICY,
    ) -> tuple[list[PeriodAggregate], RunningHistory]:
        """Rebuild day aggregates from `changed_index`, reusing the prefix.

        Returns:
            (day aggregates, running history over every day's numbers)
        """
        days = list(prev_days[:changed_index])
        history = RollupEngine._rewind_history(
            base_history, prev_days[changed_index:], days
        )
        for record in records[changed_index:]:
            numbers = sanitize_numbers(
                record.get(const.DATA_DAY_NUMBERS), non_finite_policy
            )
            history.add_all(numbers)
            days.append(
                RollupEngine.build_aggregate(
                    record[const.DATA_DAY_DATE_KEY],
                    const.PERIOD_DAY,
                    numbers,
                    days[-1] if days else None,
                    history,
                )
            )
        return days, history

    @staticmethod
    def build_level(
        period: str,
        children: Sequence[PeriodAggregate],
        prev_level: Sequence[PeriodAggregate],
        earliest_day_key: str | None,
        base_history: list[float],
        min_children: int = const.DEFAULT_EXTREMES_MIN_CHILDREN,
    ) -> list[PeriodAggregate]:
        """Rebuild one container level (week, month or year) from its boundary.

        Args:
            period: Granularity of this level
            children: Finer aggregates, sorted (days for week/month, months for year)
            prev_level: Cached aggregates of this level, sorted by key
            earliest_day_key: Earliest changed day key, or None if unchanged
            base_history: Sorted numbers of the cached (previous) log
            min_children: Smallest child count that yields extremes

        Returns:
            Aggregates of this level, sorted by key
        """
        if earliest_day_key is None:
            return list(prev_level)

        affected_key = _safe_convert(earliest_day_key, period)
        if affected_key is None:
            return list(prev_level)
        prev_keys = [item[const.DATA_AGG_DATE_KEY] for item in prev_level]
        boundary = RollupEngine.find_first_key_index(prev_keys, affected_key)
        level = list(prev_level[:boundary])
        stale = prev_level[boundary:]

        # Children are sorted, so converted keys are non-decreasing
        child_start = len(children)
        while child_start > 0:
            key = _safe_convert(
                children[child_start - 1][const.DATA_AGG_DATE_KEY], period
            )
            if key is not None and key < affected_key:
                break
            child_start -= 1

        # The reused prefix must end at the last unaffected child's key;
        # otherwise a cached key is missing and the level is rebuilt
        last_kept_key = (
            _safe_convert(children[child_start - 1][const.DATA_AGG_DATE_KEY], period)
            if child_start
            else None
        )
        cached_last_key = level[-1][const.DATA_AGG_DATE_KEY] if level else None
        if last_kept_key != cached_last_key:
            const.LOGGER.warning(
                "RollupEngine: Cached %s periods end at %s but children end at %s, "
                "rebuilding the level",
                period,
                cached_last_key,
                last_kept_key,
            )
            level = []
            stale = prev_level
            child_start = 0
            history = RunningHistory()
        else:
            const.LOGGER.debug(
                "RollupEngine: %s level reuses %d cached period(s) before %s",
                period,
                boundary,
                affected_key,
            )
            history = RollupEngine._rewind_history(base_history, stale, level)

        prev_by_key = {item[const.DATA_AGG_DATE_KEY]: item for item in stale}
        buckets = RollupEngine.group_by_key(children[child_start:], period)
        for key, bucket in buckets.items():
            numbers = flatten_numbers(bucket)
            history.add_all(numbers)
            level.append(
                RollupEngine.build_aggregate(
                    key,
                    period,
                    numbers,
                    level[-1] if level else None,
                    history,
                    RollupEngine.resolve_extremes(
                        bucket, prev_by_key.get(key), min_children
                    ),
                )
            )
        return level

    @staticmethod
    def build_alltime(
        years: Sequence[PeriodAggregate],
        history: list[float],
        previous: PeriodAggregate | None = None,
        min_children: int = const.DEFAULT_EXTREMES_MIN_CHILDREN,
    ) -> PeriodAggregate:
        """Build the all-time aggregate from the year aggregates.

        It has no siblings: cumulatives equal stats and deltas are measured
        against its own first value.
        """
        return RollupEngine.build_aggregate(
            None,
            const.PERIOD_ANYTIME,
            flatten_numbers(years),
            None,
            RunningHistory(history, presorted=True),
            RollupEngine.resolve_extremes(years, previous, min_children),
        )

    # ────────────────────────────────────────────────────────────────
    # Entry Point
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def recompute(
        records: Iterable[Mapping[str, Any]],
        cache: RollupCache | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> tuple[AllPeriodsAggregate, RollupCache]:
        """Recompute every granularity, reusing whatever the cache still covers.

        Args:
            records: Day records in any order
            cache: Cache returned by the previous call, or None
            options: Engine options (see options.ROLLUP_OPTIONS_SCHEMA)

        Returns:
            (aggregate set, new cache to pass to the next call)

        Raises:
            InvalidOptionsError: options fail validation.
        """
        opts = validate_options(options)
        prev = cache or empty_cache()
        sorted_records = RollupEngine.prepare_records(records)
        prev_records = prev[const.CACHE_RECORDS]
        prev_history = prev[const.CACHE_HISTORY]

        cached_options = prev.get(const.CACHE_OPTIONS)
        if cached_options is not None and cached_options != opts:
            const.LOGGER.debug("RollupEngine: Options changed, rebuilding everything")
            changed_index = 0 if (sorted_records or prev_records) else -1
        else:
            changed_index = RollupEngine.find_first_changed_index(
                prev_records, sorted_records
            )

        has_changes = changed_index != -1
        earliest_day_key: str | None = None
        if has_changes:
            earliest_day_key = RollupEngine.earliest_changed_key(
                prev_records, sorted_records, changed_index
            )
            const.LOGGER.debug(
                "RollupEngine: Day %d (%s) is the earliest change of %d record(s)",
                changed_index,
                earliest_day_key,
                len(sorted_records),
            )
            days, day_history = RollupEngine.build_days(
                sorted_records,
                prev[const.CACHE_DAYS],
                changed_index,
                prev_history,
                opts[const.CONF_NON_FINITE_POLICY],
            )
            history = day_history.snapshot()
        else:
            days = list(prev[const.CACHE_DAYS])
            history = prev_history

        min_children = opts[const.CONF_EXTREMES_MIN_CHILDREN]
        weeks = RollupEngine.build_level(
            const.PERIOD_WEEK,
            days,
            prev[const.CACHE_WEEKS],
            earliest_day_key,
            prev_history,
            min_children,
        )
        months = RollupEngine.build_level(
            const.PERIOD_MONTH,
            days,
            prev[const.CACHE_MONTHS],
            earliest_day_key,
            prev_history,
            min_children,
        )
        years = RollupEngine.build_level(
            const.PERIOD_YEAR,
            months,
            prev[const.CACHE_YEARS],
            earliest_day_key,
            prev_history,
            min_children,
        )

        prev_alltime = prev.get(const.CACHE_ALLTIME)
        if has_changes or prev_alltime is None:
            alltime = RollupEngine.build_alltime(
                years, history, prev_alltime, min_children
            )
        else:
            alltime = prev_alltime

        result: AllPeriodsAggregate = {
            "day_keys": [item[const.DATA_AGG_DATE_KEY] for item in days],
            "week_keys": [item[const.DATA_AGG_DATE_KEY] for item in weeks],
            "month_keys": [item[const.DATA_AGG_DATE_KEY] for item in months],
            "year_keys": [item[const.DATA_AGG_DATE_KEY] for item in years],
            "days": days,
            "weeks": weeks,
            "months": months,
            "years": years,
            "alltime": alltime,
        }  # type: ignore[typeddict-item]
        new_cache: RollupCache = {
            const.CACHE_RECORDS: sorted_records,
            const.CACHE_DAYS: days,
            const.CACHE_WEEKS: weeks,
            const.CACHE_MONTHS: months,
            const.CACHE_YEARS: years,
            const.CACHE_ALLTIME: alltime,
            const.CACHE_HISTORY: history,
            const.CACHE_OPTIONS: opts,
        }  # type: ignore[misc]
        return result, new_cache


def recompute(
    records: Iterable[Mapping[str, Any]],
    cache: RollupCache | None = None,
    options: Mapping[str, Any] | None = None,
) -> tuple[AllPeriodsAggregate, RollupCache]:
    """Module-level shortcut for RollupEngine.recompute()."""
    return RollupEngine.recompute(records, cache, options)
