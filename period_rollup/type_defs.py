"""Type definitions for period_rollup data structures.

All records flowing through the engines are plain dicts. TypedDict is used for
every structure whose keys are fixed at design time; `percents` maps are
partial by nature and stay `dict[str, float]`.

NOTE: TypedDict is STATIC ANALYSIS ONLY. Runtime validation of caller input
(malformed keys, non-finite numbers) happens in the engines.

IMPORTANT: This file must NOT import from engines, helpers or managers.
"""

from typing import Literal, NotRequired, TypedDict

# =============================================================================
# Type Aliases (for readability)
# =============================================================================

DayKey = str  # "2024-01-31"
WeekKey = str  # "2024-W05" (ISO week-numbering year)
MonthKey = str  # "2024-01"
YearKey = str  # "2024"
DateKey = DayKey | WeekKey | MonthKey | YearKey

Period = Literal["day", "week", "month", "year", "anytime"]

# Partial map of stat field -> percent change (fraction, not x100)
StatsPercents = dict[str, float]


# =============================================================================
# Input
# =============================================================================


class DayRecord(TypedDict):
    """One day of the quantitative log, owned by the caller's log store.

    The engine compares records by identity to detect changes, so the store
    must hand back the same object for an unchanged day.
    """

    date_key: DayKey
    numbers: NotRequired[list[float] | None]


# =============================================================================
# Statistics
# =============================================================================


class NumberStats(TypedDict):
    """Summary of a finite numeric sequence.

    Empty sequences use `empty_stats()`: every field is 0 and `count == 0`
    marks emptiness.
    """

    count: int
    total: float
    mean: float
    median: float
    min: float
    max: float
    first: float
    last: float
    range: float
    change: float
    change_percent: float


class StatsExtremes(TypedDict):
    """Highest/lowest value of each stat field among a container's children."""

    highest_count: float
    lowest_count: float
    highest_total: float
    lowest_total: float
    highest_mean: float
    lowest_mean: float
    highest_median: float
    lowest_median: float
    highest_min: float
    lowest_min: float
    highest_max: float
    lowest_max: float
    highest_first: float
    lowest_first: float
    highest_last: float
    lowest_last: float
    highest_range: float
    lowest_range: float
    highest_change: float
    lowest_change: float
    highest_change_percent: float
    lowest_change_percent: float


class PeriodDerivedStats(TypedDict):
    """Output of the derived-period computer for a single period."""

    stats: NumberStats
    deltas: NumberStats
    percents: StatsPercents
    cumulatives: NumberStats
    cumulative_deltas: NumberStats
    cumulative_percents: StatsPercents


# =============================================================================
# Aggregates
# =============================================================================


class PeriodAggregate(TypedDict):
    """Aggregate for one period at one granularity.

    `date_key` is None only for the all-time singleton. `extremes` is set on
    container periods (week/month/year/anytime) that have children.
    """

    date_key: DateKey | None
    period: Period
    numbers: list[float]
    stats: NumberStats
    deltas: NumberStats
    percents: StatsPercents
    cumulatives: NumberStats
    cumulative_deltas: NumberStats
    cumulative_percents: StatsPercents
    extremes: StatsExtremes | None


class AllPeriodsAggregate(TypedDict):
    """Full aggregate set returned by the rollup engine.

    Each `*_keys` list is index-aligned with its aggregate list.
    """

    day_keys: list[DayKey]
    week_keys: list[WeekKey]
    month_keys: list[MonthKey]
    year_keys: list[YearKey]
    days: list[PeriodAggregate]
    weeks: list[PeriodAggregate]
    months: list[PeriodAggregate]
    years: list[PeriodAggregate]
    alltime: PeriodAggregate


class RollupOptions(TypedDict, total=False):
    """Validated engine options (see options.ROLLUP_OPTIONS_SCHEMA)."""

    non_finite_policy: str
    extremes_min_children: int


class RollupCache(TypedDict):
    """Snapshot of the previous run, threaded by the caller into the next run."""

    records: list[DayRecord]
    days: list[PeriodAggregate]
    weeks: list[PeriodAggregate]
    months: list[PeriodAggregate]
    years: list[PeriodAggregate]
    alltime: PeriodAggregate | None
    history: list[float]  # every number of the previous log, sorted
    options: RollupOptions | None  # options the snapshot was computed with


class AnalysisData(TypedDict):
    """Range summary over already-computed aggregates."""

    periods: list[PeriodAggregate]
    prior_period: PeriodAggregate | None
    data_points: list[float]
    stats: NumberStats | None
    deltas: NumberStats | None
    extremes: StatsExtremes | None
    cumulatives: NumberStats | None
    period_count: int


class TimeFrameConfig(TypedDict):
    """Display label and the granularities a time-frame preset suits."""

    label: str
    aggregations: tuple[str, ...]
    preset: NotRequired[str]  # set by get_available_presets
