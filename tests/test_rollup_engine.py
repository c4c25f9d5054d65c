"""Tests for RollupEngine (incremental day/week/month/year/all-time rollup).

Tests cover:
- Worked scenarios (first record, append, edit, trailing removal, empty log)
- Incremental equivalence with a fresh rebuild after every kind of mutation
- Referential stability of untouched aggregates and extremes
- Hierarchical consistency and cumulative counts
- Input handling (unsorted input, malformed keys, missing/non-finite numbers,
  values whose sums overflow)
- Options (validation, changed options force a rebuild)
"""

from __future__ import annotations

from datetime import date, timedelta
import logging
import math
import sys
from typing import Any

import pytest

from period_rollup import const
from period_rollup.engines.rollup_engine import RollupEngine, empty_cache, recompute
from period_rollup.engines.stats_engine import StatsEngine, empty_stats
from period_rollup.options import InvalidOptionsError
from period_rollup.utils.dt_utils import convert_date_key
from tests.helpers import all_aggregates, make_log, make_record


def assert_matches_fresh(
    result: dict[str, Any],
    records: list[dict[str, Any]],
    options: dict[str, Any] | None = None,
) -> None:
    """Assert an incremental result equals a rebuild from an empty cache."""
    fresh, _ = recompute(records, None, options)
    assert result == fresh


def consecutive_days(start: date, values: list[list[float]]) -> list[dict[str, Any]]:
    """Return one record per day from start with the given numbers."""
    return [
        make_record((start + timedelta(days=index)).isoformat(), numbers)
        for index, numbers in enumerate(values)
    ]


# ============================================================================
# Worked Scenarios
# ============================================================================


class TestScenarios:
    """End-to-end scenarios with hand-computed results."""

    def test_single_record(self) -> None:
        """One record yields one aggregate per level with cumulatives == stats.

        Its deltas start from its own first value, so a single number has
        moved nowhere yet.
        """
        result, _ = recompute([make_record("2024-01-01", [5])])

        assert result["day_keys"] == ["2024-01-01"]
        assert result["week_keys"] == ["2024-W01"]
        assert result["month_keys"] == ["2024-01"]
        assert result["year_keys"] == ["2024"]

        day = result["days"][0]
        assert day["stats"]["total"] == 5
        assert day["cumulatives"] == day["stats"]
        assert day["deltas"] == empty_stats()
        assert set(day["percents"].values()) == {0}
        assert "range" not in day["percents"]
        assert day["cumulative_deltas"] == empty_stats()
        assert day["cumulative_percents"] == {}
        assert day["extremes"] is None
        assert result["alltime"]["stats"]["total"] == 5
        assert result["alltime"]["date_key"] is None
        assert result["alltime"]["period"] == const.PERIOD_ANYTIME

    def test_append_same_week(self) -> None:
        """Appending a day reuses the earlier day and rebuilds its week."""
        first = make_record("2024-01-01", [5])
        result1, cache = recompute([first])
        result2, _ = recompute([first, make_record("2024-01-02", [3, -2])], cache)

        assert result2["days"][0] is result1["days"][0]

        day2 = result2["days"][1]
        assert day2["stats"]["total"] == 1
        assert day2["stats"]["count"] == 2
        assert day2["stats"]["mean"] == 0.5
        assert day2["stats"]["median"] == 0.5
        assert day2["cumulatives"]["total"] == 6
        assert day2["cumulatives"]["count"] == 3
        assert day2["deltas"]["total"] == -4

        assert result2["week_keys"] == ["2024-W01"]
        week = result2["weeks"][0]
        assert week["numbers"] == [5, 3, -2]
        assert week["stats"]["total"] == 6
        assert week["stats"]["median"] == 3
        assert week is not result1["weeks"][0]

    def test_edit_earlier_day(self) -> None:
        """Editing the first day re-chains every later day."""
        second = make_record("2024-01-02", [3, -2])
        _, cache = recompute([make_record("2024-01-01", [5]), second])

        result, _ = recompute([make_record("2024-01-01", [10]), second], cache)

        assert result["days"][0]["stats"]["total"] == 10
        assert result["days"][1]["deltas"]["total"] == -9
        assert result["days"][1]["cumulatives"]["total"] == 11
        assert result["weeks"][0]["stats"]["total"] == 11
        assert result["alltime"]["stats"]["total"] == 11

    def test_remove_last_day(self) -> None:
        """Removing the trailing day keeps the prefix and shrinks extremes."""
        records = consecutive_days(date(2024, 3, 1), [[i] for i in range(1, 11)])
        result1, cache = recompute(records)
        assert result1["months"][0]["extremes"]["highest_total"] == 10

        result2, _ = recompute(records[:-1], cache)

        assert len(result2["days"]) == 9
        for index in range(9):
            assert result2["days"][index] is result1["days"][index]
        assert result2["months"][0]["extremes"]["highest_total"] == 9
        assert result2["months"][0]["stats"]["total"] == 45
        assert result2["alltime"]["stats"]["count"] == 9

    def test_empty_log(self) -> None:
        """An empty log yields empty lists and an empty all-time aggregate."""
        result, cache = recompute([])

        for level in ("days", "weeks", "months", "years"):
            assert result[level] == []
        assert result["day_keys"] == []
        assert result["alltime"]["stats"] == empty_stats()
        assert result["alltime"]["cumulatives"] == empty_stats()
        assert result["alltime"]["date_key"] is None
        assert result["alltime"]["extremes"] is None
        assert cache["records"] == []

    def test_remove_everything(self) -> None:
        """Truncating to an empty log clears every level."""
        _, cache = recompute(make_log(date(2024, 1, 1), 12))

        result, _ = recompute([], cache)

        assert all_aggregates(result) == []
        assert result["alltime"]["stats"] == empty_stats()
        assert_matches_fresh(result, [])


# ============================================================================
# Incremental Equivalence
# ============================================================================


class TestIncrementalEquivalence:
    """Incremental results must equal a fresh rebuild."""

    def test_determinism(self, year_boundary_log: list[dict[str, Any]]) -> None:
        """Two fresh rebuilds of the same log are equal."""
        first, _ = recompute(year_boundary_log)
        second, _ = recompute(list(year_boundary_log))

        assert first == second

    def test_append(self, year_boundary_log: list[dict[str, Any]]) -> None:
        """Appending days one at a time matches a fresh rebuild."""
        cache = empty_cache()
        records: list[dict[str, Any]] = []
        for record in year_boundary_log:
            records.append(record)
            result, cache = recompute(records, cache)
        assert_matches_fresh(result, records)

    def test_middle_removal(self, year_boundary_log: list[dict[str, Any]]) -> None:
        """Removing a day in the middle matches a fresh rebuild."""
        _, cache = recompute(year_boundary_log)
        records = year_boundary_log[:30] + year_boundary_log[31:]

        result, _ = recompute(records, cache)

        assert year_boundary_log[30]["date_key"] not in result["day_keys"]
        assert_matches_fresh(result, records)

    def test_middle_insert(self, sparse_log: list[dict[str, Any]]) -> None:
        """Inserting a day between existing days matches a fresh rebuild."""
        _, cache = recompute(sparse_log)
        gap_day = date.fromisoformat(sparse_log[40]["date_key"]) + timedelta(days=1)
        records = [*sparse_log, make_record(gap_day.isoformat(), [100, -100, 7])]

        result, _ = recompute(records, cache)

        assert gap_day.isoformat() in result["day_keys"]
        assert_matches_fresh(result, records)

    def test_edit(self, sparse_log: list[dict[str, Any]]) -> None:
        """Replacing a record with new numbers matches a fresh rebuild."""
        _, cache = recompute(sparse_log)
        records = list(sparse_log)
        records[75] = make_record(records[75]["date_key"], [42.5])

        result, _ = recompute(records, cache)

        assert_matches_fresh(result, records)

    def test_edit_first_day(self, sparse_log: list[dict[str, Any]]) -> None:
        """Editing the very first day matches a fresh rebuild."""
        _, cache = recompute(sparse_log)
        records = list(sparse_log)
        records[0] = make_record(records[0]["date_key"], [])

        result, _ = recompute(records, cache)

        assert_matches_fresh(result, records)

    def test_mutation_sequence(self, year_boundary_log: list[dict[str, Any]]) -> None:
        """A chain of mixed mutations stays equal to fresh rebuilds."""
        records = list(year_boundary_log)
        _, cache = recompute(records)

        mutations = [
            lambda recs: recs[:-3],
            lambda recs: [*recs[:10], *recs[12:]],
            lambda recs: [*recs, make_record("2024-03-01", [1, 2, 3])],
            lambda recs: [make_record(recs[0]["date_key"], [9]), *recs[1:]],
            lambda recs: [
                *recs[:20],
                make_record(recs[20]["date_key"], None),
                *recs[21:],
            ],
            lambda recs: recs[5:],
        ]
        for mutate in mutations:
            records = mutate(records)
            result, cache = recompute(records, cache)
            assert_matches_fresh(result, records)

    def test_no_change_reuses_everything(
        self, year_boundary_log: list[dict[str, Any]]
    ) -> None:
        """Recomputing an unchanged log reuses every aggregate by reference."""
        result1, cache = recompute(year_boundary_log)

        result2, _ = recompute(list(year_boundary_log), cache)

        for before, after in zip(all_aggregates(result1), all_aggregates(result2)):
            assert after is before
        assert result2["alltime"] is result1["alltime"]

    def test_missing_cached_period_rebuilds_level(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A cache missing a period before the change rebuilds that level."""
        records = [
            make_record("2024-01-01", [1]),
            make_record("2024-01-08", [2]),
            make_record("2024-01-15", [3]),
        ]
        _, cache = recompute(records)
        cache = {**cache, "weeks": [cache["weeks"][0], cache["weeks"][2]]}
        records = [*records, make_record("2024-01-16", [4])]

        with caplog.at_level(logging.WARNING):
            result, _ = recompute(records, cache)

        assert result["week_keys"] == ["2024-W01", "2024-W02", "2024-W03"]
        assert "rebuilding the level" in caplog.text
        assert_matches_fresh(result, records)

    def test_inconsistent_history_is_rebuilt(
        self, sparse_log: list[dict[str, Any]], caplog: pytest.LogCaptureFixture
    ) -> None:
        """A cached history that lacks stale numbers is rebuilt from kept ones."""
        _, cache = recompute(sparse_log)
        cache = {**cache, "history": []}
        records = list(sparse_log)
        records[-1] = make_record(records[-1]["date_key"], [8, 1])

        with caplog.at_level(logging.WARNING):
            result, _ = recompute(records, cache)

        assert "does not match cached aggregates" in caplog.text
        assert_matches_fresh(result, records)


# ============================================================================
# Referential Stability
# ============================================================================


class TestReferentialStability:
    """Aggregates unaffected by a change keep their identity."""

    def test_append_keeps_earlier_containers(
        self, year_boundary_log: list[dict[str, Any]]
    ) -> None:
        """Only the last week/month/year are rebuilt on append."""
        result1, cache = recompute(year_boundary_log)
        last_day = date.fromisoformat(year_boundary_log[-1]["date_key"])
        records = [
            *year_boundary_log,
            make_record((last_day + timedelta(days=1)).isoformat(), [1]),
        ]

        result2, _ = recompute(records, cache)

        for level in ("weeks", "months", "years"):
            new_last_key = result2[level][-1]["date_key"]
            for before, after in zip(result1[level], result2[level]):
                if after["date_key"] < new_last_key:
                    assert after is before
        assert all(
            after is before
            for before, after in zip(result1["days"], result2["days"])
        )

    def test_equal_extremes_keep_identity(self) -> None:
        """Replacing a record with equal numbers keeps container extremes."""
        records = consecutive_days(date(2024, 1, 1), [[1], [2], [3]])
        result1, cache = recompute(records)
        replaced = [records[0], make_record("2024-01-02", [2]), records[2]]

        result2, _ = recompute(replaced, cache)

        assert result2["days"][0] is result1["days"][0]
        assert result2["days"][1] is not result1["days"][1]
        assert result2["days"][1] == result1["days"][1]
        assert result2["weeks"][0] is not result1["weeks"][0]
        assert result2["weeks"][0]["extremes"] is result1["weeks"][0]["extremes"]
        assert result2["months"][0]["extremes"] is result1["months"][0]["extremes"]
        assert result2["years"][0]["extremes"] is result1["years"][0]["extremes"]
        assert result2["alltime"]["extremes"] is result1["alltime"]["extremes"]

    def test_changed_extremes_get_new_object(self) -> None:
        """Extremes that differ are replaced."""
        records = consecutive_days(date(2024, 1, 1), [[1], [2]])
        result1, cache = recompute(records)

        result2, _ = recompute([records[0], make_record("2024-01-02", [20])], cache)

        assert result2["weeks"][0]["extremes"] is not result1["weeks"][0]["extremes"]
        assert result2["weeks"][0]["extremes"]["highest_total"] == 20


# ============================================================================
# Structural Properties
# ============================================================================


class TestHierarchy:
    """Containers agree with their children."""

    def test_container_numbers_match_children(
        self, year_boundary_log: list[dict[str, Any]]
    ) -> None:
        """Week/month numbers are their days' numbers; years are their months'."""
        result, _ = recompute(year_boundary_log)

        for period in (const.PERIOD_WEEK, const.PERIOD_MONTH):
            level = result[f"{period}s"]
            for container in level:
                children = [
                    day
                    for day in result["days"]
                    if convert_date_key(day["date_key"], period)
                    == container["date_key"]
                ]
                expected = [n for day in children for n in day["numbers"]]
                assert container["numbers"] == expected

        for year in result["years"]:
            months = [
                m for m in result["months"] if m["date_key"][:4] == year["date_key"]
            ]
            assert year["numbers"] == [n for m in months for n in m["numbers"]]

    def test_cumulative_counts(self, sparse_log: list[dict[str, Any]]) -> None:
        """The last cumulative count of every level is the total count."""
        result, _ = recompute(sparse_log)
        total = sum(len(record["numbers"]) for record in sparse_log)

        assert result["alltime"]["stats"]["count"] == total
        for level in ("days", "weeks", "months", "years"):
            assert result[level][-1]["cumulatives"]["count"] == total

    def test_cumulative_count_grows_by_stats_count(
        self, sparse_log: list[dict[str, Any]]
    ) -> None:
        """Each cumulative count is the previous one plus this period's count."""
        result, _ = recompute(sparse_log)

        for level in ("days", "weeks", "months", "years"):
            aggregates = result[level]
            for prior, current in zip(aggregates, aggregates[1:]):
                assert (
                    current["cumulatives"]["count"]
                    == prior["cumulatives"]["count"] + current["stats"]["count"]
                )

    def test_cumulative_median_matches_prefix(
        self, sparse_log: list[dict[str, Any]]
    ) -> None:
        """Each month's cumulative median is the median of all numbers so far."""
        result, _ = recompute(sparse_log)

        seen: list[float] = []
        for month in result["months"]:
            seen.extend(month["numbers"])
            assert (
                month["cumulatives"]["median"]
                == StatsEngine.compute_number_stats(seen)["median"]
            )

    def test_extremes_are_sound(self, year_boundary_log: list[dict[str, Any]]) -> None:
        """Month extremes are the max/min over their days' stats."""
        result, _ = recompute(year_boundary_log)

        for month in result["months"]:
            totals = [
                day["stats"]["total"]
                for day in result["days"]
                if day["date_key"][:7] == month["date_key"]
            ]
            assert month["extremes"]["highest_total"] == max(totals)
            assert month["extremes"]["lowest_total"] == min(totals)

    def test_year_extremes_bound_every_field(
        self, sparse_log: list[dict[str, Any]]
    ) -> None:
        """Every field of every child lies within the container's extremes."""
        result, _ = recompute(sparse_log)

        for year in result["years"]:
            months = [
                month["stats"]
                for month in result["months"]
                if month["date_key"][:4] == year["date_key"]
            ]
            for field in const.STAT_FIELDS:
                values = [stats[field] for stats in months]
                assert year["extremes"][f"highest_{field}"] == max(values)
                assert year["extremes"][f"lowest_{field}"] == min(values)

    def test_keys_sorted_and_unique(self, sparse_log: list[dict[str, Any]]) -> None:
        """Every key list is strictly ascending."""
        result, _ = recompute(sparse_log)

        for name in ("day_keys", "week_keys", "month_keys", "year_keys"):
            keys = result[name]
            assert keys == sorted(set(keys))

    def test_iso_week_across_year_boundary(self) -> None:
        """2024-12-30 belongs to week 2025-W01 but to month 2024-12."""
        records = consecutive_days(date(2024, 12, 29), [[1], [2], [3]])

        result, _ = recompute(records)

        assert result["week_keys"] == ["2024-W52", "2025-W01"]
        assert result["weeks"][1]["numbers"] == [2, 3]
        assert result["month_keys"] == ["2024-12"]
        assert result["year_keys"] == ["2024"]

    def test_year_extremes_over_months(self) -> None:
        """Year extremes are taken over month children."""
        records = [
            make_record("2024-01-15", [1]),
            make_record("2024-01-16", [1]),
            make_record("2024-02-01", [5]),
        ]

        result, _ = recompute(records)

        assert result["years"][0]["extremes"]["highest_total"] == 5
        assert result["years"][0]["extremes"]["lowest_total"] == 2
        assert result["alltime"]["extremes"]["highest_total"] == 7


# ============================================================================
# Input Handling
# ============================================================================


class TestInputHandling:
    """Unsorted, malformed and non-finite input."""

    def test_unsorted_input(self, year_boundary_log: list[dict[str, Any]]) -> None:
        """Input order does not matter."""
        ordered, _ = recompute(year_boundary_log)
        shuffled, _ = recompute(list(reversed(year_boundary_log)))

        assert ordered == shuffled

    def test_malformed_keys_are_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        """Records with malformed keys are dropped with a warning."""
        records = [
            make_record("2024-01-01", [1]),
            make_record("2024-02-30", [50]),
            make_record("not-a-date", [60]),
            make_record("2024-W01", [70]),
            {"numbers": [80]},
        ]

        with caplog.at_level(logging.WARNING):
            result, _ = recompute(records)

        assert result["day_keys"] == ["2024-01-01"]
        assert result["alltime"]["stats"]["total"] == 1
        assert "2024-02-30" in caplog.text
        assert "not-a-date" in caplog.text

    def test_missing_numbers(self) -> None:
        """None or absent numbers make an empty day."""
        records = [
            make_record("2024-01-01", None),
            {"date_key": "2024-01-02"},
            make_record("2024-01-03", [4]),
        ]

        result, _ = recompute(records)

        assert result["days"][0]["stats"] == empty_stats()
        assert result["days"][1]["numbers"] == []
        assert result["days"][2]["cumulatives"]["first"] == 4
        assert result["days"][2]["cumulatives"]["min"] == 4

    def test_non_finite_dropped_by_default(self) -> None:
        """NaN and infinities are dropped by default."""
        records = [make_record("2024-01-01", [1, float("nan"), float("inf"), 2])]

        result, _ = recompute(records)

        assert result["days"][0]["numbers"] == [1, 2]

    def test_non_finite_zero_policy(self) -> None:
        """The zero policy replaces non-finite values with 0."""
        records = [make_record("2024-01-01", [1, float("-inf"), 2])]

        result, _ = recompute(records, None, {"non_finite_policy": "zero"})

        assert result["days"][0]["numbers"] == [1, 0, 2]
        assert result["days"][0]["stats"]["count"] == 3

    def test_input_records_not_mutated(self) -> None:
        """Records and their number lists are left untouched."""
        numbers = [3, float("nan"), 1]
        records = [make_record("2024-01-02", numbers), make_record("2024-01-01", [2])]

        recompute(records)

        assert records[0]["date_key"] == "2024-01-02"
        assert records[0]["numbers"] is numbers
        assert len(numbers) == 3

    def test_overflowing_values_stay_finite(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Sums past the float limit saturate instead of becoming inf or NaN."""
        records = consecutive_days(date(2024, 1, 1), [[1e308, 1e308], [1e308, 1e308]])

        with caplog.at_level(logging.WARNING):
            result, _ = recompute(records)

        day = result["days"][0]
        assert day["stats"]["total"] == sys.float_info.max
        assert day["stats"]["mean"] == 1e308
        assert day["stats"]["median"] == 1e308
        assert result["days"][1]["cumulatives"]["mean"] == pytest.approx(1e308)
        assert "overflowed" in caplog.text
        for aggregate in [*all_aggregates(result), result["alltime"]]:
            for section in (
                "stats",
                "deltas",
                "percents",
                "cumulatives",
                "cumulative_deltas",
                "cumulative_percents",
                "extremes",
            ):
                for value in (aggregate[section] or {}).values():
                    assert math.isfinite(value)


# ============================================================================
# Options
# ============================================================================


class TestOptions:
    """Option validation and cache invalidation."""

    def test_invalid_options_raise(self) -> None:
        """Unknown policies are rejected."""
        with pytest.raises(InvalidOptionsError):
            recompute([], None, {"non_finite_policy": "ignore"})

    def test_options_change_rebuilds(self) -> None:
        """Changing options invalidates every cached aggregate."""
        records = [
            make_record("2024-01-01", [1, float("nan")]),
            make_record("2024-01-02", [2]),
        ]
        result1, cache = recompute(records)

        result2, _ = recompute(records, cache, {"non_finite_policy": "zero"})

        assert result2["days"][0] is not result1["days"][0]
        assert result2["days"][0]["numbers"] == [1, 0]
        assert_matches_fresh(result2, records, {"non_finite_policy": "zero"})

    def test_extremes_min_children(self) -> None:
        """Containers with fewer children than the minimum get no extremes."""
        records = [
            make_record("2024-01-01", [1]),
            make_record("2024-01-02", [2]),
            make_record("2024-01-08", [3]),
        ]

        result, _ = recompute(records, None, {"extremes_min_children": 2})

        assert result["weeks"][0]["extremes"] is not None
        assert result["weeks"][1]["extremes"] is None
        assert result["years"][0]["extremes"] is None


# ============================================================================
# Building Blocks
# ============================================================================


class TestBuildingBlocks:
    """Direct tests of the change-detection helpers."""

    def test_find_first_changed_index(self, engine: type[RollupEngine]) -> None:
        """Identity, not equality, decides what changed."""
        a, b, c = (make_record(f"2024-01-0{i}", [i]) for i in (1, 2, 3))

        assert engine.find_first_changed_index([a, b], [a, b]) == -1
        assert engine.find_first_changed_index([a, b], [a, b, c]) == 2
        assert engine.find_first_changed_index([a, b, c], [a, b]) == 2
        replaced = make_record("2024-01-02", [2])
        assert engine.find_first_changed_index([a, b], [a, replaced]) == 1
        assert engine.find_first_changed_index([], []) == -1

    def test_earliest_changed_key_covers_removals(
        self, engine: type[RollupEngine]
    ) -> None:
        """The smaller key of the two logs is reported."""
        a, b, c = (make_record(f"2024-01-0{i}", [i]) for i in (1, 2, 3))

        assert engine.earliest_changed_key([a, b, c], [a, c], 1) == "2024-01-02"
        assert engine.earliest_changed_key([a, c], [a, b, c], 1) == "2024-01-02"
        assert engine.earliest_changed_key([a, b], [a], 1) == "2024-01-02"
        assert engine.earliest_changed_key([], [], 0) is None

    def test_find_first_key_index(self, engine: type[RollupEngine]) -> None:
        """Binary search for the first key >= start key."""
        keys = ["2024-01", "2024-03", "2024-05"]

        assert engine.find_first_key_index(keys, "2024-03") == 1
        assert engine.find_first_key_index(keys, "2024-04") == 2
        assert engine.find_first_key_index(keys, "2025-01") == 3
        assert engine.find_first_key_index(keys, None) == 3

    def test_prepare_records_is_stable(self, engine: type[RollupEngine]) -> None:
        """Sorting keeps record objects and duplicates in input order."""
        first = make_record("2024-01-02", [1])
        second = make_record("2024-01-02", [2])
        earlier = make_record("2024-01-01", [3])

        prepared = engine.prepare_records([first, second, earlier])

        assert prepared[0] is earlier
        assert prepared[1] is first
        assert prepared[2] is second

    def test_group_by_key(self, engine: type[RollupEngine]) -> None:
        """Children are bucketed in order."""
        result, _ = recompute(consecutive_days(date(2024, 1, 30), [[1], [2], [3]]))

        buckets = engine.group_by_key(result["days"], const.PERIOD_MONTH)

        assert list(buckets) == ["2024-01", "2024-02"]
        assert [day["date_key"] for day in buckets["2024-01"]] == [
            "2024-01-30",
            "2024-01-31",
        ]
