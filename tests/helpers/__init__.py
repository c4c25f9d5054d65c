"""Test helpers for period_rollup tests.

    from tests.helpers import make_record, make_log, all_aggregates
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any

from period_rollup import const


def make_record(date_key: str, numbers: list[float] | None) -> dict[str, Any]:
    """Return a new day record object."""
    return {const.DATA_DAY_DATE_KEY: date_key, const.DATA_DAY_NUMBERS: numbers}


def make_log(start: date, days: int, step: int = 1) -> list[dict[str, Any]]:
    """Return `days` records from `start`, every `step` days.

    Numbers vary per day (mix of negatives, fractions, repeats, empty days)
    so medians and extremes are not trivial.
    """
    records = []
    for index in range(days):
        day = start + timedelta(days=index * step)
        if index % 11 == 7:
            numbers: list[float] = []
        else:
            numbers = [
                (index * 7) % 13 - 4,
                (index % 5) * 1.5,
                *([index % 3] if index % 2 else []),
            ]
        records.append(make_record(day.isoformat(), numbers))
    return records


def all_aggregates(result: dict[str, Any]) -> list[dict[str, Any]]:
    """Return every keyed aggregate in a rollup result."""
    return [
        *result["days"],
        *result["weeks"],
        *result["months"],
        *result["years"],
    ]
