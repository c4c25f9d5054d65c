"""Shared fixtures for period_rollup tests."""

from __future__ import annotations

from datetime import date
from typing import Any

import pytest

from period_rollup.engines.rollup_engine import RollupEngine
from period_rollup.engines.stats_engine import StatsEngine
from tests.helpers import make_log


@pytest.fixture
def stats() -> type[StatsEngine]:
    """Return the StatsEngine class (all static methods)."""
    return StatsEngine


@pytest.fixture
def engine() -> type[RollupEngine]:
    """Return the RollupEngine class (all static methods)."""
    return RollupEngine


@pytest.fixture
def year_boundary_log() -> list[dict[str, Any]]:
    """Return ~10 weeks of records spanning the 2023/2024 boundary."""
    return make_log(date(2023, 12, 10), 70)


@pytest.fixture
def sparse_log() -> list[dict[str, Any]]:
    """Return records every third day across three years."""
    return make_log(date(2022, 11, 20), 150, step=3)
