# File: utils/math_utils.py
"""Math and sanitizing utilities for period_rollup.

Pure Python math functions with no engine dependencies.

Functions:
    - sanitize_numbers: Apply the non-finite policy to a raw number list
    - median_of_sorted: Median of an already sorted sequence
    - mean_of: Mean that survives an overflowed total
    - percent_change: Fractional change against a baseline, or None
    - clamp / saturate: Keep results inside the finite float range
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
import logging
import math
import sys

from .. import const

# Module-level logger
_LOGGER = logging.getLogger(__name__)


def _is_finite_number(value: object) -> bool:
    """Return True for int/float values that are finite (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def sanitize_numbers(
    raw_numbers: Iterable[object] | None,
    policy: str = const.DEFAULT_NON_FINITE_POLICY,
) -> list[float]:
    """Return a clean list of finite numbers from caller-supplied values.

    NaN, ±Infinity and non-numeric values are either dropped ("drop") or
    replaced by 0 ("zero"). None is treated as an empty list. The input is
    never mutated.

    Args:
        raw_numbers: Numbers as stored by the log store
        policy: One of const.NON_FINITE_POLICIES

    Returns:
        New list of finite numbers, order preserved

    Examples:
        sanitize_numbers([1, float("nan"), 2]) → [1, 2]
        sanitize_numbers([1, float("inf")], "zero") → [1, 0]
        sanitize_numbers(None) → []
    """
    if raw_numbers is None:
        return []

    numbers: list[float] = []
    rejected = 0
    for value in raw_numbers:
        if _is_finite_number(value):
            numbers.append(value)  # type: ignore[arg-type]
            continue
        rejected += 1
        if policy == const.NON_FINITE_ZERO:
            numbers.append(0)

    if rejected:
        _LOGGER.debug(
            "sanitize_numbers: %d non-finite value(s) handled with policy '%s'",
            rejected,
            policy,
        )
    return numbers


def median_of_sorted(sorted_numbers: Sequence[float]) -> float:
    """Median of an ascending sequence; 0 for an empty one.

    Examples:
        median_of_sorted([1, 2, 3]) → 2
        median_of_sorted([-2, 3]) → 0.5
        median_of_sorted([1e308, 1e308]) → 1e308
    """
    count = len(sorted_numbers)
    if count == 0:
        return 0
    mid = count // 2
    if count % 2 == 0:
        low, high = sorted_numbers[mid - 1], sorted_numbers[mid]
        median = (low + high) / 2
        if not math.isfinite(median):
            # Sum of two huge values overflowed
            median = low / 2 + high / 2
        return median
    return sorted_numbers[mid]


def mean_of(total: float, count: int, numbers: Iterable[float]) -> float:
    """Return total / count, rescaling per value when total overflowed.

    A total that is infinite or already saturated at the float limit is not
    trusted; the mean is then summed from `numbers` divided one by one.

    Examples:
        mean_of(6, 3, [1, 2, 3]) → 2.0
        mean_of(float("inf"), 2, [1e308, 1e308]) → 1e308
    """
    if count == 0:
        return 0
    if math.isfinite(total) and abs(total) < sys.float_info.max:
        return total / count
    return saturate(sum(number / count for number in numbers))


def percent_change(current: float, baseline: float) -> float | None:
    """Return (current - baseline) / |baseline|, or None when baseline is 0.

    Examples:
        percent_change(15, 10) → 0.5
        percent_change(5, -10) → 1.5
        percent_change(5, 0) → None
    """
    if baseline == 0:
        return None
    return saturate((current - baseline) / abs(baseline))


def clamp(value: float, min_val: float, max_val: float) -> float:
    """Clamp a value between minimum and maximum bounds.

    Examples:
        clamp(150, 0, 100) → 100
        clamp(-10, 0, 100) → 0
    """
    return max(min_val, min(value, max_val))


def saturate(value: float) -> float:
    """Map an overflowed result back into the finite float range.

    ±inf becomes ±sys.float_info.max and NaN becomes 0; finite values are
    returned unchanged.

    Examples:
        saturate(float("inf")) → 1.7976931348623157e+308
        saturate(12.5) → 12.5
    """
    if math.isnan(value):
        _LOGGER.debug("saturate: replacing NaN with 0")
        return 0
    if math.isfinite(value):
        return value
    _LOGGER.debug("saturate: clamping %s to the float range", value)
    return clamp(value, -sys.float_info.max, sys.float_info.max)
