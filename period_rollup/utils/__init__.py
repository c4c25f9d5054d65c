# File: utils/__init__.py
"""Pure Python utilities for period_rollup.

Submodules:
    - dt_utils: Date key validation, conversion and period bounds
    - math_utils: Number sanitizing, medians and percent changes

Usage:
    from . import dt_utils
    from .math_utils import sanitize_numbers
"""

from . import dt_utils, math_utils

__all__ = ["dt_utils", "math_utils"]
