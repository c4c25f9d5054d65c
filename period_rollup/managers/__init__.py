"""Manager modules for period_rollup.

Managers hold state between engine calls. Engines stay pure.
"""

from .rollup_manager import RollupManager

__all__ = ["RollupManager"]
