"""Helper modules for period_rollup consumers."""
