"""Option schema and validation for the rollup engine."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import voluptuous as vol

from . import const
from .type_defs import RollupOptions

ROLLUP_OPTIONS_SCHEMA = vol.Schema(
    {
        vol.Optional(
            const.CONF_NON_FINITE_POLICY, default=const.DEFAULT_NON_FINITE_POLICY
        ): vol.In(const.NON_FINITE_POLICIES),
        vol.Optional(
            const.CONF_EXTREMES_MIN_CHILDREN,
            default=const.DEFAULT_EXTREMES_MIN_CHILDREN,
        ): vol.All(vol.Coerce(int), vol.Range(min=1)),
    }
)


class InvalidOptionsError(Exception):
    """Raised when engine options fail schema validation.

    Attributes:
        options: The rejected options
        errors: Human-readable validation messages
    """

    def __init__(self, options: Mapping[str, Any], errors: list[str]) -> None:
        """Initialize InvalidOptionsError.

        Args:
            options: The rejected options
            errors: Human-readable validation messages
        """
        self.options = dict(options)
        self.errors = errors
        super().__init__(f"Invalid rollup options: {'; '.join(errors)}")


def validate_options(options: Mapping[str, Any] | None = None) -> RollupOptions:
    """Validate options and fill in defaults.

    Args:
        options: Raw options, or None for all defaults

    Returns:
        RollupOptions with every key present

    Raises:
        InvalidOptionsError: an option is unknown or out of range.
    """
    raw = dict(options or {})
    try:
        return ROLLUP_OPTIONS_SCHEMA(raw)
    except vol.MultipleInvalid as err:
        const.LOGGER.error("Rejected rollup options %s: %s", raw, err)
        raise InvalidOptionsError(raw, [str(error) for error in err.errors]) from err
