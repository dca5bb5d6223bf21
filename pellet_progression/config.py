"""Runtime options for the pellet progression engine.

Options are a flat dict keyed by the CONF_* constants. Every key is optional;
missing keys fall back to the DEFAULT_* values in const.py.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import voluptuous as vol

from . import const
from .exceptions import CatalogValidationError

OPTIONS_SCHEMA = vol.Schema(
    {
        vol.Optional(
            const.CONF_STARTING_NEGATIVE_PELLETS,
            default=const.DEFAULT_STARTING_NEGATIVE_PELLETS,
        ): vol.All(vol.Coerce(int), vol.Range(min=0)),
        vol.Optional(
            const.CONF_STARTING_POSITIVE_PELLETS,
            default=const.DEFAULT_STARTING_POSITIVE_PELLETS,
        ): vol.All(vol.Coerce(int), vol.Range(min=0)),
        vol.Optional(
            const.CONF_TREND_WINDOW_DAYS, default=const.DEFAULT_TREND_WINDOW_DAYS
        ): vol.All(vol.Coerce(int), vol.Range(min=1)),
        vol.Optional(
            const.CONF_TOP_REASONS_LIMIT, default=const.DEFAULT_TOP_REASONS_LIMIT
        ): vol.All(vol.Coerce(int), vol.Range(min=0)),
        vol.Optional(
            const.CONF_MAX_LEDGER_ENTRIES, default=const.DEFAULT_MAX_LEDGER_ENTRIES
        ): vol.All(vol.Coerce(int), vol.Range(min=1)),
        vol.Optional(
            const.CONF_MAX_LEDGER_AGE_DAYS, default=const.DEFAULT_MAX_LEDGER_AGE_DAYS
        ): vol.All(vol.Coerce(int), vol.Range(min=0)),
    }
)


def validate_options(options: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """Validate options and fill in defaults.

    Args:
        options: Raw options (None or empty for all defaults)

    Returns:
        Complete options dict with every CONF_* key present

    Raises:
        CatalogValidationError: Unknown key or out-of-range value
    """
    try:
        return OPTIONS_SCHEMA(dict(options or {}))
    except vol.Invalid as err:
        const.LOGGER.error("Invalid options %s: %s", dict(options or {}), err)
        raise CatalogValidationError("options", str(err)) from err
