"""Entity building helpers.

This module is the SINGLE SOURCE OF TRUTH for:
- User and pellet field defaults
- Input validation (license plates, pellet types, reasons, locations)
- Complete record structure building

### Build Functions
Each record type has a `build_<record>()` function that:
- Takes raw input (DATA_* keys or keyword arguments)
- Generates an id (UUID) where the caller supplies none
- Sets timestamps (created_at)
- Applies defaults from the validated options
- Returns a complete dict ready for the repository

Invalid input raises EntityValidationError carrying the offending field.

Consumers:
- managers/progression_manager.py (register_user, tag_driver)
- tests
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any
import uuid

from . import const
from .engines.economy_engine import EconomyEngine
from .engines.gamification_engine import normalize_plate
from .exceptions import EntityValidationError
from .type_defs import PelletData, PelletLocation, UserData
from .utils.dt_utils import as_utc, dt_now_utc

# ==============================================================================
# LICENSE PLATES
# ==============================================================================


def normalize_license_plate(license_plate: str | None, state: str | None = None) -> str:
    """Return the stored "STATE-PLATE" form of a license plate.

    Every stored plate carries its state, so own-plate checks and received
    counts always compare the same form. When `state` is None the input must
    already carry a state prefix ("CA-ABC123").

    Args:
        license_plate: Raw plate text (case and surrounding spaces ignored)
        state: State/region code; optional only for prefixed input

    Returns:
        Upper-case "STATE-PLATE"

    Raises:
        EntityValidationError: If the plate part is not 3-8 characters or
            no state is given

    Examples:
        normalize_license_plate("abc123", "ca") → "CA-ABC123"
        normalize_license_plate(" ca-abc123 ") → "CA-ABC123"
        normalize_license_plate("ABC123") → EntityValidationError
    """
    plate = normalize_plate(license_plate)
    state_code = normalize_plate(state)

    if not state_code and const.LICENSE_PLATE_STATE_SEPARATOR in plate:
        state_code, plate = plate.split(const.LICENSE_PLATE_STATE_SEPARATOR, 1)
        state_code = state_code.strip()
        plate = plate.strip()

    if not const.LICENSE_PLATE_MIN_LENGTH <= len(plate) <= const.LICENSE_PLATE_MAX_LENGTH:
        raise EntityValidationError(
            field=const.DATA_PELLET_TARGET_LICENSE_PLATE,
            reason=(
                f"license plate must be {const.LICENSE_PLATE_MIN_LENGTH}-"
                f"{const.LICENSE_PLATE_MAX_LENGTH} characters, got {plate!r}"
            ),
        )

    if not state_code:
        raise EntityValidationError(
            field=const.DATA_USER_STATE,
            reason=f"a state is required for license plate {plate!r}",
        )

    return f"{state_code}{const.LICENSE_PLATE_STATE_SEPARATOR}{plate}"


# ==============================================================================
# USERS
# ==============================================================================


def build_user(
    user_input: Mapping[str, Any],
    options: Mapping[str, Any] | None = None,
    *,
    now: datetime | None = None,
) -> UserData:
    """Build a new user with starting balances.

    Starting balances are recorded in the ledger as registration credits, so
    the ledger explains every pellet the user ever had.

    Args:
        user_input: Data with DATA_USER_* keys; id and license_plate required
        options: Validated options (config.validate_options); defaults if None
        now: Creation time override for deterministic tests

    Returns:
        Complete UserData ready for storage

    Raises:
        EntityValidationError: Missing id, invalid license plate or missing state
    """
    options = options or {}

    user_id = str(user_input.get(const.DATA_USER_ID) or "").strip()
    if not user_id:
        raise EntityValidationError(
            field=const.DATA_USER_ID, reason="user id is required"
        )

    state = user_input.get(const.DATA_USER_STATE)
    license_plate = normalize_license_plate(
        user_input.get(const.DATA_USER_LICENSE_PLATE), state
    )

    user: UserData = {
        const.DATA_USER_ID: user_id,
        const.DATA_USER_NAME: user_input.get(const.DATA_USER_NAME),
        const.DATA_USER_EMAIL: user_input.get(const.DATA_USER_EMAIL),
        const.DATA_USER_STATE: license_plate.split(
            const.LICENSE_PLATE_STATE_SEPARATOR, 1
        )[0],
        const.DATA_USER_LICENSE_PLATE: license_plate,
        const.DATA_USER_PELLET_COUNT: 0,
        const.DATA_USER_POSITIVE_PELLET_COUNT: 0,
        const.DATA_USER_EXP: const.DEFAULT_STARTING_EXP,
        const.DATA_USER_LEVEL: const.DEFAULT_STARTING_LEVEL,
        const.DATA_USER_BADGES: [],
        const.DATA_USER_BADGES_EARNED: {},
        const.DATA_USER_LEDGER: [],
        const.DATA_USER_CREATED_AT: as_utc(now or dt_now_utc()).isoformat(),
    }  # type: ignore[typeddict-item]

    starting_balances = (
        (
            const.PELLET_TYPE_NEGATIVE,
            options.get(
                const.CONF_STARTING_NEGATIVE_PELLETS,
                const.DEFAULT_STARTING_NEGATIVE_PELLETS,
            ),
        ),
        (
            const.PELLET_TYPE_POSITIVE,
            options.get(
                const.CONF_STARTING_POSITIVE_PELLETS,
                const.DEFAULT_STARTING_POSITIVE_PELLETS,
            ),
        ),
    )
    for pellet_type, amount in starting_balances:
        if amount > 0:
            EconomyEngine.credit(
                user,
                pellet_type,
                amount,
                source=const.LEDGER_SOURCE_REGISTRATION,
                reference_id=user_id,
                max_ledger_entries=options.get(
                    const.CONF_MAX_LEDGER_ENTRIES, const.DEFAULT_MAX_LEDGER_ENTRIES
                ),
                max_ledger_age_days=options.get(
                    const.CONF_MAX_LEDGER_AGE_DAYS, const.DEFAULT_MAX_LEDGER_AGE_DAYS
                ),
            )

    const.LOGGER.debug(
        "Built user %s (plate=%s, negative=%d, positive=%d)",
        user_id,
        license_plate,
        user[const.DATA_USER_PELLET_COUNT],
        user[const.DATA_USER_POSITIVE_PELLET_COUNT],
    )
    return user


# ==============================================================================
# PELLETS
# ==============================================================================


def _build_location(location: Mapping[str, Any] | None) -> PelletLocation | None:
    """Validate an optional {latitude, longitude} mapping."""
    if location is None:
        return None
    try:
        latitude = float(location[const.DATA_PELLET_LATITUDE])
        longitude = float(location[const.DATA_PELLET_LONGITUDE])
    except (KeyError, TypeError, ValueError) as err:
        raise EntityValidationError(
            field=const.DATA_PELLET_LOCATION,
            reason="location needs numeric latitude and longitude",
        ) from err
    if not (-90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0):
        raise EntityValidationError(
            field=const.DATA_PELLET_LOCATION,
            reason=f"coordinates out of range: {latitude}, {longitude}",
        )
    return {
        const.DATA_PELLET_LATITUDE: latitude,
        const.DATA_PELLET_LONGITUDE: longitude,
    }  # type: ignore[return-value]


def build_pellet(
    creator: UserData,
    *,
    license_plate: str,
    pellet_type: str,
    reason: str,
    state: str | None = None,
    location: Mapping[str, Any] | None = None,
    now: datetime | None = None,
    pellet_id: str | None = None,
) -> PelletData:
    """Build a tagging event created by `creator`.

    Args:
        creator: The tagging user (id and license_plate are read)
        license_plate: Target plate (normalized to "STATE-PLATE")
        pellet_type: "negative" or "positive"
        reason: Free text, required
        state: State code of the target plate (may be given as a plate prefix)
        location: Optional {latitude, longitude}
        now: Event time override
        pellet_id: Id override (UUID4 when None)

    Returns:
        Complete PelletData

    Raises:
        EntityValidationError: Unknown type, empty reason, invalid plate or
            location, or a user tagging their own plate
    """
    if pellet_type not in const.PELLET_TYPES:
        raise EntityValidationError(
            field=const.DATA_PELLET_TYPE,
            reason=f"unknown pellet type {pellet_type!r}",
        )

    reason_text = (reason or "").strip()
    if not reason_text:
        raise EntityValidationError(
            field=const.DATA_PELLET_REASON, reason="a reason is required"
        )

    target = normalize_license_plate(license_plate, state)
    if target == normalize_plate(creator.get(const.DATA_USER_LICENSE_PLATE)):
        raise EntityValidationError(
            field=const.DATA_PELLET_TARGET_LICENSE_PLATE,
            reason="users cannot tag their own vehicle",
        )

    return {
        const.DATA_PELLET_ID: pellet_id or str(uuid.uuid4()),
        const.DATA_PELLET_TARGET_LICENSE_PLATE: target,
        const.DATA_PELLET_CREATED_BY: creator[const.DATA_USER_ID],
        const.DATA_PELLET_CREATED_AT: as_utc(now or dt_now_utc()).isoformat(),
        const.DATA_PELLET_TYPE: pellet_type,
        const.DATA_PELLET_REASON: reason_text,
        const.DATA_PELLET_LOCATION: _build_location(location),
    }  # type: ignore[return-value]
