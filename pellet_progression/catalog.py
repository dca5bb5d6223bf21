"""Badge and shop catalogs.

Catalogs are ordered lists of definition dicts. The order is significant:
badges are evaluated and awarded in catalog order, and shop items are listed
in the order declared here.

Both loaders validate every entry with a voluptuous schema and reject
duplicate ids, so a malformed catalog fails at startup rather than in the
middle of a tagging action.
"""

from __future__ import annotations

from collections.abc import Iterable
import copy
from typing import Any

import voluptuous as vol

from . import const
from .exceptions import CatalogValidationError
from .type_defs import BadgeDefinition, ShopItem

# ==============================================================================
# SCHEMAS
# ==============================================================================

_NON_EMPTY_STR = vol.All(str, vol.Length(min=1))


def _not_bool(value: Any) -> Any:
    """Reject booleans, which would otherwise pass as int."""
    if isinstance(value, bool):
        raise vol.Invalid(f"expected an integer, got {value!r}")
    return value


BADGE_CRITERIA_SCHEMA = vol.Schema(
    {
        vol.Required(const.DATA_BADGE_CRITERIA_TYPE): vol.In(
            const.BADGE_CRITERION_TYPES
        ),
        vol.Required(const.DATA_BADGE_CRITERIA_THRESHOLD): vol.All(
            _not_bool, int, vol.Range(min=0)
        ),
    }
)

BADGE_SCHEMA = vol.Schema(
    {
        vol.Required(const.DATA_BADGE_ID): _NON_EMPTY_STR,
        vol.Required(const.DATA_BADGE_NAME): _NON_EMPTY_STR,
        vol.Optional(const.DATA_BADGE_DESCRIPTION, default=""): str,
        vol.Optional(const.DATA_BADGE_ICON, default=""): str,
        vol.Optional(const.DATA_BADGE_RARITY, default=const.BADGE_RARITY_COMMON): vol.In(
            const.BADGE_RARITIES
        ),
        vol.Required(const.DATA_BADGE_CRITERIA): BADGE_CRITERIA_SCHEMA,
    }
)


def _validate_shop_item_payload(item: dict[str, Any]) -> dict[str, Any]:
    """Require a pellet count on items that move balances."""
    if item[const.DATA_SHOP_ITEM_TYPE] == const.SHOP_ITEM_TYPE_DONATION:
        return item
    if not item.get(const.DATA_SHOP_ITEM_PELLET_COUNT):
        raise vol.Invalid(
            f"{item[const.DATA_SHOP_ITEM_TYPE]} items need a positive pellet_count",
            path=[const.DATA_SHOP_ITEM_PELLET_COUNT],
        )
    if (
        item[const.DATA_SHOP_ITEM_TYPE] == const.SHOP_ITEM_TYPE_PURCHASE
        and item.get(const.DATA_SHOP_ITEM_PELLET_TYPE) is None
    ):
        item[const.DATA_SHOP_ITEM_PELLET_TYPE] = const.PELLET_TYPE_NEGATIVE
    return item


SHOP_ITEM_SCHEMA = vol.All(
    vol.Schema(
        {
            vol.Required(const.DATA_SHOP_ITEM_ID): _NON_EMPTY_STR,
            vol.Required(const.DATA_SHOP_ITEM_NAME): _NON_EMPTY_STR,
            vol.Optional(const.DATA_SHOP_ITEM_DESCRIPTION, default=""): str,
            vol.Required(const.DATA_SHOP_ITEM_PRICE): vol.All(
                vol.Coerce(float), vol.Range(min=0)
            ),
            vol.Required(const.DATA_SHOP_ITEM_TYPE): vol.In(const.SHOP_ITEM_TYPES),
            vol.Optional(const.DATA_SHOP_ITEM_PELLET_COUNT, default=None): vol.Any(
                None, vol.All(_not_bool, int, vol.Range(min=1))
            ),
            vol.Optional(const.DATA_SHOP_ITEM_PELLET_TYPE, default=None): vol.Any(
                None, vol.In(const.PELLET_TYPES)
            ),
        }
    ),
    _validate_shop_item_payload,
)


# ==============================================================================
# DEFAULT CATALOGS
# ==============================================================================


def _badge(
    badge_id: str,
    name: str,
    description: str,
    icon: str,
    rarity: str,
    criterion_type: str,
    threshold: int,
) -> dict[str, Any]:
    return {
        const.DATA_BADGE_ID: badge_id,
        const.DATA_BADGE_NAME: name,
        const.DATA_BADGE_DESCRIPTION: description,
        const.DATA_BADGE_ICON: icon,
        const.DATA_BADGE_RARITY: rarity,
        const.DATA_BADGE_CRITERIA: {
            const.DATA_BADGE_CRITERIA_TYPE: criterion_type,
            const.DATA_BADGE_CRITERIA_THRESHOLD: threshold,
        },
    }


DEFAULT_BADGE_CATALOG: tuple[dict[str, Any], ...] = (
    # --- Tagging ---
    _badge(
        "first-tag", "First Tag", "Tagged your first driver", "🎯",
        const.BADGE_RARITY_COMMON, const.BADGE_CRITERION_PELLETS_GIVEN, 1,
    ),
    _badge(
        "tag-master", "Tag Master", "Tagged 10 drivers", "🏆",
        const.BADGE_RARITY_UNCOMMON, const.BADGE_CRITERION_PELLETS_GIVEN, 10,
    ),
    _badge(
        "tag-legend", "Tag Legend", "Tagged 50 drivers", "👑",
        const.BADGE_RARITY_RARE, const.BADGE_CRITERION_PELLETS_GIVEN, 50,
    ),
    _badge(
        "first-positive", "First Positive", "Gave your first positive tag", "👍",
        const.BADGE_RARITY_COMMON, const.BADGE_CRITERION_POSITIVE_PELLETS_GIVEN, 1,
    ),
    _badge(
        "positivity-spreader", "Positivity Spreader", "Gave 10 positive tags", "😊",
        const.BADGE_RARITY_UNCOMMON, const.BADGE_CRITERION_POSITIVE_PELLETS_GIVEN, 10,
    ),
    # --- Receiving ---
    _badge(
        "road-angel", "Road Angel", "Received 5 positive tags", "😇",
        const.BADGE_RARITY_RARE, const.BADGE_CRITERION_POSITIVE_PELLETS_RECEIVED, 5,
    ),
    _badge(
        "road-menace", "Road Menace", "Received 5 negative tags", "😈",
        const.BADGE_RARITY_UNCOMMON, const.BADGE_CRITERION_NEGATIVE_PELLETS_RECEIVED, 5,
    ),
    _badge(
        "infamous-driver", "Infamous Driver", "Received 20 negative tags", "💀",
        const.BADGE_RARITY_EPIC, const.BADGE_CRITERION_NEGATIVE_PELLETS_RECEIVED, 20,
    ),
    # --- Experience ---
    _badge(
        "rookie-reporter", "Rookie Reporter", "Earned 100 experience points", "🔰",
        const.BADGE_RARITY_COMMON, const.BADGE_CRITERION_EXP_EARNED, 100,
    ),
    _badge(
        "experienced-reporter", "Experienced Reporter", "Earned 500 experience points", "📊",
        const.BADGE_RARITY_UNCOMMON, const.BADGE_CRITERION_EXP_EARNED, 500,
    ),
    _badge(
        "expert-reporter", "Expert Reporter", "Earned 1,000 experience points", "📈",
        const.BADGE_RARITY_RARE, const.BADGE_CRITERION_EXP_EARNED, 1000,
    ),
    _badge(
        "master-reporter", "Master Reporter", "Earned 5,000 experience points", "🎓",
        const.BADGE_RARITY_EPIC, const.BADGE_CRITERION_EXP_EARNED, 5000,
    ),
    _badge(
        "legendary-reporter", "Legendary Reporter", "Earned 10,000 experience points", "🏅",
        const.BADGE_RARITY_LEGENDARY, const.BADGE_CRITERION_EXP_EARNED, 10000,
    ),
    # --- Levels (thresholds track const.EXP_LEVELS) ---
    _badge(
        "level-5-achiever", "Level 5 Achiever", "Reached level 5", "5️⃣",
        const.BADGE_RARITY_RARE, const.BADGE_CRITERION_EXP_EARNED, const.EXP_LEVELS[4],
    ),
    _badge(
        "level-10-achiever", "Level 10 Achiever", "Reached level 10", "🔟",
        const.BADGE_RARITY_EPIC, const.BADGE_CRITERION_EXP_EARNED, const.EXP_LEVELS[9],
    ),
)


def _shop_item(
    item_id: str,
    name: str,
    description: str,
    price: float,
    item_type: str,
    pellet_count: int | None = None,
    pellet_type: str | None = None,
) -> dict[str, Any]:
    return {
        const.DATA_SHOP_ITEM_ID: item_id,
        const.DATA_SHOP_ITEM_NAME: name,
        const.DATA_SHOP_ITEM_DESCRIPTION: description,
        const.DATA_SHOP_ITEM_PRICE: price,
        const.DATA_SHOP_ITEM_TYPE: item_type,
        const.DATA_SHOP_ITEM_PELLET_COUNT: pellet_count,
        const.DATA_SHOP_ITEM_PELLET_TYPE: pellet_type,
    }


_NEG = const.PELLET_TYPE_NEGATIVE
_POS = const.PELLET_TYPE_POSITIVE

DEFAULT_SHOP_ITEMS: tuple[dict[str, Any], ...] = (
    _shop_item("pellet-5", "5 Pellets", "Purchase 5 negative pellets to tag drivers",
               1.25, const.SHOP_ITEM_TYPE_PURCHASE, 5, _NEG),
    _shop_item("pellet-10", "10 Pellets", "Purchase 10 negative pellets to tag drivers",
               2.50, const.SHOP_ITEM_TYPE_PURCHASE, 10, _NEG),
    _shop_item("pellet-25", "25 Pellets", "Purchase 25 negative pellets to tag drivers",
               6.25, const.SHOP_ITEM_TYPE_PURCHASE, 25, _NEG),
    _shop_item("positive-pellet-5", "5 Positive Pellets",
               "Purchase 5 positive pellets to praise good drivers",
               1.25, const.SHOP_ITEM_TYPE_PURCHASE, 5, _POS),
    _shop_item("positive-pellet-10", "10 Positive Pellets",
               "Purchase 10 positive pellets to praise good drivers",
               2.50, const.SHOP_ITEM_TYPE_PURCHASE, 10, _POS),
    _shop_item("positive-pellet-25", "25 Positive Pellets",
               "Purchase 25 positive pellets to praise good drivers",
               6.25, const.SHOP_ITEM_TYPE_PURCHASE, 25, _POS),
    _shop_item("erase-1", "Erase 1 Pellet", "Remove 1 negative pellet from your record",
               0.25, const.SHOP_ITEM_TYPE_ERASE, 1),
    _shop_item("erase-5", "Erase 5 Pellets", "Remove 5 negative pellets from your record",
               1.25, const.SHOP_ITEM_TYPE_ERASE, 5),
    _shop_item("donation-small", "Small Donation", "Support the project with a small donation",
               5.00, const.SHOP_ITEM_TYPE_DONATION),
    _shop_item("donation-medium", "Medium Donation", "Support the project with a medium donation",
               10.00, const.SHOP_ITEM_TYPE_DONATION),
    _shop_item("donation-large", "Large Donation", "Support the project with a large donation",
               25.00, const.SHOP_ITEM_TYPE_DONATION),
)


# ==============================================================================
# LOADERS
# ==============================================================================


def _validate_entries(
    catalog_name: str,
    entries: Iterable[dict[str, Any]],
    schema: vol.Schema | vol.All,
    id_key: str,
) -> list[dict[str, Any]]:
    """Validate entries in order and reject duplicate ids.

    Raises:
        CatalogValidationError: On the first invalid or duplicate entry
    """
    validated: list[dict[str, Any]] = []
    seen: set[str] = set()
    for index, raw in enumerate(entries):
        entry_id = raw.get(id_key) if isinstance(raw, dict) else None
        try:
            entry = schema(copy.deepcopy(raw))
        except vol.Invalid as err:
            const.LOGGER.error(
                "Rejected %s catalog entry #%d (%s): %s", catalog_name, index, entry_id, err
            )
            raise CatalogValidationError(
                catalog_name, str(err), entry_id=entry_id
            ) from err

        if entry[id_key] in seen:
            raise CatalogValidationError(
                catalog_name, "duplicate id", entry_id=entry[id_key]
            )
        seen.add(entry[id_key])
        validated.append(entry)

    const.LOGGER.debug("Loaded %s catalog with %d entries", catalog_name, len(validated))
    return validated


def load_badge_catalog(
    entries: Iterable[dict[str, Any]] | None = None,
) -> list[BadgeDefinition]:
    """Validate and return an ordered badge catalog.

    Args:
        entries: Raw badge dicts; the built-in catalog when None

    Returns:
        Validated BadgeDefinitions (deep copies) in input order

    Raises:
        CatalogValidationError: Unknown criterion type or rarity, negative
            threshold, missing field or duplicate id
    """
    return _validate_entries(  # type: ignore[return-value]
        "badges",
        DEFAULT_BADGE_CATALOG if entries is None else entries,
        BADGE_SCHEMA,
        const.DATA_BADGE_ID,
    )


def load_shop_catalog(
    entries: Iterable[dict[str, Any]] | None = None,
) -> list[ShopItem]:
    """Validate and return an ordered shop catalog.

    Raises:
        CatalogValidationError: Unknown item type, negative price, missing
            pellet count on a purchase/erase item or duplicate id
    """
    return _validate_entries(  # type: ignore[return-value]
        "shop",
        DEFAULT_SHOP_ITEMS if entries is None else entries,
        SHOP_ITEM_SCHEMA,
        const.DATA_SHOP_ITEM_ID,
    )
