# File: const.py
"""Constants for the pellet progression engine.

This file centralizes data keys, defaults, level tables, reward policy values,
badge/shop vocabularies and signal names for consistency across the engines,
managers and catalogs.
"""

import logging
from typing import Final

# ------------------------------------------------------------------------------------------------
# General
# ------------------------------------------------------------------------------------------------
DOMAIN = "pellet_progression"

# Logger
LOGGER = logging.getLogger(__package__)

# ------------------------------------------------------------------------------------------------
# Pellet Types
# ------------------------------------------------------------------------------------------------
PELLET_TYPE_NEGATIVE = "negative"
PELLET_TYPE_POSITIVE = "positive"
PELLET_TYPES: Final = (PELLET_TYPE_NEGATIVE, PELLET_TYPE_POSITIVE)

# Leaderboard filter value covering both pellet types
PELLET_TYPE_ALL = "all"

# ------------------------------------------------------------------------------------------------
# User Data Keys
# ------------------------------------------------------------------------------------------------
DATA_USER_ID = "id"
DATA_USER_NAME = "name"
DATA_USER_EMAIL = "email"
DATA_USER_STATE = "state"
DATA_USER_LICENSE_PLATE = "license_plate"
DATA_USER_PELLET_COUNT = "pellet_count"
DATA_USER_POSITIVE_PELLET_COUNT = "positive_pellet_count"
DATA_USER_EXP = "exp"
DATA_USER_LEVEL = "level"
DATA_USER_BADGES = "badges"
DATA_USER_BADGES_EARNED = "badges_earned"
DATA_USER_LEDGER = "ledger"
DATA_USER_CREATED_AT = "created_at"

# Balance field per pellet type
BALANCE_KEY_BY_PELLET_TYPE: Final = {
    PELLET_TYPE_NEGATIVE: DATA_USER_PELLET_COUNT,
    PELLET_TYPE_POSITIVE: DATA_USER_POSITIVE_PELLET_COUNT,
}

# ------------------------------------------------------------------------------------------------
# Pellet (Event) Data Keys
# ------------------------------------------------------------------------------------------------
DATA_PELLET_ID = "id"
DATA_PELLET_TARGET_LICENSE_PLATE = "target_license_plate"
DATA_PELLET_CREATED_BY = "created_by"
DATA_PELLET_CREATED_AT = "created_at"
DATA_PELLET_TYPE = "type"
DATA_PELLET_REASON = "reason"
DATA_PELLET_LOCATION = "location"
DATA_PELLET_LATITUDE = "latitude"
DATA_PELLET_LONGITUDE = "longitude"

# ------------------------------------------------------------------------------------------------
# Ledger Entry Keys
# ------------------------------------------------------------------------------------------------
DATA_LEDGER_TIMESTAMP = "timestamp"
DATA_LEDGER_PELLET_TYPE = "pellet_type"
DATA_LEDGER_AMOUNT = "amount"
DATA_LEDGER_BALANCE_AFTER = "balance_after"
DATA_LEDGER_SOURCE = "source"
DATA_LEDGER_REFERENCE_ID = "reference_id"

# Ledger transaction sources
LEDGER_SOURCE_TAG = "tag"
LEDGER_SOURCE_PURCHASE = "purchase"
LEDGER_SOURCE_ERASE = "erase"
LEDGER_SOURCE_MANUAL = "manual"
LEDGER_SOURCE_REGISTRATION = "registration"

DEFAULT_MAX_LEDGER_ENTRIES = 50
DEFAULT_MAX_LEDGER_AGE_DAYS = 0  # 0 disables age-based pruning

# ------------------------------------------------------------------------------------------------
# Registration Defaults
# ------------------------------------------------------------------------------------------------
DEFAULT_STARTING_NEGATIVE_PELLETS = 10
DEFAULT_STARTING_POSITIVE_PELLETS = 5
DEFAULT_STARTING_EXP = 0
DEFAULT_STARTING_LEVEL = 1

# License plate length bounds (plate part only, state prefix excluded)
LICENSE_PLATE_MIN_LENGTH = 3
LICENSE_PLATE_MAX_LENGTH = 8
LICENSE_PLATE_STATE_SEPARATOR = "-"

# ------------------------------------------------------------------------------------------------
# Experience / Levels
# ------------------------------------------------------------------------------------------------
# Minimum exp for each level; index 0 is level 1
EXP_LEVELS: Final = (
    0,  # Level 1
    100,  # Level 2
    250,  # Level 3
    500,  # Level 4
    1000,  # Level 5
    2000,  # Level 6
    3500,  # Level 7
    5000,  # Level 8
    7500,  # Level 9
    10000,  # Level 10
    15000,  # Level 11
    20000,  # Level 12
    30000,  # Level 13
    50000,  # Level 14
    75000,  # Level 15
)
MAX_LEVEL: Final = len(EXP_LEVELS)

# Exp reward policy for tagging
EXP_REWARD_NEGATIVE_TAG = 25
EXP_REWARD_POSITIVE_TAG = 30
EXP_REWARD_LOCATION_BONUS = 5
EXP_REWARD_DETAILED_REASON_BONUS = 10
EXP_DETAILED_REASON_MIN_LENGTH = 20  # reason must be longer than this

# ------------------------------------------------------------------------------------------------
# Badges
# ------------------------------------------------------------------------------------------------
DATA_BADGE_ID = "id"
DATA_BADGE_NAME = "name"
DATA_BADGE_DESCRIPTION = "description"
DATA_BADGE_ICON = "icon"
DATA_BADGE_RARITY = "rarity"
DATA_BADGE_CRITERIA = "criteria"
DATA_BADGE_CRITERIA_TYPE = "type"
DATA_BADGE_CRITERIA_THRESHOLD = "threshold"

# Earned badge record keys
DATA_EARNED_BADGE_USER_ID = "user_id"
DATA_EARNED_BADGE_BADGE_ID = "badge_id"
DATA_EARNED_BADGE_EARNED_AT = "earned_at"

# Criterion types (also the StatsSnapshot keys)
BADGE_CRITERION_NEGATIVE_PELLETS_RECEIVED = "negative_pellets_received"
BADGE_CRITERION_POSITIVE_PELLETS_RECEIVED = "positive_pellets_received"
BADGE_CRITERION_PELLETS_GIVEN = "pellets_given"
BADGE_CRITERION_POSITIVE_PELLETS_GIVEN = "positive_pellets_given"
BADGE_CRITERION_EXP_EARNED = "exp_earned"
BADGE_CRITERION_TYPES: Final = (
    BADGE_CRITERION_NEGATIVE_PELLETS_RECEIVED,
    BADGE_CRITERION_POSITIVE_PELLETS_RECEIVED,
    BADGE_CRITERION_PELLETS_GIVEN,
    BADGE_CRITERION_POSITIVE_PELLETS_GIVEN,
    BADGE_CRITERION_EXP_EARNED,
)

# Rarities
BADGE_RARITY_COMMON = "common"
BADGE_RARITY_UNCOMMON = "uncommon"
BADGE_RARITY_RARE = "rare"
BADGE_RARITY_EPIC = "epic"
BADGE_RARITY_LEGENDARY = "legendary"
BADGE_RARITIES: Final = (
    BADGE_RARITY_COMMON,
    BADGE_RARITY_UNCOMMON,
    BADGE_RARITY_RARE,
    BADGE_RARITY_EPIC,
    BADGE_RARITY_LEGENDARY,
)

# ------------------------------------------------------------------------------------------------
# Shop
# ------------------------------------------------------------------------------------------------
DATA_SHOP_ITEM_ID = "id"
DATA_SHOP_ITEM_NAME = "name"
DATA_SHOP_ITEM_DESCRIPTION = "description"
DATA_SHOP_ITEM_PRICE = "price"
DATA_SHOP_ITEM_PELLET_COUNT = "pellet_count"
DATA_SHOP_ITEM_PELLET_TYPE = "pellet_type"
DATA_SHOP_ITEM_TYPE = "type"

SHOP_ITEM_TYPE_PURCHASE = "purchase"
SHOP_ITEM_TYPE_ERASE = "erase"
SHOP_ITEM_TYPE_DONATION = "donation"
SHOP_ITEM_TYPES: Final = (
    SHOP_ITEM_TYPE_PURCHASE,
    SHOP_ITEM_TYPE_ERASE,
    SHOP_ITEM_TYPE_DONATION,
)

# Store package categories (identifier prefixes from the purchase provider)
SHOP_CATEGORY_PURCHASE_NEGATIVE = "purchase_neg"
SHOP_CATEGORY_PURCHASE_POSITIVE = "purchase_pos"
SHOP_CATEGORY_ERASE = "erase"
SHOP_CATEGORY_DONATION = "donation"
SHOP_PACKAGE_PREFIX_NEGATIVE = "pellet_neg"
SHOP_PACKAGE_PREFIX_POSITIVE = "pellet_pos"
SHOP_PACKAGE_PREFIX_ERASE = "erase"

# ------------------------------------------------------------------------------------------------
# Trend Statistics
# ------------------------------------------------------------------------------------------------
DEFAULT_TREND_WINDOW_DAYS = 30
DEFAULT_TOP_REASONS_LIMIT = 3

# Reported change when the previous window is empty and the recent one is not
TREND_NEW_ACTIVITY_CHANGE_PCT = 100

TREND_UNKNOWN_REASON = "Unknown"

SORT_ORDER_ASC = "asc"
SORT_ORDER_DESC = "desc"
SORT_ORDERS: Final = (SORT_ORDER_ASC, SORT_ORDER_DESC)

ANONYMOUS_DRIVER_PREFIX = "Driver #"
ANONYMOUS_DRIVER_ID_LENGTH = 6

# ------------------------------------------------------------------------------------------------
# Configuration Options
# ------------------------------------------------------------------------------------------------
CONF_STARTING_NEGATIVE_PELLETS = "starting_negative_pellets"
CONF_STARTING_POSITIVE_PELLETS = "starting_positive_pellets"
CONF_TREND_WINDOW_DAYS = "trend_window_days"
CONF_TOP_REASONS_LIMIT = "top_reasons_limit"
CONF_MAX_LEDGER_ENTRIES = "max_ledger_entries"
CONF_MAX_LEDGER_AGE_DAYS = "max_ledger_age_days"

# ------------------------------------------------------------------------------------------------
# Signals (manager notifications)
# ------------------------------------------------------------------------------------------------
SIGNAL_SUFFIX_PELLET_TAGGED = "pellet_tagged"
SIGNAL_SUFFIX_BALANCE_CHANGED = "balance_changed"
SIGNAL_SUFFIX_LEVEL_UP = "level_up"
SIGNAL_SUFFIX_BADGE_EARNED = "badge_earned"
