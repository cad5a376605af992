"""
Constants for the recipe costing application.

This module defines all system-wide constants including:
- Application metadata
- Unit families and conversion factors
- Clamping limits used by the costing engine
- Cost history and batch defaults
"""

from typing import Dict, List

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME = "Recipe Costing"
APP_VERSION = "0.1.0"
DATABASE_VERSION = "1.0"
DATABASE_FILENAME = "recipe_costing.db"

# ============================================================================
# Unit Families
# ============================================================================

# Mass conversions to grams (base unit)
MASS_TO_GRAMS: Dict[str, float] = {
    "g": 1.0,
    "kg": 1000.0,
}

# Volume conversions to milliliters (base unit)
VOLUME_TO_ML: Dict[str, float] = {
    "ml": 1.0,
    "l": 1000.0,
}

# Count units only convert to themselves
COUNT_TO_PIECES: Dict[str, float] = {
    "pcs": 1.0,
}

ALL_UNITS: List[str] = list(MASS_TO_GRAMS) + list(VOLUME_TO_ML) + list(COUNT_TO_PIECES)

# Empty or unrecognized units are read as grams
DEFAULT_UNIT = "g"

# ============================================================================
# Engine Limits
# ============================================================================

MIN_YIELD_PERCENT = 0.0001
MAX_YIELD_PERCENT = 100.0

# Target food-cost percentage is clamped into this range before pricing
MIN_TARGET_FOOD_COST_PCT = 0.1
MAX_TARGET_FOOD_COST_PCT = 99.0
DEFAULT_TARGET_FOOD_COST_PCT = 30.0

DEFAULT_MAX_RECIPE_DEPTH = 32
# Hard ceiling: deeper settings would hit the interpreter recursion limit
MAX_RECIPE_DEPTH_LIMIT = 256

# ============================================================================
# Cost History
# ============================================================================

DEFAULT_HISTORY_LIMIT = 60
COST_HISTORY_PAYLOAD_VERSION = 1
MONEY_TOLERANCE = 1e-9

DEFAULT_CURRENCY = "USD"

# ============================================================================
# Batch Processing
# ============================================================================

DEFAULT_BATCH_WORKERS = 4

# ============================================================================
# Dashboard Diagnostics
# ============================================================================

TOP_RECIPES_LIMIT = 5
OUTLIER_TOTAL_COST = 10000.0

# Net unit cost above these values per pack unit usually means a unit mix-up
SANITY_LIMITS: Dict[str, float] = {
    "g": 1.0,
    "ml": 1.0,
    "kg": 200.0,
    "l": 200.0,
    "pcs": 500.0,
}
