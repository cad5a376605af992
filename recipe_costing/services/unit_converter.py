"""
Unit conversion for the costing engine.

Conversion Strategy:
- Mass units convert through grams (base unit): g, kg
- Volume units convert through milliliters (base unit): ml, l
- Count units (pcs) only convert to themselves
- Units never convert across families (no densities)

Unit strings are normalized (trimmed, lower-cased); an empty or
unrecognized unit is read as grams.

Conversions return (success, value, error) instead of raising so callers
can decide whether an incompatible pair is fatal. The cost aggregator
treats it as a warning plus a zero contribution for that line.
"""

import math
from typing import Optional, Tuple

from recipe_costing.utils.constants import (
    COUNT_TO_PIECES,
    DEFAULT_UNIT,
    MASS_TO_GRAMS,
    VOLUME_TO_ML,
)

UNIT_TABLES = {
    "mass": MASS_TO_GRAMS,
    "volume": VOLUME_TO_ML,
    "count": COUNT_TO_PIECES,
}


def normalize_unit(unit: Optional[str]) -> str:
    """
    Normalize a unit string.

    Args:
        unit: Raw unit (e.g., " KG ", "", None)

    Returns:
        Lower-cased known unit, or "g" when empty or unrecognized
    """
    text = (unit or "").strip().lower()
    if get_conversion_table(text) is None:
        return DEFAULT_UNIT
    return text


def get_conversion_table(unit: str) -> Optional[dict]:
    """
    Get the conversion table for an already-normalized unit.

    Returns:
        Conversion table dict, or None if unit not found
    """
    for table in UNIT_TABLES.values():
        if unit in table:
            return table
    return None


def get_unit_type(unit: Optional[str]) -> str:
    """
    Determine the family of a unit.

    Returns:
        "mass", "volume" or "count" (unknown units normalize to grams)
    """
    normalized = normalize_unit(unit)
    for unit_type, table in UNIT_TABLES.items():
        if normalized in table:
            return unit_type
    return "mass"


def units_compatible(unit1: Optional[str], unit2: Optional[str]) -> bool:
    """Check if two units belong to the same family."""
    return get_unit_type(unit1) == get_unit_type(unit2)


def convert_units(
    value: float, from_unit: Optional[str], to_unit: Optional[str]
) -> Tuple[bool, float, str]:
    """
    Convert a quantity between two units of the same family.

    Args:
        value: Quantity to convert
        from_unit: Source unit (e.g., "g")
        to_unit: Target unit (e.g., "kg")

    Returns:
        Tuple of (success, converted_value, error_message)
        - success: True if conversion successful
        - converted_value: Result (0.0 if failed)
        - error_message: Error description (empty string if successful)

    Example:
        >>> convert_units(500, "g", "kg")
        (True, 0.5, '')
        >>> convert_units(1, "g", "ml")[0]
        False
    """
    if value is None or not math.isfinite(value):
        return False, 0.0, "Quantity must be a finite number"
    if value < 0:
        return False, 0.0, "Quantity cannot be negative"

    source = normalize_unit(from_unit)
    target = normalize_unit(to_unit)

    if source == target:
        return True, float(value), ""

    conversion_table = get_conversion_table(source)
    if target not in conversion_table:
        return (
            False,
            0.0,
            f"Cannot convert {source} to {target}: incompatible unit types",
        )

    base_value = value * conversion_table[source]
    return True, base_value / conversion_table[target], ""


def format_conversion(value: float, from_unit: str, to_unit: str, precision: int = 2) -> str:
    """
    Format a unit conversion for display.

    Returns:
        Formatted string (e.g., "500 g = 0.50 kg"), or an error message
    """
    success, converted, error = convert_units(value, from_unit, to_unit)

    if not success:
        return f"Error: {error}"

    return f"{value:g} {normalize_unit(from_unit)} = {converted:.{precision}f} {normalize_unit(to_unit)}"
