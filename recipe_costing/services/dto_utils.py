"""DTO utilities for service layer.

Provides the numeric coercion helpers used at the boundary between loosely
typed persisted data and the costing engine, plus standardized cost
formatting for display and JSON output.
"""

import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Mapping, Optional, Union


def to_float(value: Any, default: float = 0.0) -> float:
    """
    Coerce a persisted value to a finite float.

    Args:
        value: Anything read from storage (number, numeric string, None, ...)
        default: Returned when the value is missing, unparsable or not finite

    Returns:
        Finite float

    Examples:
        >>> to_float("2.5")
        2.5
        >>> to_float(None, 100.0)
        100.0
        >>> to_float(float("nan"))
        0.0
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    return result if math.isfinite(result) else default


def to_optional_float(value: Any) -> Optional[float]:
    """Coerce to a finite float, keeping None for missing or invalid values."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]."""
    return min(high, max(low, value))


def pick(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """
    Return the first non-None value among several candidate keys.

    Used by from_dict() constructors to accept both snake_case and the
    camelCase keys of the legacy storage format.
    """
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return default


def cost_to_string(value: Union[Decimal, float, int, str, None]) -> str:
    """
    Convert a cost value to a 2-decimal string format.

    Args:
        value: Cost value (Decimal, float, int, str, or None)

    Returns:
        String formatted as "12.34" (2 decimal places).
        Returns "0.00" if value is None.

    Examples:
        >>> cost_to_string(Decimal("12.345"))
        '12.35'
        >>> cost_to_string(None)
        '0.00'
    """
    if value is None:
        return "0.00"

    decimal_value = Decimal(str(value))
    rounded = decimal_value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return str(rounded)


def percent_to_string(value: Optional[float]) -> str:
    """Format an optional percentage for display ("25.0%" or "n/a")."""
    if value is None:
        return "n/a"
    return f"{value:.1f}%"
