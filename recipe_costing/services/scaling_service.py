"""Scaling Service - rescale recipe quantities to a different number of servings."""

from dataclasses import replace
from typing import Iterable, List

from recipe_costing.services.dto import LineType, RecipeLineRecord
from recipe_costing.services.dto_utils import to_optional_float

# Kitchen precision
SCALE_DECIMALS = 3


def scale_quantity(qty: float, from_servings: float, to_servings: float) -> float:
    """
    Scale a quantity by to_servings / from_servings.

    A non-numeric quantity scales to 0. Invalid servings (missing, <= 0)
    leave the quantity unchanged.

    Example:
        >>> scale_quantity(250, 4, 6)
        375.0
    """
    q = to_optional_float(qty)
    if q is None:
        return 0.0

    a = to_optional_float(from_servings)
    b = to_optional_float(to_servings)
    if a is None or a <= 0 or b is None or b <= 0:
        return q

    return round(q * (b / a), SCALE_DECIMALS)


def scale_lines(
    lines: Iterable[RecipeLineRecord], from_servings: float, to_servings: float
) -> List[RecipeLineRecord]:
    """
    Scaled copies of recipe lines (net quantity and gross override).

    Group lines are returned unchanged; yield percentages never scale.
    """
    scaled = []
    for line in lines:
        if line.line_type is LineType.GROUP:
            scaled.append(line)
            continue
        override = line.gross_override
        if override is not None:
            override = scale_quantity(override, from_servings, to_servings)
        scaled.append(
            replace(
                line,
                net_qty=scale_quantity(line.net_qty, from_servings, to_servings),
                gross_override=override,
            )
        )
    return scaled
