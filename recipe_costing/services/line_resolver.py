"""
Line Resolver - quantities and cost of a single recipe line.

Gross/yield rules:
- gross_override > 0: gross = gross_override and the yield is derived,
  yield_pct = clamp(net / gross * 100, 0.0001, 100); the stored yield is ignored
- otherwise: gross = net / (yield_percent / 100) with the stored yield clamped
  into (0, 100]

Cost rules:
- Ingredient line: gross converted into the ingredient's pack unit, times the
  ingredient's net unit cost
- Sub-recipe line: gross converted into the sub-recipe's yield unit, times
  (sub-recipe total cost / yield quantity). The sub-recipe total is supplied
  by the caller; it is never computed here.
- Group line: no cost

Every problem becomes a CostWarning and a zero cost for this line only.
"""

from typing import Callable, Dict, List, Optional, Tuple

from recipe_costing.services.dto import (
    CostWarning,
    LineType,
    RecipeLineRecord,
    ResolvedLine,
    SubRecipeCost,
    WarningKind,
)
from recipe_costing.services.dto_utils import clamp, to_float, to_optional_float
from recipe_costing.services.ingredient_cost_index import IngredientCostIndex
from recipe_costing.services.unit_converter import convert_units
from recipe_costing.utils.constants import MAX_YIELD_PERCENT, MIN_YIELD_PERCENT


def resolve_quantities(line: RecipeLineRecord) -> Tuple[float, float, float]:
    """
    Compute net, gross and effective yield of a line.

    Invalid stored values are clamped rather than rejected: a negative or
    non-finite net becomes 0, a non-finite yield becomes 100.

    Returns:
        Tuple of (net, gross, yield_pct)

    Example:
        >>> line = RecipeLineRecord(id=1, recipe_id=1, net_qty=1, gross_override=2, yield_percent=90)
        >>> resolve_quantities(line)
        (1.0, 2.0, 50.0)
    """
    net = max(0.0, to_float(line.net_qty, 0.0))
    override = to_optional_float(line.gross_override)

    if override is not None and override > 0:
        gross = override
        yield_pct = clamp(net / gross * 100, MIN_YIELD_PERCENT, MAX_YIELD_PERCENT)
    else:
        yield_pct = clamp(to_float(line.yield_percent, 100.0), MIN_YIELD_PERCENT, MAX_YIELD_PERCENT)
        gross = net / (yield_pct / 100)

    return net, gross, yield_pct


def _warning(line: RecipeLineRecord, kind: WarningKind, message: str) -> CostWarning:
    return CostWarning(
        kind=kind,
        message=f"Recipe {line.recipe_id}: {message}",
        recipe_id=line.recipe_id,
        line_id=line.id,
    )


def _resolve_ingredient_line(
    line: RecipeLineRecord,
    gross: float,
    index: IngredientCostIndex,
    sub_recipe_cost: Optional[SubRecipeCost],
) -> Tuple[float, float, List[CostWarning]]:
    warnings = []
    ingredient = index.lookup(line.ingredient_id)
    if ingredient is None:
        warnings.append(
            _warning(line, WarningKind.MISSING_REFERENCE, f"ingredient {line.ingredient_id} not found")
        )
        return 0.0, 0.0, warnings

    label = ingredient.name or ingredient.id
    if not ingredient.active:
        warnings.append(_warning(line, WarningKind.INACTIVE_INGREDIENT, f"ingredient '{label}' is inactive"))

    unit_cost = to_float(ingredient.net_unit_cost, 0.0)
    if unit_cost <= 0:
        warnings.append(_warning(line, WarningKind.MISSING_PRICE, f"ingredient '{label}' has no price"))
        return 0.0, 0.0, warnings

    success, quantity_in_pack_units, error = convert_units(gross, line.unit, ingredient.pack_unit)
    if not success:
        warnings.append(_warning(line, WarningKind.INCOMPATIBLE_UNITS, f"ingredient '{label}': {error}"))
        return unit_cost, 0.0, warnings

    return unit_cost, quantity_in_pack_units * unit_cost, warnings


def _resolve_sub_recipe_line(
    line: RecipeLineRecord,
    gross: float,
    index: IngredientCostIndex,
    sub_recipe_cost: Optional[SubRecipeCost],
) -> Tuple[float, float, List[CostWarning]]:
    if sub_recipe_cost is None:
        return 0.0, 0.0, [
            _warning(line, WarningKind.MISSING_REFERENCE, f"sub-recipe {line.sub_recipe_id} not found")
        ]

    label = sub_recipe_cost.name or sub_recipe_cost.recipe_id
    yield_qty = to_float(sub_recipe_cost.yield_qty, 0.0)
    yield_unit = (sub_recipe_cost.yield_unit or "").strip()
    if yield_qty <= 0 or not yield_unit:
        return 0.0, 0.0, [
            _warning(line, WarningKind.INVALID_YIELD, f"sub-recipe '{label}' has no yield quantity/unit")
        ]

    success, quantity_in_yield_units, error = convert_units(gross, line.unit, yield_unit)
    if not success:
        return 0.0, 0.0, [
            _warning(line, WarningKind.INCOMPATIBLE_UNITS, f"sub-recipe '{label}': {error}")
        ]

    cost_per_yield_unit = to_float(sub_recipe_cost.total_cost, 0.0) / yield_qty
    return cost_per_yield_unit, quantity_in_yield_units * cost_per_yield_unit, []


def _resolve_group_line(
    line: RecipeLineRecord,
    gross: float,
    index: IngredientCostIndex,
    sub_recipe_cost: Optional[SubRecipeCost],
) -> Tuple[float, float, List[CostWarning]]:
    return 0.0, 0.0, []


_LINE_RESOLVERS: Dict[LineType, Callable] = {
    LineType.INGREDIENT: _resolve_ingredient_line,
    LineType.SUB_RECIPE: _resolve_sub_recipe_line,
    LineType.GROUP: _resolve_group_line,
}


def resolve_line(
    line: RecipeLineRecord,
    index: IngredientCostIndex,
    sub_recipe_cost: Optional[SubRecipeCost] = None,
) -> ResolvedLine:
    """
    Resolve one recipe line into quantities and cost.

    Args:
        line: Line to resolve
        index: Ingredient prices for this costing pass
        sub_recipe_cost: Total cost and yield of the referenced sub-recipe,
            already computed by the aggregator (SUB_RECIPE lines only;
            None means the sub-recipe could not be found)

    Returns:
        ResolvedLine with net, gross, yield_pct, unit_cost, line_cost, warnings
    """
    net, gross, yield_pct = resolve_quantities(line)
    if line.line_type is LineType.GROUP:
        net, gross = 0.0, 0.0

    unit_cost, line_cost, warnings = _LINE_RESOLVERS[line.line_type](
        line, gross, index, sub_recipe_cost
    )

    return ResolvedLine(
        line_id=line.id,
        line_type=line.line_type,
        net=net,
        gross=gross,
        yield_pct=yield_pct,
        unit_cost=unit_cost,
        line_cost=line_cost,
        warnings=tuple(warnings),
    )
