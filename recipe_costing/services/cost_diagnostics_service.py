"""
Cost Diagnostics Service - kitchen-wide cost summary for dashboards.

Costs every recipe of a snapshot and reports the figures a kitchen manager
checks first: averages, most and least expensive recipes, and the data
problems that make costs unreliable (sub-recipes without a yield,
ingredients without a price, warnings by kind).

Archived recipes are left out of every figure.
"""

import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from recipe_costing.services.batch_costing_service import compute_costs
from recipe_costing.services.dto import CostingSnapshot, CostResult, LineType, RecordId
from recipe_costing.services.ingredient_cost_index import IngredientCostIndex
from recipe_costing.services.pricing_service import calculate_cost_per_portion
from recipe_costing.utils.constants import OUTLIER_TOTAL_COST, TOP_RECIPES_LIMIT


@dataclass(frozen=True)
class RecipeCostRow:
    """One recipe's totals as shown in dashboard lists."""

    recipe_id: RecordId
    name: str
    total_cost: float
    cost_per_portion: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recipe_id": self.recipe_id,
            "name": self.name,
            "total_cost": self.total_cost,
            "cost_per_portion": self.cost_per_portion,
        }


@dataclass(frozen=True)
class CostSummary:
    """
    Dashboard figures over all active (non-archived) recipes.

    Attributes:
        active_recipe_count: Non-archived recipes
        sub_recipe_count: Non-archived recipes flagged as sub-recipes
        total_active_cost: Sum of all active recipe totals
        average_cost_per_portion: Mean cost per portion (0 without recipes)
        most_expensive: Recipe with the highest total
        least_expensive: Recipe with the lowest total
        top_recipes: Highest totals, most expensive first
        sub_recipes_missing_yield: Active sub-recipes without a usable yield
        ingredients_missing_cost: Distinct ingredient ids used by active
            recipes that are unknown or have no positive net unit cost
        warnings_by_kind: Warning counts keyed by WarningKind value
        has_outliers: True if any top recipe costs more than the outlier threshold
    """

    active_recipe_count: int = 0
    sub_recipe_count: int = 0
    total_active_cost: float = 0.0
    average_cost_per_portion: float = 0.0
    most_expensive: Optional[RecipeCostRow] = None
    least_expensive: Optional[RecipeCostRow] = None
    top_recipes: Tuple[RecipeCostRow, ...] = ()
    sub_recipes_missing_yield: Tuple[RecordId, ...] = ()
    ingredients_missing_cost: Tuple[RecordId, ...] = ()
    warnings_by_kind: Dict[str, int] = field(default_factory=dict)
    has_outliers: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "active_recipe_count": self.active_recipe_count,
            "sub_recipe_count": self.sub_recipe_count,
            "total_active_cost": self.total_active_cost,
            "average_cost_per_portion": self.average_cost_per_portion,
            "most_expensive": self.most_expensive.to_dict() if self.most_expensive else None,
            "least_expensive": self.least_expensive.to_dict() if self.least_expensive else None,
            "top_recipes": [row.to_dict() for row in self.top_recipes],
            "sub_recipes_missing_yield": list(self.sub_recipes_missing_yield),
            "ingredients_missing_cost": list(self.ingredients_missing_cost),
            "warnings_by_kind": dict(self.warnings_by_kind),
            "has_outliers": self.has_outliers,
        }


def summarize_costs(
    snapshot: CostingSnapshot,
    cost_results: Optional[Mapping[RecordId, CostResult]] = None,
    max_workers: Optional[int] = None,
) -> CostSummary:
    """
    Build the dashboard summary of a snapshot.

    Args:
        snapshot: Snapshot of all recipes, lines and ingredients
        cost_results: Already computed results (computed here when omitted)
        max_workers: Worker threads when computing

    Returns:
        CostSummary
    """
    active = [r for r in snapshot.recipes.values() if not r.is_archived]
    if not active:
        return CostSummary()

    if cost_results is None:
        cost_results = compute_costs(snapshot, [r.id for r in active], max_workers=max_workers)

    rows: List[RecipeCostRow] = []
    warning_counts: Counter = Counter()
    for recipe in active:
        result = cost_results[recipe.id]
        rows.append(
            RecipeCostRow(
                recipe_id=recipe.id,
                name=recipe.name,
                total_cost=result.total_cost,
                cost_per_portion=calculate_cost_per_portion(result.total_cost, recipe.portions),
            )
        )
        warning_counts.update(w.kind.value for w in result.warnings)

    # max/min keep the first of equal totals
    most_expensive = max(rows, key=lambda row: row.total_cost)
    least_expensive = min(rows, key=lambda row: row.total_cost)
    top_recipes = tuple(sorted(rows, key=lambda row: row.total_cost, reverse=True)[:TOP_RECIPES_LIMIT])

    active_ids = {r.id for r in active}
    index = IngredientCostIndex(snapshot.ingredients)
    missing_cost: List[RecordId] = []
    for line in snapshot.all_lines:
        if line.recipe_id not in active_ids or line.line_type is not LineType.INGREDIENT:
            continue
        if line.ingredient_id is None or line.ingredient_id in missing_cost:
            continue
        ingredient = index.lookup(line.ingredient_id)
        if ingredient is None or not ingredient.net_unit_cost > 0:
            missing_cost.append(line.ingredient_id)

    return CostSummary(
        active_recipe_count=len(active),
        sub_recipe_count=sum(1 for r in active if r.is_sub_recipe),
        total_active_cost=math.fsum(row.total_cost for row in rows),
        average_cost_per_portion=math.fsum(row.cost_per_portion for row in rows) / len(rows),
        most_expensive=most_expensive,
        least_expensive=least_expensive,
        top_recipes=top_recipes,
        sub_recipes_missing_yield=tuple(
            r.id for r in active if r.is_sub_recipe and not r.has_valid_yield
        ),
        ingredients_missing_cost=tuple(missing_cost),
        warnings_by_kind=dict(warning_counts),
        has_outliers=any(row.total_cost > OUTLIER_TOTAL_COST for row in top_recipes),
    )
