"""
Pricing Service - portion-level metrics derived from a recipe cost.

All functions are pure. A metric whose precondition is not met (no selling
price, no target food-cost percentage) is None, never NaN or 0, so callers
can tell "no selling price set" apart from "zero margin".

Formulas:
    cost_per_portion = total_cost / max(1, portions)
    food_cost_pct    = cost_per_portion / selling_price * 100       (selling_price > 0)
    margin           = selling_price - cost_per_portion             (selling_price > 0)
    margin_pct       = margin / selling_price * 100                 (selling_price > 0)
    suggested_price  = cost_per_portion / (target_food_cost_pct / 100)
                       with the target clamped to [0.1, 99]         (target > 0)
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from recipe_costing.services.dto import CostResult, RecipeRecord
from recipe_costing.services.dto_utils import clamp, to_float, to_optional_float
from recipe_costing.utils.constants import (
    DEFAULT_CURRENCY,
    MAX_TARGET_FOOD_COST_PCT,
    MIN_TARGET_FOOD_COST_PCT,
)


@dataclass(frozen=True)
class PricingResult:
    """
    Portion-level metrics of a recipe.

    Attributes:
        total_cost: Recipe total the metrics were derived from
        portions: Portions used (>= 1)
        cost_per_portion: total_cost / portions
        food_cost_pct: Cost share of the selling price, None without a selling price
        margin: Selling price minus cost per portion, None without a selling price
        margin_pct: Margin share of the selling price, None without a selling price
        suggested_price: Price that meets the target food cost, None without a target
        currency: Currency of all money fields
    """

    total_cost: float
    portions: float
    cost_per_portion: float
    food_cost_pct: Optional[float]
    margin: Optional[float]
    margin_pct: Optional[float]
    suggested_price: Optional[float]
    currency: str = DEFAULT_CURRENCY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_cost": self.total_cost,
            "portions": self.portions,
            "cost_per_portion": self.cost_per_portion,
            "food_cost_pct": self.food_cost_pct,
            "margin": self.margin,
            "margin_pct": self.margin_pct,
            "suggested_price": self.suggested_price,
            "currency": self.currency,
        }


def calculate_cost_per_portion(total_cost: float, portions: Any) -> float:
    """Total cost divided by max(1, portions)."""
    return to_float(total_cost, 0.0) / max(1.0, to_float(portions, 1.0))


def calculate_suggested_price(
    cost_per_portion: float, target_food_cost_pct: Optional[float]
) -> Optional[float]:
    """
    Selling price at which the portion cost equals the target food-cost share.

    Args:
        cost_per_portion: Cost of one portion
        target_food_cost_pct: Desired food cost in percent; clamped to [0.1, 99]

    Returns:
        Suggested price, or None when no positive target is set

    Example:
        >>> calculate_suggested_price(3.0, 30)
        10.0
    """
    target = to_optional_float(target_food_cost_pct)
    if target is None or target <= 0:
        return None
    target = clamp(target, MIN_TARGET_FOOD_COST_PCT, MAX_TARGET_FOOD_COST_PCT)
    return cost_per_portion / (target / 100)


def calculate_pricing(
    total_cost: float,
    portions: Any = 1,
    selling_price: Optional[float] = None,
    target_food_cost_pct: Optional[float] = None,
    currency: str = DEFAULT_CURRENCY,
) -> PricingResult:
    """
    Derive portion-level metrics from a recipe total.

    Args:
        total_cost: Recipe total cost
        portions: Portions per batch (values below 1 count as 1)
        selling_price: Menu price of one portion, if set
        target_food_cost_pct: Desired food-cost percentage, if set
        currency: Currency of the money fields

    Returns:
        PricingResult

    Example:
        >>> result = calculate_pricing(1.0, portions=4, selling_price=1.0)
        >>> result.cost_per_portion, result.food_cost_pct, result.margin
        (0.25, 25.0, 0.75)
    """
    total = to_float(total_cost, 0.0)
    used_portions = max(1.0, to_float(portions, 1.0))
    cost_per_portion = total / used_portions

    price = to_optional_float(selling_price)
    if price is not None and price > 0:
        food_cost_pct = cost_per_portion / price * 100
        margin = price - cost_per_portion
        margin_pct = margin / price * 100
    else:
        food_cost_pct = None
        margin = None
        margin_pct = None

    return PricingResult(
        total_cost=total,
        portions=used_portions,
        cost_per_portion=cost_per_portion,
        food_cost_pct=food_cost_pct,
        margin=margin,
        margin_pct=margin_pct,
        suggested_price=calculate_suggested_price(cost_per_portion, target_food_cost_pct),
        currency=currency or DEFAULT_CURRENCY,
    )


def price_recipe(recipe: RecipeRecord, cost_result: CostResult) -> PricingResult:
    """Derive pricing metrics for a recipe from its aggregated cost."""
    return calculate_pricing(
        cost_result.total_cost,
        portions=recipe.portions,
        selling_price=recipe.selling_price,
        target_food_cost_pct=recipe.target_food_cost_pct,
        currency=recipe.currency,
    )
