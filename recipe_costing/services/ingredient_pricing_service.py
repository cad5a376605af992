"""
Ingredient Pricing Service - net unit cost of purchased ingredients.

An ingredient is bought in packs (pack_price for pack_size pack_units). The
costing engine only reads net_unit_cost: the cost of one pack unit after
supplier yield loss (peel, bones, drip loss).

    gross_unit_cost = pack_price / pack_size
    net_unit_cost   = gross_unit_cost / (supplier_yield_percent / 100)

Session Management Pattern:
- Functions that touch the database accept session=None
- If session is None, a new session is created via session_scope()
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from recipe_costing.models import Ingredient
from recipe_costing.services.database import session_scope
from recipe_costing.services.dto import IngredientRecord
from recipe_costing.services.dto_utils import to_optional_float
from recipe_costing.services.exceptions import DatabaseError, IngredientNotFound, ValidationError
from recipe_costing.services.unit_converter import normalize_unit
from recipe_costing.utils.constants import MAX_YIELD_PERCENT, SANITY_LIMITS

# Net unit costs are stored with micro-unit precision
NET_UNIT_COST_DECIMALS = 6


@dataclass(frozen=True)
class IngredientCosts:
    """Unit costs derived from pack data."""

    gross_unit_cost: float
    net_unit_cost: float


def calculate_net_unit_cost(
    pack_price: float, pack_size: float, yield_percent: float = 100.0
) -> IngredientCosts:
    """
    Derive unit costs from pack data.

    Args:
        pack_price: Price paid for one pack (>= 0)
        pack_size: Pack size in pack units (> 0)
        yield_percent: Supplier yield, 0 < y <= 100 (default: no loss)

    Returns:
        IngredientCosts

    Raises:
        ValidationError: If any input is missing or out of range

    Example:
        >>> calculate_net_unit_cost(10.0, 5.0, 80)
        IngredientCosts(gross_unit_cost=2.0, net_unit_cost=2.5)
    """
    errors = []
    price = to_optional_float(pack_price)
    size = to_optional_float(pack_size)
    yield_pct = to_optional_float(yield_percent)

    if price is None or price < 0:
        errors.append("Pack price must be a non-negative number")
    if size is None or size <= 0:
        errors.append("Pack size must be greater than zero")
    if yield_pct is None or yield_pct <= 0 or yield_pct > MAX_YIELD_PERCENT:
        errors.append("Yield percent must be greater than 0 and at most 100")
    if errors:
        raise ValidationError(errors)

    gross = price / size
    net = gross / (yield_pct / 100)
    return IngredientCosts(
        gross_unit_cost=round(gross, NET_UNIT_COST_DECIMALS),
        net_unit_cost=round(net, NET_UNIT_COST_DECIMALS),
    )


def sanity_flag(net_unit_cost: Optional[float], pack_unit: Optional[str]) -> Tuple[str, str]:
    """
    Flag implausible unit costs, usually a pack unit entered wrongly.

    A hint, never a blocker.

    Returns:
        Tuple of (level, message) where level is "missing", "warn" or "ok"

    Example:
        >>> sanity_flag(4.5, "g")
        ('warn', 'Looks too high per g (unit mismatch?)')
    """
    value = to_optional_float(net_unit_cost)
    if value is None or value <= 0:
        return "missing", "Missing cost"

    unit = normalize_unit(pack_unit)
    limit = SANITY_LIMITS.get(unit)
    if limit is not None and value > limit:
        if unit in ("g", "ml"):
            return "warn", f"Looks too high per {unit} (unit mismatch?)"
        return "warn", f"Looks too high per {unit}"
    return "ok", ""


def calculate_ingredient_costs(ingredient: Ingredient) -> IngredientCosts:
    """Unit costs of an Ingredient row from its pack columns."""
    yield_pct = ingredient.supplier_yield_percent
    return calculate_net_unit_cost(
        ingredient.pack_price,
        ingredient.pack_size,
        100.0 if yield_pct is None else yield_pct,
    )


def update_net_unit_cost(
    ingredient_id: int, net_unit_cost: float, session: Session = None
) -> IngredientRecord:
    """
    Persist a new net unit cost for an ingredient.

    Args:
        ingredient_id: Ingredient to update
        net_unit_cost: New cost per pack unit (>= 0)
        session: Optional SQLAlchemy session for transaction sharing

    Returns:
        Updated IngredientRecord

    Raises:
        ValidationError: If net_unit_cost is negative or not a number
        IngredientNotFound: If the ingredient does not exist
        DatabaseError: If the update fails
    """
    value = to_optional_float(net_unit_cost)
    if value is None or value < 0:
        raise ValidationError(["Net unit cost must be a non-negative number"])

    if session is not None:
        return _update_net_unit_cost_impl(ingredient_id, value, session)

    try:
        with session_scope() as session:
            return _update_net_unit_cost_impl(ingredient_id, value, session)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to update ingredient {ingredient_id}", original_error=e)


def _update_net_unit_cost_impl(ingredient_id: int, value: float, session: Session) -> IngredientRecord:
    ingredient = session.query(Ingredient).filter_by(id=ingredient_id).first()
    if ingredient is None:
        raise IngredientNotFound(ingredient_id)

    ingredient.net_unit_cost = value
    session.flush()
    return ingredient.to_record()
