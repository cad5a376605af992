"""
Costing Data Service - loads CostingSnapshot objects from the database.

The costing engine never touches the database. This service reads the rows
it needs, converts them into immutable engine records and hands back a
CostingSnapshot, so a whole computation runs against one consistent set of
prices.

Session Management Pattern:
- All public functions accept session=None parameter
- If session provided, use it directly
- If session is None, create a new session via session_scope()
"""

from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from recipe_costing.models import Ingredient, Recipe, RecipeLine
from recipe_costing.services.cost_aggregator import RecipeCostAggregator
from recipe_costing.services.database import session_scope
from recipe_costing.services.dto import (
    CostingSnapshot,
    CostResult,
    IngredientRecord,
    RecipeLineRecord,
    RecipeRecord,
)
from recipe_costing.services.dto_utils import cost_to_string
from recipe_costing.services.exceptions import DatabaseError, RecipeNotFound
from recipe_costing.services.pricing_service import price_recipe


def load_costing_snapshot(session: Session = None) -> CostingSnapshot:
    """
    Load every recipe, line and ingredient into one snapshot.

    Used by list pages and dashboards that cost many recipes at once.

    Args:
        session: Optional SQLAlchemy session for transaction sharing

    Returns:
        CostingSnapshot

    Raises:
        DatabaseError: If the database cannot be read
    """
    if session is not None:
        return _load_costing_snapshot_impl(session)

    try:
        with session_scope() as session:
            return _load_costing_snapshot_impl(session)
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to load costing snapshot", original_error=e)


def _load_costing_snapshot_impl(session: Session) -> CostingSnapshot:
    recipes = [r.to_record() for r in session.query(Recipe).all()]
    lines = [line.to_record() for line in session.query(RecipeLine).all()]
    ingredients = [i.to_record() for i in session.query(Ingredient).all()]
    return CostingSnapshot.build(recipes, lines, ingredients)


def load_recipe_snapshot(recipe_id: int, session: Session = None) -> CostingSnapshot:
    """
    Load one recipe and everything reachable from it.

    Walks the sub-recipe graph through CostingSnapshot.collect(), so only
    the rows needed to cost recipe_id are read.

    Args:
        recipe_id: Root recipe
        session: Optional SQLAlchemy session for transaction sharing

    Returns:
        CostingSnapshot (empty if the recipe does not exist)

    Raises:
        DatabaseError: If the database cannot be read
    """
    if session is not None:
        return _load_recipe_snapshot_impl(recipe_id, session)

    try:
        with session_scope() as session:
            return _load_recipe_snapshot_impl(recipe_id, session)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to load snapshot for recipe {recipe_id}", original_error=e)


def _load_recipe_snapshot_impl(recipe_id: int, session: Session) -> CostingSnapshot:
    def fetch_recipe(rid) -> Optional[RecipeRecord]:
        recipe = session.query(Recipe).filter_by(id=rid).first()
        return recipe.to_record() if recipe else None

    def fetch_lines(rid) -> List[RecipeLineRecord]:
        rows = session.query(RecipeLine).filter_by(recipe_id=rid).all()
        return [row.to_record() for row in rows]

    def fetch_ingredients(ids: List[Any]) -> Iterable[IngredientRecord]:
        rows = session.query(Ingredient).filter(Ingredient.id.in_(ids)).all()
        return [row.to_record() for row in rows]

    return CostingSnapshot.collect([recipe_id], fetch_recipe, fetch_lines, fetch_ingredients)


def compute_recipe_cost(recipe_id: int, session: Session = None) -> CostResult:
    """
    Load and cost one recipe.

    Args:
        recipe_id: Recipe to cost
        session: Optional SQLAlchemy session for transaction sharing

    Returns:
        CostResult

    Raises:
        RecipeNotFound: If the recipe does not exist
        DatabaseError: If the database cannot be read
    """
    snapshot = load_recipe_snapshot(recipe_id, session=session)
    return RecipeCostAggregator(snapshot).compute_cost(recipe_id)


def get_recipe_with_costs(recipe_id: int, session: Session = None) -> Dict[str, Any]:
    """
    Recipe data with its cost breakdown and pricing metrics.

    Returns:
        Dictionary with "recipe", "cost", "pricing" and display strings
        "total_cost_display" / "cost_per_portion_display"

    Raises:
        RecipeNotFound: If the recipe does not exist
        DatabaseError: If the database cannot be read
    """
    snapshot = load_recipe_snapshot(recipe_id, session=session)
    recipe = snapshot.get_recipe(recipe_id)
    if recipe is None:
        raise RecipeNotFound(recipe_id)

    cost_result = RecipeCostAggregator(snapshot).compute_cost(recipe_id)
    pricing = price_recipe(recipe, cost_result)

    return {
        "recipe": recipe.to_dict(),
        "cost": cost_result.to_dict(),
        "pricing": pricing.to_dict(),
        "total_cost_display": cost_to_string(cost_result.total_cost),
        "cost_per_portion_display": cost_to_string(pricing.cost_per_portion),
    }
