"""
Recipe Cost Aggregator - recursive cost of a recipe and its sub-recipes.

The aggregator walks a recipe's lines depth-first. Sub-recipe lines are
costed by first computing the referenced recipe's total with a recursive
call, then letting the line resolver scale that total by the line's
quantity in the sub-recipe's yield unit.

Failure handling:
- Cycles: each recursive call receives the set of its ancestors. A recipe
  that is already on the current path yields cost 0 and a
  "cycle detected at <id>" warning. Sibling lines that reuse the same
  sub-recipe (diamonds) are not cycles and are each computed independently.
- Depth: nesting deeper than the configured maximum yields a warning and a
  zero contribution instead of a RecursionError.
- Missing references, missing prices, invalid yields and incompatible units
  are warnings with a zero contribution for the affected line only.

Only a top-level call for an unknown recipe id raises (RecipeNotFound).

Example:
    >>> snapshot = CostingSnapshot.build(recipes, lines, ingredients)
    >>> result = RecipeCostAggregator(snapshot).compute_cost("bread")
    >>> result.total_cost, result.warning_messages
"""

import logging
import math
from typing import Callable, FrozenSet, Iterable, List, Optional, Tuple

from recipe_costing.services.dto import (
    CostingSnapshot,
    CostResult,
    CostWarning,
    IngredientRecord,
    LineType,
    RecipeLineRecord,
    RecipeRecord,
    RecordId,
    ResolvedLine,
    SubRecipeCost,
    WarningKind,
    dedupe_warnings,
)
from recipe_costing.services.exceptions import RecipeNotFound
from recipe_costing.services.ingredient_cost_index import IngredientCostIndex
from recipe_costing.services.line_resolver import resolve_line, resolve_quantities
from recipe_costing.services.logging_utils import get_service_logger, log_operation
from recipe_costing.utils.config import get_config
from recipe_costing.utils.constants import MAX_RECIPE_DEPTH_LIMIT

logger = get_service_logger(__name__)


class RecipeCostAggregator:
    """
    Computes recipe costs over one immutable CostingSnapshot.

    The aggregator holds no mutable state between calls; computing the same
    recipe twice on the same snapshot returns identical results.
    """

    def __init__(self, snapshot: CostingSnapshot, max_depth: Optional[int] = None):
        """
        Args:
            snapshot: Recipes, lines and ingredients for this computation
            max_depth: Maximum sub-recipe nesting (default: Config.max_recipe_depth),
                capped at MAX_RECIPE_DEPTH_LIMIT
        """
        self._snapshot = snapshot
        if max_depth is None:
            max_depth = get_config().max_recipe_depth
        self._max_depth = min(max_depth, MAX_RECIPE_DEPTH_LIMIT)

    @classmethod
    def from_loader(
        cls,
        root_ids: Iterable[RecordId],
        fetch_recipe: Callable[[RecordId], Optional[RecipeRecord]],
        fetch_lines: Callable[[RecordId], Iterable[RecipeLineRecord]],
        fetch_ingredients: Callable[[List[RecordId]], Iterable[IngredientRecord]],
        max_depth: Optional[int] = None,
    ) -> "RecipeCostAggregator":
        """Collect a snapshot through loader callbacks, then build an aggregator on it."""
        snapshot = CostingSnapshot.collect(root_ids, fetch_recipe, fetch_lines, fetch_ingredients)
        return cls(snapshot, max_depth=max_depth)

    @property
    def snapshot(self) -> CostingSnapshot:
        return self._snapshot

    def compute_cost(
        self, recipe_id: RecordId, visited_path: Optional[Iterable[RecordId]] = None
    ) -> CostResult:
        """
        Compute the total cost of a recipe.

        Args:
            recipe_id: Recipe to cost
            visited_path: Ancestors already on the call path (normally empty)

        Returns:
            CostResult with total_cost, de-duplicated warnings and resolved lines

        Raises:
            RecipeNotFound: If recipe_id is not part of the snapshot
        """
        if self._snapshot.get_recipe(recipe_id) is None:
            raise RecipeNotFound(recipe_id)

        # Fresh index per top-level call: one consistent price set per computation
        index = IngredientCostIndex(self._snapshot.ingredients)
        result = self._compute(recipe_id, frozenset(visited_path or ()), index, depth=0)

        if result.warnings:
            log_operation(
                logger,
                operation="compute_cost",
                outcome="incomplete",
                level=logging.WARNING,
                recipe_id=recipe_id,
                total_cost=result.total_cost,
                warning_count=len(result.warnings),
            )
        else:
            log_operation(
                logger,
                operation="compute_cost",
                outcome="success",
                level=logging.DEBUG,
                recipe_id=recipe_id,
                total_cost=result.total_cost,
            )
        return result

    def _compute(
        self,
        recipe_id: RecordId,
        visited: FrozenSet[RecordId],
        index: IngredientCostIndex,
        depth: int,
    ) -> CostResult:
        if recipe_id in visited:
            return CostResult(
                recipe_id=recipe_id,
                total_cost=0.0,
                warnings=(
                    CostWarning(
                        kind=WarningKind.CYCLE_DETECTED,
                        message=f"cycle detected at {recipe_id}",
                        recipe_id=recipe_id,
                    ),
                ),
            )

        if depth > self._max_depth:
            return CostResult(
                recipe_id=recipe_id,
                total_cost=0.0,
                warnings=(
                    CostWarning(
                        kind=WarningKind.MAX_DEPTH_EXCEEDED,
                        message=(
                            f"Recipe {recipe_id}: sub-recipe nesting deeper than "
                            f"{self._max_depth} levels, not costed"
                        ),
                        recipe_id=recipe_id,
                    ),
                ),
            )

        path = visited | {recipe_id}
        warnings: List[CostWarning] = []
        resolved: List[ResolvedLine] = []

        for line in self._snapshot.get_lines(recipe_id):
            if line.line_type is LineType.SUB_RECIPE:
                resolved_line, child_warnings = self._resolve_sub_recipe_line(line, path, index, depth)
                warnings.extend(child_warnings)
            else:
                resolved_line = resolve_line(line, index)
            warnings.extend(resolved_line.warnings)
            resolved.append(resolved_line)

        total = math.fsum(r.line_cost for r in resolved if r.line_type is not LineType.GROUP)
        return CostResult(
            recipe_id=recipe_id,
            total_cost=total,
            warnings=dedupe_warnings(warnings),
            lines=tuple(resolved),
        )

    def _resolve_sub_recipe_line(
        self,
        line: RecipeLineRecord,
        path: FrozenSet[RecordId],
        index: IngredientCostIndex,
        depth: int,
    ) -> Tuple[ResolvedLine, List[CostWarning]]:
        """Cost the referenced recipe first, then resolve the line against it."""
        child_id = line.sub_recipe_id
        child = self._snapshot.get_recipe(child_id) if child_id is not None else None
        if child is None:
            return resolve_line(line, index, None), []

        child_result = self._compute(child_id, path, index, depth + 1)
        child_warnings = list(child_result.warnings)

        if child_id in path:
            # Cyclic edge: no cost, and no yield checks against a recipe we never costed
            net, gross, yield_pct = resolve_quantities(line)
            uncosted = ResolvedLine(
                line_id=line.id,
                line_type=line.line_type,
                net=net,
                gross=gross,
                yield_pct=yield_pct,
                unit_cost=0.0,
                line_cost=0.0,
            )
            return uncosted, child_warnings

        if not child.is_sub_recipe:
            child_warnings.append(
                CostWarning(
                    kind=WarningKind.NOT_A_SUB_RECIPE,
                    message=(
                        f"Recipe {line.recipe_id}: '{child.name or child_id}' "
                        f"is not marked as a sub-recipe"
                    ),
                    recipe_id=line.recipe_id,
                    line_id=line.id,
                )
            )

        sub_recipe_cost = SubRecipeCost(
            recipe_id=child_id,
            total_cost=child_result.total_cost,
            yield_qty=child.yield_qty,
            yield_unit=child.yield_unit,
            name=child.name,
        )
        return resolve_line(line, index, sub_recipe_cost), child_warnings


def compute_recipe_cost(
    snapshot: CostingSnapshot, recipe_id: RecordId, max_depth: Optional[int] = None
) -> CostResult:
    """Convenience wrapper: cost one recipe of a snapshot."""
    return RecipeCostAggregator(snapshot, max_depth=max_depth).compute_cost(recipe_id)
