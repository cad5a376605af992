"""
Batch Costing Service - recalculate many ingredients or recipes at once.

Every item is independent: items run on a bounded ThreadPoolExecutor
(Config.batch_max_workers) and a failure of one item never aborts the
batch. Failures are collected as BatchItemFailure entries next to the
succeeded/failed counts.

Costing runs against one CostingSnapshot shared by all workers. The
snapshot is immutable and the aggregator keeps no state between calls,
so no locking is needed for the computation itself.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from recipe_costing.services.cost_aggregator import RecipeCostAggregator
from recipe_costing.services.cost_history_service import CostHistoryService
from recipe_costing.services.dto import CostingSnapshot, CostResult, RecipeRecord, RecordId
from recipe_costing.services.ingredient_pricing_service import (
    calculate_ingredient_costs,
    update_net_unit_cost,
)
from recipe_costing.services.logging_utils import get_service_logger, log_operation
from recipe_costing.utils.config import get_config

logger = get_service_logger(__name__)


@dataclass(frozen=True)
class BatchItemFailure:
    """
    One item that could not be processed.

    Attributes:
        item_id: Ingredient or recipe id
        error: Error message
        error_type: Exception class name
    """

    item_id: RecordId
    error: str
    error_type: str

    def to_dict(self) -> Dict[str, Any]:
        return {"item_id": self.item_id, "error": self.error, "error_type": self.error_type}


@dataclass
class BatchResult:
    """Outcome of a batch operation."""

    succeeded: int = 0
    failed: int = 0
    failures: List[BatchItemFailure] = field(default_factory=list)
    results: Dict[RecordId, Any] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return self.succeeded + self.failed

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "failed": self.failed,
            "failures": [f.to_dict() for f in self.failures],
        }


def _resolve_workers(max_workers: Optional[int]) -> int:
    if max_workers is None:
        max_workers = get_config().batch_max_workers
    return max(1, int(max_workers))


def _run_batch(
    operation: str,
    items: Dict[RecordId, Any],
    work: Callable[[Any], Any],
    max_workers: Optional[int],
) -> BatchResult:
    """Run work(item) for every item concurrently and collect the outcome."""
    result = BatchResult()
    if not items:
        log_operation(logger, operation=operation, outcome="empty")
        return result

    with ThreadPoolExecutor(max_workers=_resolve_workers(max_workers)) as executor:
        future_to_id = {executor.submit(work, item): item_id for item_id, item in items.items()}
        for future in as_completed(future_to_id):
            item_id = future_to_id[future]
            try:
                result.results[item_id] = future.result()
                result.succeeded += 1
            except Exception as e:
                result.failed += 1
                result.failures.append(
                    BatchItemFailure(item_id=item_id, error=str(e), error_type=type(e).__name__)
                )
                log_operation(
                    logger,
                    operation=operation,
                    outcome="item_failed",
                    level=logging.ERROR,
                    item_id=item_id,
                    error=str(e),
                )

    log_operation(
        logger,
        operation=operation,
        outcome="success" if result.ok else "partial_failure",
        level=logging.INFO if result.ok else logging.WARNING,
        succeeded=result.succeeded,
        failed=result.failed,
    )
    return result


def recalculate_net_unit_costs(
    ingredients: Iterable[Any],
    persist: Optional[Callable[[RecordId, float], Any]] = None,
    max_workers: Optional[int] = None,
) -> BatchResult:
    """
    Recompute every ingredient's net unit cost from its pack data and persist it.

    Args:
        ingredients: Objects with id, pack_price, pack_size and
            supplier_yield_percent (Ingredient rows)
        persist: Called with (ingredient_id, net_unit_cost) (default:
            update_net_unit_cost, one session per item)
        max_workers: Worker threads (default: Config.batch_max_workers)

    Returns:
        BatchResult whose results map ingredient id to the new net unit cost
    """
    if persist is None:
        persist = update_net_unit_cost

    def work(ingredient) -> float:
        net = calculate_ingredient_costs(ingredient).net_unit_cost
        persist(ingredient.id, net)
        return net

    items = {ingredient.id: ingredient for ingredient in ingredients}
    return _run_batch("recalculate_net_unit_costs", items, work, max_workers)


def compute_costs(
    snapshot: CostingSnapshot,
    recipe_ids: Optional[Iterable[RecordId]] = None,
    max_workers: Optional[int] = None,
) -> Dict[RecordId, CostResult]:
    """
    Cost many recipes of one snapshot concurrently (list pages, dashboards).

    Args:
        snapshot: Snapshot holding every recipe to cost
        recipe_ids: Recipes to cost (default: every recipe in the snapshot)
        max_workers: Worker threads (default: Config.batch_max_workers)

    Returns:
        Dictionary of recipe id to CostResult, in the order of recipe_ids

    Raises:
        RecipeNotFound: If a requested id is not part of the snapshot
    """
    ids = list(snapshot.recipes.keys() if recipe_ids is None else recipe_ids)
    if not ids:
        return {}

    aggregator = RecipeCostAggregator(snapshot)
    with ThreadPoolExecutor(max_workers=_resolve_workers(max_workers)) as executor:
        results = list(executor.map(aggregator.compute_cost, ids))
    return dict(zip(ids, results))


def recalculate_recipe_costs(
    snapshot: CostingSnapshot,
    recipe_ids: Optional[Iterable[RecordId]] = None,
    persist: Optional[Callable[[RecipeRecord, CostResult], Any]] = None,
    max_workers: Optional[int] = None,
) -> BatchResult:
    """
    Cost recipes and persist each result, typically as a cost history snapshot.

    Args:
        snapshot: Snapshot holding every recipe to cost
        recipe_ids: Recipes to process (default: every non-archived recipe)
        persist: Called with (recipe, cost_result); a raised exception
            marks only that recipe as failed (default: record a cost
            history snapshot)
        max_workers: Worker threads (default: Config.batch_max_workers)

    Returns:
        BatchResult whose results map recipe id to CostResult
    """
    if persist is None:
        history = CostHistoryService()

        def persist(recipe, cost_result):
            return history.record_snapshot(recipe, cost_result)

    if recipe_ids is None:
        recipe_ids = [r.id for r in snapshot.recipes.values() if not r.is_archived]

    aggregator = RecipeCostAggregator(snapshot)

    def work(recipe_id) -> CostResult:
        cost_result = aggregator.compute_cost(recipe_id)
        persist(snapshot.get_recipe(recipe_id), cost_result)
        return cost_result

    items = {recipe_id: recipe_id for recipe_id in recipe_ids}
    return _run_batch("recalculate_recipe_costs", items, work, max_workers)
