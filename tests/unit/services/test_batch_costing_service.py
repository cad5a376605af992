"""Tests for concurrent batch recalculation."""

import threading
from types import SimpleNamespace

import pytest

from conftest import recipe
from recipe_costing.services.batch_costing_service import (
    BatchResult,
    compute_costs,
    recalculate_net_unit_costs,
    recalculate_recipe_costs,
)
from recipe_costing.services.cost_history_service import CostHistoryService, InMemoryCostHistoryStore
from recipe_costing.services.dto import CostingSnapshot
from recipe_costing.services.exceptions import DatabaseError, RecipeNotFound


def pack(id, pack_price, pack_size, yield_percent=100.0):
    return SimpleNamespace(
        id=id, pack_price=pack_price, pack_size=pack_size, supplier_yield_percent=yield_percent
    )


class TestRecalculateNetUnitCosts:
    def test_all_items_persisted(self):
        saved = {}
        lock = threading.Lock()

        def persist(ingredient_id, value):
            with lock:
                saved[ingredient_id] = value

        result = recalculate_net_unit_costs(
            [pack(1, 10.0, 5.0), pack(2, 3.0, 1.0, yield_percent=75)], persist=persist, max_workers=2
        )

        assert result.succeeded == 2
        assert result.failed == 0
        assert result.ok
        assert saved == {1: 2.0, 2: 4.0}
        assert result.results == {1: 2.0, 2: 4.0}

    def test_invalid_pack_data_is_reported_not_raised(self):
        result = recalculate_net_unit_costs(
            [pack(1, 10.0, 0.0), pack(2, 4.0, 2.0)], persist=lambda *_: None
        )
        assert result.succeeded == 1
        assert result.failed == 1
        assert result.failures[0].item_id == 1
        assert result.failures[0].error_type == "ValidationError"

    def test_persistence_failure_does_not_abort_batch(self):
        def persist(ingredient_id, value):
            if ingredient_id == 2:
                raise DatabaseError("disk full")

        items = [pack(n, 1.0, 1.0) for n in range(1, 6)]
        result = recalculate_net_unit_costs(items, persist=persist, max_workers=3)

        assert result.succeeded == 4
        assert result.failed == 1
        assert result.total == 5
        assert not result.ok
        assert "disk full" in result.failures[0].error
        assert result.to_dict()["failures"][0]["item_id"] == 2

    def test_empty_batch(self):
        result = recalculate_net_unit_costs([], persist=lambda *_: None)
        assert result == BatchResult()


class TestComputeCosts:
    def test_costs_every_recipe(self, nested_snapshot):
        results = compute_costs(nested_snapshot, max_workers=3)
        assert set(results) == {"dough", "sauce", "pizza"}
        assert results["pizza"].total_cost == pytest.approx(0.704)
        assert results["sauce"].total_cost == pytest.approx(2.0)

    def test_keeps_requested_order(self, nested_snapshot):
        results = compute_costs(nested_snapshot, ["sauce", "pizza"])
        assert list(results) == ["sauce", "pizza"]

    def test_same_result_as_sequential(self, nested_snapshot):
        from recipe_costing.services.cost_aggregator import compute_recipe_cost

        results = compute_costs(nested_snapshot, max_workers=4)
        for recipe_id, result in results.items():
            assert result == compute_recipe_cost(nested_snapshot, recipe_id)

    def test_unknown_recipe_raises(self, nested_snapshot):
        with pytest.raises(RecipeNotFound):
            compute_costs(nested_snapshot, ["pizza", "calzone"])

    def test_empty_snapshot(self):
        assert compute_costs(CostingSnapshot()) == {}


class TestRecalculateRecipeCosts:
    def test_persists_each_recipe(self, nested_snapshot):
        seen = []
        lock = threading.Lock()

        def persist(recipe_record, cost_result):
            with lock:
                seen.append((recipe_record.id, cost_result.total_cost))

        result = recalculate_recipe_costs(nested_snapshot, persist=persist, max_workers=2)

        assert result.succeeded == 3
        assert sorted(recipe_id for recipe_id, _ in seen) == ["dough", "pizza", "sauce"]
        assert result.results["pizza"].total_cost == pytest.approx(0.704)

    def test_archived_recipes_skipped_by_default(self):
        snapshot = CostingSnapshot.build(
            [recipe("live"), recipe("old", is_archived=True)], [], []
        )
        result = recalculate_recipe_costs(snapshot, persist=lambda *_: None)
        assert set(result.results) == {"live"}

    def test_unknown_recipe_is_a_failure(self, nested_snapshot):
        result = recalculate_recipe_costs(
            nested_snapshot, ["pizza", "calzone"], persist=lambda *_: None
        )
        assert result.succeeded == 1
        assert result.failures[0].item_id == "calzone"
        assert result.failures[0].error_type == "RecipeNotFound"

    def test_records_history_snapshots(self, nested_snapshot):
        history = CostHistoryService(store=InMemoryCostHistoryStore(), max_points=60)

        def persist(recipe_record, cost_result):
            return history.record_snapshot(recipe_record, cost_result)

        recalculate_recipe_costs(nested_snapshot, ["pizza"], persist=persist)
        recalculate_recipe_costs(nested_snapshot, ["pizza"], persist=persist)

        points = history.list_points("pizza")
        assert len(points) == 1
        assert points[0].cost_per_portion == pytest.approx(0.352)
