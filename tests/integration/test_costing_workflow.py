"""End-to-end costing against the database: load, cost, price, record history."""

import pytest

from recipe_costing.models import CostHistoryEntry, Ingredient, Recipe, RecipeLine
from recipe_costing.services.batch_costing_service import (
    recalculate_net_unit_costs,
    recalculate_recipe_costs,
)
from recipe_costing.services.cost_diagnostics_service import summarize_costs
from recipe_costing.services.cost_history_service import CostHistoryService, SqlCostHistoryStore
from recipe_costing.services.costing_data_service import (
    compute_recipe_cost,
    get_recipe_with_costs,
    load_costing_snapshot,
    load_recipe_snapshot,
)
from recipe_costing.services.dto import WarningKind
from recipe_costing.services.exceptions import RecipeNotFound


@pytest.fixture
def kitchen(test_db):
    """
    Pizza kitchen.

    Dough (sub-recipe): 1 kg flour at 1.50/kg + 20 g salt at 0.001/g, yields 1 kg -> 1.52
    Pizza: 2 portions, sold at 8.00, uses 250 g dough -> 0.38
    Focaccia: archived, uses 500 g flour -> 0.75
    """
    session = test_db()
    flour = Ingredient(name="Flour", pack_size=10, pack_price=15, pack_unit="kg", net_unit_cost=1.5)
    salt = Ingredient(name="Salt", pack_size=1000, pack_price=1, pack_unit="g", net_unit_cost=0.001)
    dough = Recipe(name="Dough", is_sub_recipe=True, yield_qty=1, yield_unit="kg")
    pizza = Recipe(name="Pizza", portions=2, selling_price=8.0)
    focaccia = Recipe(name="Focaccia", is_archived=True)
    session.add_all([flour, salt, dough, pizza, focaccia])
    session.flush()

    dough.lines = [
        RecipeLine(line_type="ingredient", ingredient=flour, net_qty=1, unit="kg", position=0),
        RecipeLine(line_type="ingredient", ingredient=salt, net_qty=20, unit="g", position=1),
    ]
    pizza.lines = [
        RecipeLine(line_type="group", group_title="Base", position=0),
        RecipeLine(line_type="subrecipe", sub_recipe=dough, net_qty=250, unit="g", position=1),
    ]
    focaccia.lines = [
        RecipeLine(line_type="ingredient", ingredient=flour, net_qty=500, unit="g", position=0),
    ]
    session.commit()
    return {"flour": flour, "salt": salt, "dough": dough, "pizza": pizza, "focaccia": focaccia}


class TestLoadSnapshots:
    def test_recipe_snapshot_holds_only_reachable_rows(self, kitchen):
        snapshot = load_recipe_snapshot(kitchen["pizza"].id)
        assert set(snapshot.recipes) == {kitchen["pizza"].id, kitchen["dough"].id}
        assert {i.name for i in snapshot.ingredients} == {"Flour", "Salt"}

    def test_unknown_recipe_gives_empty_snapshot(self, kitchen):
        assert load_recipe_snapshot(9999).recipes == {}

    def test_full_snapshot(self, kitchen):
        snapshot = load_costing_snapshot()
        assert len(snapshot.recipes) == 3
        assert len(snapshot.all_lines) == 5
        assert len(snapshot.ingredients) == 2


class TestComputeFromDatabase:
    def test_nested_cost(self, kitchen):
        result = compute_recipe_cost(kitchen["pizza"].id)
        assert result.total_cost == pytest.approx(0.38)
        assert result.is_complete
        assert len(result.lines) == 2

    def test_unknown_recipe_raises(self, kitchen):
        with pytest.raises(RecipeNotFound):
            compute_recipe_cost(9999)

    def test_get_recipe_with_costs(self, kitchen):
        data = get_recipe_with_costs(kitchen["pizza"].id)
        assert data["recipe"]["name"] == "Pizza"
        assert data["total_cost_display"] == "0.38"
        assert data["cost_per_portion_display"] == "0.19"
        assert data["pricing"]["food_cost_pct"] == pytest.approx(2.375)

    def test_price_change_is_picked_up(self, test_db, kitchen):
        session = test_db()
        session.get(Ingredient, kitchen["flour"].id).net_unit_cost = 3.0
        session.commit()
        assert compute_recipe_cost(kitchen["pizza"].id).total_cost == pytest.approx(0.755)

    def test_deleted_ingredient_reported(self, test_db, kitchen):
        session = test_db()
        session.delete(session.get(Ingredient, kitchen["salt"].id))
        session.commit()

        result = compute_recipe_cost(kitchen["dough"].id)
        assert result.total_cost == pytest.approx(1.5)
        assert [w.kind for w in result.warnings] == [WarningKind.MISSING_REFERENCE]


class TestBatchAgainstDatabase:
    def test_recalculate_net_unit_costs(self, test_db, kitchen):
        session = test_db()
        ingredients = session.query(Ingredient).all()
        session.close()
        result = recalculate_net_unit_costs(ingredients, max_workers=1)

        assert result.ok
        assert result.results[kitchen["flour"].id] == 1.5
        assert session.get(Ingredient, kitchen["salt"].id).net_unit_cost == 0.001

    def test_recalculate_recipe_costs_records_history(self, kitchen):
        snapshot = load_costing_snapshot()
        result = recalculate_recipe_costs(snapshot, max_workers=1)

        assert result.succeeded == 2
        assert kitchen["focaccia"].id not in result.results

        points = CostHistoryService().list_points(kitchen["pizza"].id)
        assert len(points) == 1
        assert points[0].total_cost == pytest.approx(0.38)
        assert points[0].portions == 2


class TestHistoryPersistence:
    def test_round_trip_through_table(self, test_db, kitchen):
        recipe = load_recipe_snapshot(kitchen["pizza"].id).get_recipe(kitchen["pizza"].id)
        cost = compute_recipe_cost(kitchen["pizza"].id)

        service = CostHistoryService(SqlCostHistoryStore())
        _, added = service.record_snapshot(recipe, cost)
        _, added_again = service.record_snapshot(recipe, cost)
        assert added is True
        assert added_again is False

        entry = test_db().query(CostHistoryEntry).filter_by(recipe_key=str(recipe.id)).one()
        payload = entry.get_payload()
        assert payload["v"] == 1
        assert payload["points"][0]["costPerPortion"] == pytest.approx(0.19)

    def test_corrupt_row_starts_empty(self, test_db, kitchen):
        session = test_db()
        session.add(CostHistoryEntry(recipe_key=str(kitchen["pizza"].id), payload="{oops"))
        session.commit()

        assert CostHistoryService().list_points(kitchen["pizza"].id) == []

    def test_clear_history(self, test_db, kitchen):
        service = CostHistoryService()
        recipe = load_recipe_snapshot(kitchen["pizza"].id).get_recipe(kitchen["pizza"].id)
        service.record_snapshot(recipe, compute_recipe_cost(recipe.id))

        service.clear_history(recipe.id)
        assert test_db().query(CostHistoryEntry).count() == 0


class TestSummaryFromDatabase:
    def test_summary(self, kitchen):
        summary = summarize_costs(load_costing_snapshot(), max_workers=1)
        assert summary.active_recipe_count == 2
        assert summary.sub_recipe_count == 1
        assert summary.most_expensive.name == "Dough"
        assert summary.least_expensive.name == "Pizza"
        assert not summary.has_outliers
