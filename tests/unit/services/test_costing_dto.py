"""Tests for engine records and snapshot construction."""

from datetime import datetime, timezone

import pytest

from recipe_costing.services.dto import (
    CostingSnapshot,
    CostPoint,
    CostWarning,
    IngredientRecord,
    LineType,
    RecipeLineRecord,
    RecipeRecord,
    WarningKind,
    dedupe_warnings,
)
from recipe_costing.services.dto_utils import cost_to_string, percent_to_string, to_float


class TestLineType:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("ingredient", LineType.INGREDIENT),
            ("subrecipe", LineType.SUB_RECIPE),
            ("sub_recipe", LineType.SUB_RECIPE),
            ("Sub-Recipe", LineType.SUB_RECIPE),
            ("group", LineType.GROUP),
            (None, LineType.INGREDIENT),
            (LineType.GROUP, LineType.GROUP),
        ],
    )
    def test_parse(self, raw, expected):
        assert LineType.parse(raw) is expected


class TestRecordsFromDict:
    def test_ingredient_from_camel_case(self):
        record = IngredientRecord.from_dict(
            {"id": "i1", "name": "Milk", "packUnit": "l", "netUnitCost": "1.20", "isActive": False}
        )
        assert record.pack_unit == "l"
        assert record.net_unit_cost == 1.2
        assert record.active is False

    def test_recipe_coerces_loose_values(self):
        record = RecipeRecord.from_dict(
            {"id": 1, "name": "Stock", "portions": 0, "is_subrecipe": True, "yield_qty": "2", "currency": "eur"}
        )
        assert record.portions == 1.0
        assert record.is_sub_recipe is True
        assert record.yield_qty == 2.0
        assert record.currency == "EUR"
        assert record.target_food_cost_pct == 30.0

    def test_recipe_valid_yield(self):
        assert RecipeRecord(id=1, yield_qty=1, yield_unit="kg").has_valid_yield
        assert not RecipeRecord(id=1, yield_qty=1, yield_unit=" ").has_valid_yield
        assert not RecipeRecord(id=1, yield_qty=0, yield_unit="kg").has_valid_yield

    def test_line_from_legacy_keys(self):
        line = RecipeLineRecord.from_dict(
            {
                "id": "l1",
                "recipeId": "r1",
                "type": "subrecipe",
                "subRecipeId": "r2",
                "qty": "150",
                "unit": "g",
                "gross_qty_override": 200,
            }
        )
        assert line.line_type is LineType.SUB_RECIPE
        assert line.sub_recipe_id == "r2"
        assert line.net_qty == 150.0
        assert line.gross_override == 200.0
        assert line.yield_percent == 100.0

    def test_line_to_dict(self):
        line = RecipeLineRecord(id="l1", recipe_id="r1", line_type=LineType.GROUP, group_title="Dry")
        data = line.to_dict()
        assert data["line_type"] == "group"
        assert RecipeLineRecord.from_dict(data) == line


class TestLineTypeCoercion:
    def test_plain_string_becomes_line_type(self):
        line = RecipeLineRecord(id=1, recipe_id="a", line_type="subrecipe", sub_recipe_id="c")
        assert line.line_type is LineType.SUB_RECIPE

    def test_copies_keep_member(self):
        line = RecipeLineRecord(id=1, recipe_id="a", line_type="group")
        assert line.with_yield_percent(90).line_type is LineType.GROUP


class TestCostPointTimestamps:
    def test_naive_created_at_becomes_utc(self):
        point = CostPoint(
            id="a", recipe_id="r", created_at=datetime(2026, 1, 2), total_cost=1.0, cost_per_portion=1.0
        )
        assert point.created_at == datetime(2026, 1, 2, tzinfo=timezone.utc)


class TestLineEditing:
    def test_setting_yield_clears_override(self):
        line = RecipeLineRecord(id=1, recipe_id=1, net_qty=1, gross_override=2)
        updated = line.with_yield_percent(80)
        assert updated.yield_percent == 80
        assert updated.gross_override is None
        assert line.gross_override == 2

    def test_setting_override(self):
        line = RecipeLineRecord(id=1, recipe_id=1, net_qty=1)
        assert line.with_gross_override(3).gross_override == 3


class TestWarnings:
    def test_str_is_message(self):
        warning = CostWarning(WarningKind.CYCLE_DETECTED, "cycle detected at A", recipe_id="A")
        assert str(warning) == "cycle detected at A"
        assert warning.to_dict()["kind"] == "cycle_detected"

    def test_dedupe_keeps_first(self):
        first = CostWarning(WarningKind.MISSING_PRICE, "m", line_id=1)
        again = CostWarning(WarningKind.MISSING_PRICE, "m", line_id=2)
        other = CostWarning(WarningKind.MISSING_REFERENCE, "m")
        assert dedupe_warnings([first, again, other]) == (first, other)


class TestCostPoint:
    def test_payload_timestamps_are_utc(self):
        point = CostPoint.from_payload({"id": "a", "createdAt": 1700000000000, "totalCost": 1})
        assert point.created_at.tzinfo == timezone.utc
        assert point.to_payload()["createdAt"] == 1700000000000

    def test_fractional_portions_kept(self):
        point = CostPoint.from_payload({"id": "a", "createdAt": 1, "portions": 2.5})
        assert point.portions == 2.5


class TestCostingSnapshot:
    def test_lines_grouped_and_sorted(self):
        lines = [
            RecipeLineRecord(id="b", recipe_id="r", position=2),
            RecipeLineRecord(id="a", recipe_id="r", position=1),
            RecipeLineRecord(id="c", recipe_id="s", position=0),
        ]
        snapshot = CostingSnapshot.build([RecipeRecord(id="r")], lines, [])
        assert [line.id for line in snapshot.get_lines("r")] == ["a", "b"]
        assert snapshot.get_lines("missing") == ()
        assert len(snapshot.all_lines) == 3

    def test_collect_skips_unknown_recipes(self):
        snapshot = CostingSnapshot.collect(
            ["r", "ghost"],
            lambda rid: RecipeRecord(id=rid) if rid == "r" else None,
            lambda rid: [],
            lambda ids: [],
        )
        assert list(snapshot.recipes) == ["r"]


class TestFormatting:
    def test_cost_to_string(self):
        assert cost_to_string(0.125) == "0.13"
        assert cost_to_string(None) == "0.00"

    def test_percent_to_string(self):
        assert percent_to_string(25) == "25.0%"
        assert percent_to_string(None) == "n/a"

    def test_to_float_rejects_bool(self):
        assert to_float(True, 7.0) == 7.0
