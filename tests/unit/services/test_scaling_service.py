"""Tests for servings scaling."""

import math

import pytest

from conftest import group_line, ingredient_line
from recipe_costing.services.scaling_service import scale_lines, scale_quantity


class TestScaleQuantity:
    def test_scales_by_servings_ratio(self):
        assert scale_quantity(250, 4, 6) == 375.0

    def test_rounds_to_three_decimals(self):
        assert scale_quantity(1, 3, 1) == 0.333

    @pytest.mark.parametrize("from_servings,to_servings", [(0, 4), (4, 0), (-1, 2), (None, 2), (2, "x")])
    def test_invalid_servings_leave_quantity_unchanged(self, from_servings, to_servings):
        assert scale_quantity(12.5, from_servings, to_servings) == 12.5

    def test_non_numeric_quantity_is_zero(self):
        assert scale_quantity(math.nan, 2, 4) == 0.0
        assert scale_quantity("abc", 2, 4) == 0.0


class TestScaleLines:
    def test_scales_net_and_override(self):
        lines = [
            ingredient_line("l1", "r", "flour", 500, yield_percent=80),
            ingredient_line("l2", "r", "onion", 100, gross_override=125),
        ]
        scaled = scale_lines(lines, 4, 2)
        assert scaled[0].net_qty == 250.0
        assert scaled[0].yield_percent == 80
        assert scaled[0].gross_override is None
        assert scaled[1].net_qty == 50.0
        assert scaled[1].gross_override == 62.5

    def test_originals_untouched(self):
        line = ingredient_line("l1", "r", "flour", 500)
        scale_lines([line], 1, 3)
        assert line.net_qty == 500

    def test_group_lines_unchanged(self):
        group = group_line("g1", "r", "Topping")
        assert scale_lines([group], 1, 10) == [group]
