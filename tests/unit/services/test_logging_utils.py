"""Tests for structured service logging."""

import logging

from conftest import ingredient_line, recipe
from recipe_costing.services.cost_aggregator import compute_recipe_cost
from recipe_costing.services.dto import CostingSnapshot
from recipe_costing.services.logging_utils import get_service_logger, log_operation


class TestGetServiceLogger:
    def test_prefixes_module_name(self):
        assert get_service_logger("recipe_costing.services.cost_aggregator").name == (
            "recipe_costing.services.cost_aggregator"
        )
        assert get_service_logger("batch").name == "recipe_costing.services.batch"


class TestLogOperation:
    def test_context_in_extra(self, caplog):
        logger = get_service_logger("test_logging")
        with caplog.at_level(logging.INFO, logger="recipe_costing.services"):
            log_operation(logger, operation="compute_cost", outcome="success", recipe_id="r1")

        record = caplog.records[-1]
        assert record.getMessage() == "compute_cost: success"
        assert record.operation == "compute_cost"
        assert record.outcome == "success"
        assert record.recipe_id == "r1"

    def test_incomplete_cost_logged_as_warning(self, caplog):
        snapshot = CostingSnapshot.build([recipe("r")], [ingredient_line("l", "r", "ghost", 1)], [])
        with caplog.at_level(logging.DEBUG, logger="recipe_costing.services"):
            compute_recipe_cost(snapshot, "r")

        warnings = [
            r for r in caplog.records
            if r.levelno == logging.WARNING and getattr(r, "operation", None) == "compute_cost"
        ]
        assert len(warnings) == 1
        assert warnings[0].outcome == "incomplete"
        assert warnings[0].warning_count == 1
