"""
Recipe Costing CLI

Command-line interface for costing recipes stored in the application
database.

Usage Examples:
    # Create the database and tables
    recipe-costing init-db

    # Drop and recreate every table
    recipe-costing init-db --reset

    # Cost one recipe
    recipe-costing cost 12

    # Cost one recipe as JSON and record a cost history snapshot
    recipe-costing cost 12 --json --snapshot

    # Show a recipe's cost history
    recipe-costing history 12

    # Recalculate every ingredient's net unit cost from its pack data
    recipe-costing recalc-ingredients

    # Kitchen-wide cost summary
    recipe-costing summary
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from recipe_costing.models import Ingredient
from recipe_costing.services.batch_costing_service import recalculate_net_unit_costs
from recipe_costing.services.cost_aggregator import RecipeCostAggregator
from recipe_costing.services.cost_diagnostics_service import summarize_costs
from recipe_costing.services.cost_history_service import CostHistoryService
from recipe_costing.services.costing_data_service import (
    load_costing_snapshot,
    load_recipe_snapshot,
)
from recipe_costing.services.database import initialize_app_database, session_scope
from recipe_costing.services.dto_utils import cost_to_string, percent_to_string
from recipe_costing.services.exceptions import ServiceError
from recipe_costing.services.pricing_service import price_recipe
from recipe_costing.utils.config import get_config

logger = logging.getLogger(__name__)


def init_db_cmd(reset: bool = False) -> int:
    """Report the database the tables were created (or reset) in."""
    config = get_config()
    print(f"Database: {config.database_url}")
    print("Database reset." if reset else "Database ready.")
    return 0


def cost_cmd(recipe_id: int, as_json: bool = False, snapshot: bool = False) -> int:
    """Cost one recipe and print the breakdown."""
    costing_snapshot = load_recipe_snapshot(recipe_id)
    recipe = costing_snapshot.get_recipe(recipe_id)
    cost_result = RecipeCostAggregator(costing_snapshot).compute_cost(recipe_id)
    pricing = price_recipe(recipe, cost_result)

    added = None
    if snapshot:
        _, added = CostHistoryService().record_snapshot(recipe, cost_result, pricing)

    if as_json:
        output = {"cost": cost_result.to_dict(), "pricing": pricing.to_dict()}
        if added is not None:
            output["snapshot_recorded"] = added
        print(json.dumps(output, indent=2))
        return 0

    print(f"{recipe.name} (id {recipe.id})")
    print(f"  Total cost:       {cost_to_string(pricing.total_cost)} {pricing.currency}")
    print(f"  Portions:         {pricing.portions:g}")
    print(f"  Cost per portion: {cost_to_string(pricing.cost_per_portion)} {pricing.currency}")
    print(f"  Food cost:        {percent_to_string(pricing.food_cost_pct)}")
    if pricing.margin is not None:
        print(f"  Margin:           {cost_to_string(pricing.margin)} ({percent_to_string(pricing.margin_pct)})")
    if pricing.suggested_price is not None:
        print(f"  Suggested price:  {cost_to_string(pricing.suggested_price)} {pricing.currency}")

    if cost_result.warnings:
        print(f"\nWarnings ({len(cost_result.warnings)}):")
        for warning in cost_result.warnings:
            print(f"  - [{warning.kind.value}] {warning.message}")

    if added is not None:
        print("\nSnapshot recorded." if added else "\nSnapshot skipped (cost unchanged).")
    return 0


def history_cmd(recipe_id: int, as_json: bool = False) -> int:
    """Print the cost history of a recipe, newest first."""
    log = CostHistoryService().get_log(recipe_id)

    if as_json:
        print(json.dumps(log.to_payload(), indent=2))
        return 0

    if not len(log):
        print(f"No cost history for recipe {recipe_id}.")
        return 0

    print(f"Cost history for recipe {recipe_id} ({len(log)} points):")
    for point in log.points:
        print(
            f"  {point.created_at:%Y-%m-%d %H:%M}  "
            f"total {cost_to_string(point.total_cost)}  "
            f"per portion {cost_to_string(point.cost_per_portion)} {point.currency}"
        )
    return 0


def recalc_ingredients_cmd() -> int:
    """Recalculate every ingredient's net unit cost from its pack data."""
    with session_scope() as session:
        ingredients = session.query(Ingredient).all()

    print(f"Recalculating {len(ingredients)} ingredients...")
    result = recalculate_net_unit_costs(ingredients)
    print(f"Succeeded: {result.succeeded}  Failed: {result.failed}")
    for failure in result.failures:
        print(f"  ERROR ingredient {failure.item_id}: {failure.error}")
    return 0 if result.ok else 1


def summary_cmd(as_json: bool = False) -> int:
    """Print the kitchen-wide cost summary."""
    summary = summarize_costs(load_costing_snapshot())

    if as_json:
        print(json.dumps(summary.to_dict(), indent=2))
        return 0

    print(f"Active recipes:           {summary.active_recipe_count}")
    print(f"Sub-recipes:              {summary.sub_recipe_count}")
    print(f"Average cost per portion: {cost_to_string(summary.average_cost_per_portion)}")
    if summary.most_expensive:
        print(
            f"Most expensive:           {summary.most_expensive.name} "
            f"({cost_to_string(summary.most_expensive.total_cost)})"
        )
    if summary.least_expensive:
        print(
            f"Least expensive:          {summary.least_expensive.name} "
            f"({cost_to_string(summary.least_expensive.total_cost)})"
        )
    if summary.top_recipes:
        print("\nTop recipes by total cost:")
        for row in summary.top_recipes:
            print(f"  {row.name:<30} {cost_to_string(row.total_cost):>10}")
    if summary.sub_recipes_missing_yield:
        print(f"\nSub-recipes missing a yield: {len(summary.sub_recipes_missing_yield)}")
    if summary.ingredients_missing_cost:
        print(f"Ingredients used without a cost: {len(summary.ingredients_missing_cost)}")
    for kind, count in sorted(summary.warnings_by_kind.items()):
        print(f"Warnings [{kind}]: {count}")
    if summary.has_outliers:
        print("\nWARNING: some recipe totals look implausibly high (check pack units).")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="recipe-costing",
        description="Recipe cost aggregation for restaurant kitchens",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Cost a recipe:
    recipe-costing cost 12

  Cost a recipe as JSON and record a history snapshot:
    recipe-costing cost 12 --json --snapshot

  Show cost history:
    recipe-costing history 12
""",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    init_parser = subparsers.add_parser("init-db", help="Create the database and tables")
    init_parser.add_argument(
        "--reset", action="store_true", help="Drop and recreate every table (deletes all data)"
    )

    cost_parser = subparsers.add_parser("cost", help="Cost one recipe")
    cost_parser.add_argument("recipe_id", type=int, help="Recipe ID")
    cost_parser.add_argument("--json", dest="as_json", action="store_true", help="Print JSON")
    cost_parser.add_argument(
        "--snapshot", action="store_true", help="Record the result in the cost history"
    )

    history_parser = subparsers.add_parser("history", help="Show a recipe's cost history")
    history_parser.add_argument("recipe_id", type=int, help="Recipe ID")
    history_parser.add_argument("--json", dest="as_json", action="store_true", help="Print JSON")

    subparsers.add_parser(
        "recalc-ingredients", help="Recalculate net unit costs from pack data"
    )

    summary_parser = subparsers.add_parser("summary", help="Kitchen-wide cost summary")
    summary_parser.add_argument("--json", dest="as_json", action="store_true", help="Print JSON")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 1

    try:
        if args.command == "init-db":
            initialize_app_database(reset=args.reset)
            return init_db_cmd(reset=args.reset)

        initialize_app_database()
        if args.command == "cost":
            return cost_cmd(args.recipe_id, as_json=args.as_json, snapshot=args.snapshot)
        elif args.command == "history":
            return history_cmd(args.recipe_id, as_json=args.as_json)
        elif args.command == "recalc-ingredients":
            return recalc_ingredients_cmd()
        elif args.command == "summary":
            return summary_cmd(as_json=args.as_json)
        else:
            print(f"Unknown command: {args.command}")
            return 1
    except ServiceError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
