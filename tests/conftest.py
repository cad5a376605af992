"""Pytest configuration and fixtures for recipe costing tests."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, scoped_session
from sqlalchemy.pool import StaticPool

from recipe_costing.models.base import Base
from recipe_costing.services.dto import (
    CostingSnapshot,
    IngredientRecord,
    LineType,
    RecipeLineRecord,
    RecipeRecord,
)
from recipe_costing.utils.config import reset_config


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """Give every test a fresh configuration singleton without env overrides."""
    for name in (
        "RECIPE_COSTING_ENV",
        "RECIPE_COSTING_DATABASE_URL",
        "RECIPE_COSTING_MAX_DEPTH",
        "RECIPE_COSTING_HISTORY_LIMIT",
        "RECIPE_COSTING_BATCH_WORKERS",
        "RECIPE_COSTING_DEFAULT_CURRENCY",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture(scope="function")
def test_db():
    """Provide a clean test database for each test function.

    This fixture:
    1. Creates an in-memory SQLite database
    2. Creates all tables
    3. Provides the database to the test
    4. Drops all tables after the test completes
    """
    # StaticPool: batch worker threads must see the same in-memory database
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    Base.metadata.create_all(engine)

    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    Session = scoped_session(session_factory)

    # Monkey-patch the global session factory for tests
    import recipe_costing.services.database as db_module

    original_get_session = db_module.get_session_factory
    db_module.get_session_factory = lambda: Session

    yield Session

    Session.remove()
    Base.metadata.drop_all(engine)
    engine.dispose()

    db_module.get_session_factory = original_get_session


# ============================================================================
# Engine record builders
# ============================================================================


def ingredient(id, net_unit_cost, pack_unit="g", name=None, active=True):
    return IngredientRecord(
        id=id,
        name=name or str(id).title(),
        pack_unit=pack_unit,
        net_unit_cost=net_unit_cost,
        active=active,
    )


def recipe(id, portions=1, is_sub_recipe=False, yield_qty=None, yield_unit=None, **kwargs):
    return RecipeRecord(
        id=id,
        name=kwargs.pop("name", str(id).title()),
        portions=portions,
        is_sub_recipe=is_sub_recipe,
        yield_qty=yield_qty,
        yield_unit=yield_unit,
        **kwargs,
    )


def ingredient_line(id, recipe_id, ingredient_id, net_qty, unit="g", position=0, **kwargs):
    return RecipeLineRecord(
        id=id,
        recipe_id=recipe_id,
        line_type=LineType.INGREDIENT,
        ingredient_id=ingredient_id,
        net_qty=net_qty,
        unit=unit,
        position=position,
        **kwargs,
    )


def sub_recipe_line(id, recipe_id, sub_recipe_id, net_qty, unit="g", position=0, **kwargs):
    return RecipeLineRecord(
        id=id,
        recipe_id=recipe_id,
        line_type=LineType.SUB_RECIPE,
        sub_recipe_id=sub_recipe_id,
        net_qty=net_qty,
        unit=unit,
        position=position,
        **kwargs,
    )


def group_line(id, recipe_id, title, position=0):
    return RecipeLineRecord(
        id=id,
        recipe_id=recipe_id,
        line_type=LineType.GROUP,
        group_title=title,
        position=position,
    )


@pytest.fixture
def flour():
    """Flour priced at 2.00 per kg."""
    return ingredient("flour", 2.0, pack_unit="kg", name="Flour")


@pytest.fixture
def flour_snapshot(flour):
    """One recipe, four portions, 500 g flour at 2.00/kg, sold at 1.00."""
    bread = recipe("bread", portions=4, selling_price=1.0, name="Bread")
    line = ingredient_line("l1", "bread", "flour", 500, unit="g")
    return CostingSnapshot.build([bread], [line], [flour])


@pytest.fixture
def nested_snapshot():
    """
    Pizza uses 200 g of a dough sub-recipe and 100 g of a sauce sub-recipe.

    Dough: 1 kg flour (1.50/kg) + 20 g salt (0.001/g), yields 1 kg -> 1.52 total
    Sauce: 500 ml tomato passata (0.004/ml), yields 0.5 l -> 2.00 total
    """
    recipes = [
        recipe("dough", is_sub_recipe=True, yield_qty=1, yield_unit="kg", name="Dough"),
        recipe("sauce", is_sub_recipe=True, yield_qty=0.5, yield_unit="l", name="Sauce"),
        recipe("pizza", portions=2, selling_price=8.0, name="Pizza"),
    ]
    lines = [
        ingredient_line("d1", "dough", "flour", 1, unit="kg"),
        ingredient_line("d2", "dough", "salt", 20, unit="g", position=1),
        ingredient_line("s1", "sauce", "passata", 500, unit="ml"),
        group_line("p0", "pizza", "Base", position=0),
        sub_recipe_line("p1", "pizza", "dough", 200, unit="g", position=1),
        sub_recipe_line("p2", "pizza", "sauce", 100, unit="ml", position=2),
    ]
    ingredients = [
        ingredient("flour", 1.5, pack_unit="kg"),
        ingredient("salt", 0.001, pack_unit="g"),
        ingredient("passata", 0.004, pack_unit="ml"),
    ]
    return CostingSnapshot.build(recipes, lines, ingredients)
