"""
Recipe models.

This module contains:
- Recipe: Recipe metadata (portions, yield, pricing targets)
- RecipeLine: One line of a recipe - an ingredient, a sub-recipe or a group heading
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from recipe_costing.services.dto import RecipeLineRecord, RecipeRecord
from recipe_costing.utils.config import get_config


class Recipe(BaseModel):
    """
    Recipe model.

    Attributes:
        name: Recipe name (required)
        category: Optional grouping (e.g., "Sauces")
        portions: Portions produced by one batch
        is_sub_recipe: True if usable as a line inside other recipes
        yield_qty: Usable output of one batch (sub-recipes)
        yield_unit: Unit of yield_qty (sub-recipes)
        selling_price: Menu price of one portion
        currency: Currency of all costs in the recipe
        target_food_cost_pct: Desired food-cost percentage
        is_archived: Whether the recipe is archived (soft delete)
        notes: Additional notes
    """

    __tablename__ = "recipes"

    name = Column(String(200), nullable=False)
    category = Column(String(100), nullable=True)

    portions = Column(Float, nullable=False, default=1)
    is_sub_recipe = Column(Boolean, nullable=False, default=False, index=True)
    yield_qty = Column(Float, nullable=True)
    yield_unit = Column(String(20), nullable=True)

    selling_price = Column(Float, nullable=True)
    currency = Column(String(3), nullable=False, default="USD")
    target_food_cost_pct = Column(Float, nullable=True, default=30.0)

    is_archived = Column(Boolean, nullable=False, default=False, index=True)
    notes = Column(Text, nullable=True)

    lines = relationship(
        "RecipeLine",
        foreign_keys="RecipeLine.recipe_id",
        back_populates="recipe",
        cascade="all, delete-orphan",
        order_by="RecipeLine.position",
    )
    used_in_lines = relationship(
        "RecipeLine",
        foreign_keys="RecipeLine.sub_recipe_id",
        back_populates="sub_recipe",
        lazy="select",
    )

    __table_args__ = (
        CheckConstraint("portions >= 1", name="ck_recipe_portions_positive"),
        Index("idx_recipe_name", "name"),
    )

    def __repr__(self) -> str:
        return f"Recipe(id={self.id}, name='{self.name}', is_sub_recipe={self.is_sub_recipe})"

    def to_record(self) -> RecipeRecord:
        """Immutable engine view of this recipe."""
        return RecipeRecord.from_dict(
            {
                "id": self.id,
                "name": self.name,
                "portions": self.portions,
                "is_sub_recipe": self.is_sub_recipe,
                "yield_qty": self.yield_qty,
                "yield_unit": self.yield_unit,
                "selling_price": self.selling_price,
                "currency": self.currency or get_config().default_currency,
                "target_food_cost_pct": self.target_food_cost_pct,
                "is_archived": self.is_archived,
            }
        )


class RecipeLine(BaseModel):
    """
    One line of a recipe.

    Attributes:
        recipe_id: Owning recipe
        line_type: "ingredient", "subrecipe" or "group"
        ingredient_id: Referenced ingredient (ingredient lines)
        sub_recipe_id: Referenced recipe (sub-recipe lines)
        net_qty: Quantity used in the dish
        unit: Unit of net_qty
        yield_percent: Prep yield (100 = no trim loss)
        gross_override: Explicit purchased/prepared quantity
        notes: Free text (e.g., "finely diced")
        position: Display order
        group_title: Heading text (group lines)
    """

    __tablename__ = "recipe_lines"

    recipe_id = Column(Integer, ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False)
    line_type = Column(String(20), nullable=False, default="ingredient")
    ingredient_id = Column(
        Integer, ForeignKey("ingredients.id", ondelete="SET NULL"), nullable=True
    )
    sub_recipe_id = Column(Integer, ForeignKey("recipes.id", ondelete="SET NULL"), nullable=True)

    net_qty = Column(Float, nullable=False, default=0.0)
    unit = Column(String(20), nullable=False, default="g")
    yield_percent = Column(Float, nullable=False, default=100.0)
    gross_override = Column(Float, nullable=True)

    notes = Column(String(500), nullable=True)
    position = Column(Integer, nullable=False, default=0)
    group_title = Column(String(200), nullable=True)

    recipe = relationship("Recipe", foreign_keys=[recipe_id], back_populates="lines")
    sub_recipe = relationship(
        "Recipe", foreign_keys=[sub_recipe_id], back_populates="used_in_lines"
    )
    ingredient = relationship("Ingredient", back_populates="recipe_lines")

    __table_args__ = (
        Index("idx_recipe_line_recipe", "recipe_id"),
        Index("idx_recipe_line_ingredient", "ingredient_id"),
        Index("idx_recipe_line_sub_recipe", "sub_recipe_id"),
    )

    def __repr__(self) -> str:
        return (
            f"RecipeLine(recipe_id={self.recipe_id}, line_type='{self.line_type}', "
            f"net_qty={self.net_qty}, unit='{self.unit}')"
        )

    def to_record(self) -> RecipeLineRecord:
        """Immutable engine view of this line."""
        return RecipeLineRecord.from_dict(
            {
                "id": self.id,
                "recipe_id": self.recipe_id,
                "line_type": self.line_type,
                "ingredient_id": self.ingredient_id,
                "sub_recipe_id": self.sub_recipe_id,
                "net_qty": self.net_qty,
                "unit": self.unit,
                "yield_percent": self.yield_percent,
                "gross_override": self.gross_override,
                "notes": self.notes,
                "position": self.position,
                "group_title": self.group_title,
            }
        )
