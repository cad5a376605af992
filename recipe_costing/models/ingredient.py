"""
Ingredient model for purchasable ingredients and their prices.

The price fields describe one supplier pack: pack_price buys pack_size of
pack_unit. net_unit_cost is the derived cost of one pack_unit after the
supplier yield loss and is what the costing engine reads.
"""

from sqlalchemy import Boolean, Column, Float, Index, String, Text
from sqlalchemy.orm import relationship

from .base import BaseModel
from recipe_costing.services.dto import IngredientRecord


class Ingredient(BaseModel):
    """
    Ingredient model.

    Attributes:
        name: Ingredient name (e.g., "Flour T55")
        category: Optional grouping (e.g., "Dry goods")
        supplier: Optional supplier name
        pack_size: Quantity per supplier pack, in pack_unit
        pack_price: Price of one supplier pack
        pack_unit: Unit the price is quoted in (g, kg, ml, l, pcs)
        supplier_yield_percent: Usable share of a pack (100 = no loss)
        net_unit_cost: Cost per one pack_unit after yield loss
        is_active: False hides the ingredient from pickers
        notes: Additional notes
    """

    __tablename__ = "ingredients"

    name = Column(String(200), nullable=False)
    category = Column(String(100), nullable=True)
    supplier = Column(String(200), nullable=True)

    pack_size = Column(Float, nullable=False, default=1.0)
    pack_price = Column(Float, nullable=False, default=0.0)
    pack_unit = Column(String(20), nullable=False, default="g")
    supplier_yield_percent = Column(Float, nullable=False, default=100.0)
    net_unit_cost = Column(Float, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True, index=True)
    notes = Column(Text, nullable=True)

    recipe_lines = relationship("RecipeLine", back_populates="ingredient")

    __table_args__ = (Index("idx_ingredient_name", "name"),)

    def __repr__(self) -> str:
        return f"Ingredient(id={self.id}, name='{self.name}', pack_unit='{self.pack_unit}')"

    def to_record(self) -> IngredientRecord:
        """Immutable engine view of this ingredient."""
        return IngredientRecord.from_dict(
            {
                "id": self.id,
                "name": self.name,
                "pack_unit": self.pack_unit,
                "net_unit_cost": self.net_unit_cost,
                "active": self.is_active,
            }
        )
