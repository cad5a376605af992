"""
Database models package.

This package contains all SQLAlchemy ORM models for the application.
"""

from .base import Base, BaseModel
from .ingredient import Ingredient
from .recipe import Recipe, RecipeLine
from .cost_history import CostHistoryEntry

__all__ = [
    "Base",
    "BaseModel",
    "Ingredient",
    "Recipe",
    "RecipeLine",
    "CostHistoryEntry",
]
