"""
CostHistoryEntry model - key-value storage for recipe cost history.

One row per recipe holds the whole serialized CostSnapshotLog payload:
{"v": 1, "points": [{id, createdAt, totalCost, costPerPortion, portions, currency}, ...]}
newest first. The payload format is shared with other front ends, so the
row is deliberately opaque to SQL.
"""

import json

from sqlalchemy import Column, String, Text

from .base import BaseModel


class CostHistoryEntry(BaseModel):
    """
    Serialized cost history of one recipe.

    Attributes:
        recipe_key: Recipe identifier as text (unique)
        payload: JSON text of the history payload
    """

    __tablename__ = "cost_history"

    recipe_key = Column(String(100), nullable=False, unique=True, index=True)
    payload = Column(Text, nullable=False)

    def get_payload(self):
        """
        Parse and return the stored payload.

        Returns:
            Parsed JSON, or None if the payload is empty or invalid JSON
        """
        if not self.payload:
            return None
        try:
            return json.loads(self.payload)
        except json.JSONDecodeError:
            return None

    def __repr__(self) -> str:
        return f"CostHistoryEntry(recipe_key='{self.recipe_key}')"
