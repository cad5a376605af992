"""
Ingredient Cost Index - read-only price lookup for one costing pass.

The index is built from an immutable list of IngredientRecord and never
changes afterwards. The cost aggregator builds a fresh index for every
top-level computation, so one recursive computation never mixes prices
from different points in time.
"""

from types import MappingProxyType
from typing import Iterable, Iterator, List, Optional

from recipe_costing.services.dto import IngredientRecord, RecordId


class IngredientCostIndex:
    """O(1) lookup from ingredient id to its pack unit and net unit cost."""

    def __init__(self, ingredients: Iterable[IngredientRecord]):
        by_id = {}
        for ingredient in ingredients:
            by_id[ingredient.id] = ingredient
        self._by_id = MappingProxyType(by_id)

    def lookup(self, ingredient_id: Optional[RecordId]) -> Optional[IngredientRecord]:
        """
        Find an ingredient.

        Args:
            ingredient_id: Ingredient identifier (None is never found)

        Returns:
            IngredientRecord, or None if the id is unknown
        """
        if ingredient_id is None:
            return None
        return self._by_id.get(ingredient_id)

    def missing_cost_ids(self) -> List[RecordId]:
        """Ids of indexed ingredients without a usable net unit cost."""
        return [i.id for i in self._by_id.values() if not i.net_unit_cost > 0]

    def __contains__(self, ingredient_id) -> bool:
        return ingredient_id in self._by_id

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self) -> Iterator[IngredientRecord]:
        return iter(self._by_id.values())
