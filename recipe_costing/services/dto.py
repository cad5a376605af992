"""Data Transfer Objects for the costing engine.

The engine works on immutable snapshots of externally owned records. This
module defines those records, the warning taxonomy and the result objects
returned by the engine.

Records are frozen dataclasses: the engine never mutates them. Each record
has a from_dict() constructor that accepts both snake_case keys and the
camelCase keys of the legacy storage format and coerces loose persisted
values (numeric strings, None, NaN) into valid ones.

Example:
    >>> flour = IngredientRecord(id="flour", name="Flour", pack_unit="kg", net_unit_cost=2.0)
    >>> line = RecipeLineRecord(
    ...     id="l1", recipe_id="bread", line_type=LineType.INGREDIENT,
    ...     ingredient_id="flour", net_qty=500, unit="g",
    ... )
"""

from collections import defaultdict
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from recipe_costing.services.dto_utils import pick, to_float, to_optional_float
from recipe_costing.utils.constants import DEFAULT_CURRENCY, DEFAULT_TARGET_FOOD_COST_PCT
from recipe_costing.utils.datetime_utils import ensure_utc, from_epoch_ms, to_epoch_ms

RecordId = Union[int, str]


class LineType(str, Enum):
    """
    Recipe line variant.

    Values:
        INGREDIENT: Line referencing an ingredient (ingredient_id is authoritative)
        SUB_RECIPE: Line referencing another recipe (sub_recipe_id is authoritative)
        GROUP: Display-only heading (group_title); never carries cost
    """

    INGREDIENT = "ingredient"
    SUB_RECIPE = "subrecipe"
    GROUP = "group"

    @classmethod
    def parse(cls, value: Any) -> "LineType":
        """Parse a stored line type, accepting a few historical spellings."""
        if isinstance(value, LineType):
            return value
        text = str(value or "").strip().lower().replace("-", "").replace("_", "")
        if text in ("subrecipe", "sub", "recipe"):
            return cls.SUB_RECIPE
        if text in ("group", "section", "heading"):
            return cls.GROUP
        return cls.INGREDIENT


class WarningKind(str, Enum):
    """Classification of recoverable costing problems."""

    INCOMPATIBLE_UNITS = "incompatible_units"
    CYCLE_DETECTED = "cycle_detected"
    MISSING_REFERENCE = "missing_reference"
    MISSING_PRICE = "missing_price"
    INVALID_YIELD = "invalid_yield"
    MAX_DEPTH_EXCEEDED = "max_depth_exceeded"
    INACTIVE_INGREDIENT = "inactive_ingredient"
    NOT_A_SUB_RECIPE = "not_a_sub_recipe"


@dataclass(frozen=True)
class CostWarning:
    """
    A recoverable problem found while costing a recipe.

    The cost of the affected line is a best-effort value (usually zero);
    the rest of the recipe is still costed.

    Attributes:
        kind: WarningKind classification
        message: Human-readable description
        recipe_id: Recipe whose line produced the warning
        line_id: Offending line, when the warning concerns one line
    """

    kind: WarningKind
    message: str
    recipe_id: Optional[RecordId] = None
    line_id: Optional[RecordId] = None

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "recipe_id": self.recipe_id,
            "line_id": self.line_id,
        }


def dedupe_warnings(warnings: Iterable[CostWarning]) -> Tuple[CostWarning, ...]:
    """Drop repeated warnings, keeping the first occurrence of each (kind, message)."""
    seen = set()
    result = []
    for warning in warnings:
        key = (warning.kind, warning.message)
        if key in seen:
            continue
        seen.add(key)
        result.append(warning)
    return tuple(result)


# ============================================================================
# Entity Records
# ============================================================================


@dataclass(frozen=True)
class IngredientRecord:
    """
    Ingredient price data as seen by the engine.

    Attributes:
        id: Opaque identifier
        name: Display name
        pack_unit: Unit the price is quoted in
        net_unit_cost: Cost per one pack_unit, already net of supplier yield loss
        active: False for ingredients hidden from pickers
    """

    id: RecordId
    name: str = ""
    pack_unit: str = "g"
    net_unit_cost: float = 0.0
    active: bool = True

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "IngredientRecord":
        return cls(
            id=data["id"],
            name=str(pick(data, "name", default="")),
            pack_unit=str(pick(data, "pack_unit", "packUnit", default="g")),
            net_unit_cost=to_float(pick(data, "net_unit_cost", "netUnitCost"), 0.0),
            active=bool(pick(data, "active", "is_active", "isActive", default=True)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "pack_unit": self.pack_unit,
            "net_unit_cost": self.net_unit_cost,
            "active": self.active,
        }


@dataclass(frozen=True)
class RecipeRecord:
    """
    Recipe metadata as seen by the engine.

    Attributes:
        id: Opaque identifier
        name: Display name
        portions: Portions produced by one batch (>= 1)
        is_sub_recipe: True if the recipe can be used as a line in other recipes
        yield_qty: Usable output of one batch (sub-recipes only)
        yield_unit: Unit of yield_qty (sub-recipes only)
        selling_price: Menu price of one portion, if set
        currency: Currency of every cost in the recipe
        target_food_cost_pct: Desired food-cost percentage (0-100, exclusive of 0)
        is_archived: Archived recipes are left out of dashboard summaries
    """

    id: RecordId
    name: str = ""
    portions: float = 1
    is_sub_recipe: bool = False
    yield_qty: Optional[float] = None
    yield_unit: Optional[str] = None
    selling_price: Optional[float] = None
    currency: str = DEFAULT_CURRENCY
    target_food_cost_pct: Optional[float] = DEFAULT_TARGET_FOOD_COST_PCT
    is_archived: bool = False

    @property
    def has_valid_yield(self) -> bool:
        """True when yield_qty > 0 and yield_unit is not blank."""
        return (
            self.yield_qty is not None
            and self.yield_qty > 0
            and bool((self.yield_unit or "").strip())
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RecipeRecord":
        return cls(
            id=data["id"],
            name=str(pick(data, "name", default="")),
            portions=max(1.0, to_float(pick(data, "portions"), 1.0)),
            is_sub_recipe=bool(pick(data, "is_sub_recipe", "is_subrecipe", "isSubRecipe", default=False)),
            yield_qty=to_optional_float(pick(data, "yield_qty", "yieldQty")),
            yield_unit=pick(data, "yield_unit", "yieldUnit"),
            selling_price=to_optional_float(pick(data, "selling_price", "sellingPrice")),
            currency=str(pick(data, "currency", default=DEFAULT_CURRENCY)).strip().upper()
            or DEFAULT_CURRENCY,
            target_food_cost_pct=to_optional_float(
                pick(
                    data,
                    "target_food_cost_pct",
                    "targetFoodCostPct",
                    default=DEFAULT_TARGET_FOOD_COST_PCT,
                )
            ),
            is_archived=bool(pick(data, "is_archived", "isArchived", default=False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "portions": self.portions,
            "is_sub_recipe": self.is_sub_recipe,
            "yield_qty": self.yield_qty,
            "yield_unit": self.yield_unit,
            "selling_price": self.selling_price,
            "currency": self.currency,
            "target_food_cost_pct": self.target_food_cost_pct,
            "is_archived": self.is_archived,
        }


@dataclass(frozen=True)
class RecipeLineRecord:
    """
    One line of a recipe.

    line_type selects which reference is authoritative: ingredient_id for
    INGREDIENT lines, sub_recipe_id for SUB_RECIPE lines, group_title for
    GROUP lines.

    Attributes:
        id: Opaque identifier
        recipe_id: Owning recipe
        line_type: LineType tag
        ingredient_id: Referenced ingredient (INGREDIENT only)
        sub_recipe_id: Referenced recipe (SUB_RECIPE only)
        net_qty: Amount that ends up in the dish (>= 0)
        unit: Unit of net_qty / gross_override
        yield_percent: Prep yield, 0 < y <= 100 (100 = no loss)
        gross_override: Explicit purchased/prepared quantity; when > 0 it wins
            over the yield-derived gross
        notes: Free text
        position: Display order
        group_title: Heading text (GROUP only)
    """

    id: RecordId
    recipe_id: RecordId
    line_type: LineType = LineType.INGREDIENT
    ingredient_id: Optional[RecordId] = None
    sub_recipe_id: Optional[RecordId] = None
    net_qty: float = 0.0
    unit: str = "g"
    yield_percent: float = 100.0
    gross_override: Optional[float] = None
    notes: Optional[str] = None
    position: int = 0
    group_title: Optional[str] = None

    def __post_init__(self):
        # Always a LineType member, also when built from a stored string
        object.__setattr__(self, "line_type", LineType.parse(self.line_type))

    def with_yield_percent(self, yield_percent: float) -> "RecipeLineRecord":
        """Copy with a new yield; the gross override is cleared."""
        return replace(self, yield_percent=yield_percent, gross_override=None)

    def with_gross_override(self, gross: Optional[float]) -> "RecipeLineRecord":
        """Copy with an explicit gross quantity (None removes the override)."""
        return replace(self, gross_override=gross)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RecipeLineRecord":
        return cls(
            id=data["id"],
            recipe_id=pick(data, "recipe_id", "recipeId"),
            line_type=LineType.parse(pick(data, "line_type", "lineType", "type")),
            ingredient_id=pick(data, "ingredient_id", "ingredientId"),
            sub_recipe_id=pick(data, "sub_recipe_id", "subRecipeId"),
            net_qty=to_float(pick(data, "net_qty", "netQty", "qty"), 0.0),
            unit=str(pick(data, "unit", default="g")),
            yield_percent=to_float(pick(data, "yield_percent", "yieldPercent"), 100.0),
            gross_override=to_optional_float(
                pick(data, "gross_override", "grossOverride", "gross_qty_override")
            ),
            notes=pick(data, "notes"),
            position=int(to_float(pick(data, "position"), 0)),
            group_title=pick(data, "group_title", "groupTitle"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "recipe_id": self.recipe_id,
            "line_type": self.line_type.value,
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


@dataclass(frozen=True)
class CostPoint:
    """
    One entry of a recipe's cost history.

    Attributes:
        id: Unique point identifier
        recipe_id: Recipe the point belongs to
        created_at: When the snapshot was taken (timezone-aware UTC)
        total_cost: Recipe total at that time
        cost_per_portion: Cost per portion at that time
        portions: Portions the recipe had at that time
        currency: Currency of the money fields
    """

    id: str
    recipe_id: Optional[RecordId]
    created_at: datetime
    total_cost: float
    cost_per_portion: float
    portions: float = 1
    currency: str = DEFAULT_CURRENCY

    def __post_init__(self):
        object.__setattr__(self, "created_at", ensure_utc(self.created_at))

    def same_totals(self, other: "CostPoint", tolerance: float) -> bool:
        """True if both points carry the same totals, portions and currency."""
        return (
            abs(self.total_cost - other.total_cost) < tolerance
            and abs(self.cost_per_portion - other.cost_per_portion) < tolerance
            and self.portions == other.portions
            and self.currency == other.currency
        )

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to the interop format used by the history store."""
        return {
            "id": self.id,
            "createdAt": to_epoch_ms(self.created_at),
            "totalCost": self.total_cost,
            "costPerPortion": self.cost_per_portion,
            "portions": self.portions,
            "currency": self.currency,
        }

    @classmethod
    def from_payload(cls, data: Mapping[str, Any], recipe_id: Optional[RecordId] = None) -> Optional["CostPoint"]:
        """
        Parse one stored point.

        Returns:
            CostPoint, or None when the entry has no id or no valid timestamp
        """
        point_id = str(pick(data, "id", default="")).strip()
        created_ms = to_float(pick(data, "createdAt", "created_at"), 0.0)
        if not point_id or created_ms <= 0:
            return None
        portions = max(1.0, to_float(pick(data, "portions"), 1.0))
        if portions.is_integer():
            portions = int(portions)
        return cls(
            id=point_id,
            recipe_id=recipe_id,
            created_at=from_epoch_ms(created_ms),
            total_cost=to_float(pick(data, "totalCost", "total_cost"), 0.0),
            cost_per_portion=to_float(pick(data, "costPerPortion", "cost_per_portion", "cpp"), 0.0),
            portions=portions,
            currency=str(pick(data, "currency", default=DEFAULT_CURRENCY)).strip().upper()
            or DEFAULT_CURRENCY,
        )


# ============================================================================
# Engine Results
# ============================================================================


@dataclass(frozen=True)
class SubRecipeCost:
    """Already-computed cost and yield of a referenced sub-recipe."""

    recipe_id: RecordId
    total_cost: float
    yield_qty: Optional[float]
    yield_unit: Optional[str]
    name: str = ""


@dataclass(frozen=True)
class ResolvedLine:
    """
    Quantities and cost of one recipe line.

    Attributes:
        line_id: Source line
        line_type: Source line type
        net: Net quantity used in the dish
        gross: Quantity to purchase/prepare
        yield_pct: Effective yield (derived when a gross override is set)
        unit_cost: Cost per pack unit (ingredient) or per yield unit (sub-recipe)
        line_cost: Cost contributed to the recipe total
        warnings: Problems found on this line
    """

    line_id: RecordId
    line_type: LineType
    net: float
    gross: float
    yield_pct: float
    unit_cost: float
    line_cost: float
    warnings: Tuple[CostWarning, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "line_id": self.line_id,
            "line_type": self.line_type.value,
            "net": self.net,
            "gross": self.gross,
            "yield_pct": self.yield_pct,
            "unit_cost": self.unit_cost,
            "line_cost": self.line_cost,
            "warnings": [str(w) for w in self.warnings],
        }


@dataclass(frozen=True)
class CostResult:
    """
    Aggregated cost of a recipe.

    Attributes:
        recipe_id: Costed recipe
        total_cost: Sum of all line costs
        warnings: De-duplicated warnings, including those of nested sub-recipes
        lines: Resolved lines of this recipe (not of its sub-recipes)
    """

    recipe_id: RecordId
    total_cost: float
    warnings: Tuple[CostWarning, ...] = ()
    lines: Tuple[ResolvedLine, ...] = ()

    @property
    def is_complete(self) -> bool:
        """True when no warning was produced."""
        return not self.warnings

    @property
    def warning_messages(self) -> List[str]:
        return [str(w) for w in self.warnings]

    def warnings_of(self, kind: WarningKind) -> List[CostWarning]:
        """Warnings of a single kind."""
        return [w for w in self.warnings if w.kind is kind]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recipe_id": self.recipe_id,
            "total_cost": self.total_cost,
            "warnings": self.warning_messages,
            "lines": [line.to_dict() for line in self.lines],
        }


# ============================================================================
# Costing Snapshot
# ============================================================================


@dataclass(frozen=True)
class CostingSnapshot:
    """
    Immutable batch of everything one costing pass may read.

    Build it once, before computing, so a single top-level computation sees
    a single consistent set of prices.

    Attributes:
        recipes: Recipes keyed by id
        lines_by_recipe: Lines of each recipe, sorted by position
        ingredients: Ingredient records
    """

    recipes: Mapping[RecordId, RecipeRecord] = field(default_factory=dict)
    lines_by_recipe: Mapping[RecordId, Tuple[RecipeLineRecord, ...]] = field(default_factory=dict)
    ingredients: Tuple[IngredientRecord, ...] = ()

    @classmethod
    def build(
        cls,
        recipes: Iterable[RecipeRecord],
        lines: Iterable[RecipeLineRecord],
        ingredients: Iterable[IngredientRecord],
    ) -> "CostingSnapshot":
        """Build a snapshot from pre-fetched collections."""
        grouped: Dict[RecordId, List[RecipeLineRecord]] = defaultdict(list)
        for line in lines:
            grouped[line.recipe_id].append(line)
        return cls(
            recipes={recipe.id: recipe for recipe in recipes},
            lines_by_recipe={
                recipe_id: tuple(sorted(recipe_lines, key=lambda line: line.position))
                for recipe_id, recipe_lines in grouped.items()
            },
            ingredients=tuple(ingredients),
        )

    @classmethod
    def collect(
        cls,
        root_ids: Iterable[RecordId],
        fetch_recipe: Callable[[RecordId], Optional[RecipeRecord]],
        fetch_lines: Callable[[RecordId], Iterable[RecipeLineRecord]],
        fetch_ingredients: Callable[[List[RecordId]], Iterable[IngredientRecord]],
    ) -> "CostingSnapshot":
        """
        Build a snapshot by walking the sub-recipe graph through loader callbacks.

        Every recipe reachable from root_ids is fetched exactly once, then all
        referenced ingredients are fetched in one call. Unresolvable recipe ids
        are simply absent from the snapshot; the aggregator reports them.

        Args:
            root_ids: Recipes the caller wants to cost
            fetch_recipe: Returns a RecipeRecord or None
            fetch_lines: Returns the lines of one recipe
            fetch_ingredients: Returns ingredient records for a list of ids

        Returns:
            CostingSnapshot
        """
        recipes: List[RecipeRecord] = []
        lines: List[RecipeLineRecord] = []
        ingredient_ids: List[RecordId] = []
        seen = set()
        pending = list(root_ids)

        while pending:
            recipe_id = pending.pop()
            if recipe_id in seen:
                continue
            seen.add(recipe_id)

            recipe = fetch_recipe(recipe_id)
            if recipe is None:
                continue
            recipes.append(recipe)

            for line in fetch_lines(recipe_id):
                lines.append(line)
                if line.line_type is LineType.SUB_RECIPE and line.sub_recipe_id is not None:
                    pending.append(line.sub_recipe_id)
                elif line.line_type is LineType.INGREDIENT and line.ingredient_id is not None:
                    if line.ingredient_id not in ingredient_ids:
                        ingredient_ids.append(line.ingredient_id)

        ingredients = list(fetch_ingredients(ingredient_ids)) if ingredient_ids else []
        return cls.build(recipes, lines, ingredients)

    def get_recipe(self, recipe_id: RecordId) -> Optional[RecipeRecord]:
        return self.recipes.get(recipe_id)

    def get_lines(self, recipe_id: RecordId) -> Tuple[RecipeLineRecord, ...]:
        return tuple(self.lines_by_recipe.get(recipe_id, ()))

    @property
    def all_lines(self) -> List[RecipeLineRecord]:
        return [line for lines in self.lines_by_recipe.values() for line in lines]
