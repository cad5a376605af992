"""Service layer exception classes for the recipe costing application.

Only failures that make a call meaningless are raised. Everything the costing
engine can recover from (incompatible units, cycles, missing references,
invalid yields) is reported as a CostWarning instead, and per-item persistence
failures in batch operations are reported as BatchItemFailure entries.

Exception Hierarchy:
    ServiceError (base)
    ├── RecipeNotFound
    ├── IngredientNotFound
    ├── ValidationError
    ├── DatabaseError
    └── CostHistoryError
"""


class ServiceError(Exception):
    """Base exception for all service layer errors.

    All service-specific exceptions should inherit from this class.
    """

    pass


class RecipeNotFound(ServiceError):
    """Raised when a recipe cannot be found by ID.

    Args:
        recipe_id: The recipe ID that was not found

    Example:
        >>> raise RecipeNotFound("r-42")
        RecipeNotFound: Recipe with ID r-42 not found
    """

    def __init__(self, recipe_id):
        self.recipe_id = recipe_id
        super().__init__(f"Recipe with ID {recipe_id} not found")


class IngredientNotFound(ServiceError):
    """Raised when an ingredient cannot be found by ID."""

    def __init__(self, ingredient_id):
        self.ingredient_id = ingredient_id
        super().__init__(f"Ingredient with ID {ingredient_id} not found")


class ValidationError(ServiceError):
    """Raised when data validation fails."""

    def __init__(self, errors: list):
        self.errors = errors
        error_msg = "; ".join(errors)
        super().__init__(f"Validation failed: {error_msg}")


class DatabaseError(ServiceError):
    """Raised when a database operation fails."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")


class CostHistoryError(ServiceError):
    """Raised when a cost history payload cannot be read or written.

    Args:
        recipe_id: Recipe whose history was being accessed
        message: What went wrong
    """

    def __init__(self, recipe_id, message: str, original_error: Exception = None):
        self.recipe_id = recipe_id
        self.original_error = original_error
        super().__init__(f"Cost history for recipe {recipe_id}: {message}")
