"""Service layer logging utilities.

Provides structured logging functions for service operations, enabling
consistent log format and context across costing, history and batch
operations.

Usage:
    from recipe_costing.services.logging_utils import get_service_logger, log_operation

    logger = get_service_logger(__name__)

    log_operation(
        logger,
        operation="compute_cost",
        outcome="success",
        recipe_id="r-1",
        total_cost=12.5,
    )
"""

import logging
from typing import Any


def get_service_logger(name: str) -> logging.Logger:
    """
    Get a logger configured for service operations.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger instance with the 'recipe_costing.services' prefix.

    Example:
        >>> logger = get_service_logger(__name__)
        >>> logger.name
        'recipe_costing.services.cost_aggregator'
    """
    if "." in name:
        name = name.split(".")[-1]
    return logging.getLogger(f"recipe_costing.services.{name}")


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Log a service operation with structured context.

    The context is passed via the 'extra' parameter for structured logging.

    Args:
        logger: Logger instance to use
        operation: Operation name (e.g., "compute_cost", "record_snapshot")
        outcome: Outcome description (e.g., "success", "skipped_duplicate", "error")
        level: Log level (default: INFO). Use DEBUG for verbose/frequent logs.
        **context: Additional context fields (entity IDs, counts, error details)

    Example:
        >>> log_operation(
        ...     logger,
        ...     operation="recalculate_net_unit_costs",
        ...     outcome="partial_failure",
        ...     level=logging.WARNING,
        ...     succeeded=18,
        ...     failed=2,
        ... )
    """
    extra = {
        "operation": operation,
        "outcome": outcome,
        **context,
    }
    logger.log(level, f"{operation}: {outcome}", extra=extra)
