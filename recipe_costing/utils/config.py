"""
Configuration management for the recipe costing application.

This module handles:
- Database path configuration
- Environment-specific configuration (development vs. production)
- Costing engine settings (recursion depth, history size, batch workers)

Every engine setting can be overridden with an environment variable:
    RECIPE_COSTING_ENV               production | development
    RECIPE_COSTING_DATABASE_URL      full SQLAlchemy URL
    RECIPE_COSTING_MAX_DEPTH         maximum sub-recipe nesting depth
    RECIPE_COSTING_HISTORY_LIMIT     cost points kept per recipe
    RECIPE_COSTING_BATCH_WORKERS     worker threads for batch recalculation
    RECIPE_COSTING_DEFAULT_CURRENCY  currency for records that carry none
"""

import logging
import os
from pathlib import Path
from typing import Optional

from .constants import (
    APP_NAME,
    APP_VERSION,
    DATABASE_FILENAME,
    DATABASE_VERSION,
    DEFAULT_BATCH_WORKERS,
    DEFAULT_CURRENCY,
    DEFAULT_HISTORY_LIMIT,
    DEFAULT_MAX_RECIPE_DEPTH,
    MAX_RECIPE_DEPTH_LIMIT,
)

logger = logging.getLogger(__name__)


def _int_from_env(name: str, default: int, minimum: int = 1, maximum: Optional[int] = None) -> int:
    """
    Read a positive integer setting.

    Unparsable values and values below minimum fall back to the default;
    values above maximum are capped.
    """
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Ignoring {name}={raw!r}: not an integer, using {default}")
        return default
    if value < minimum:
        logger.warning(f"Ignoring {name}={raw!r}: must be >= {minimum}, using {default}")
        return default
    if maximum is not None and value > maximum:
        logger.warning(f"Capping {name}={raw!r} at {maximum}")
        return maximum
    return value


class Config:
    """
    Application configuration manager.

    Handles database location and the tunables of the costing engine.
    """

    def __init__(self, environment: str = "production"):
        """
        Initialize configuration.

        Args:
            environment: Environment mode - 'production' or 'development'
        """
        self.environment = environment
        self._app_name = APP_NAME
        self._app_version = APP_VERSION
        self._database_version = DATABASE_VERSION

        if environment == "development":
            self._base_dir = self._get_project_data_dir()
        else:
            self._base_dir = self._get_user_documents_dir()

        self._database_dir = self._base_dir
        self._database_path = self._database_dir / DATABASE_FILENAME
        self._database_url_override = os.environ.get("RECIPE_COSTING_DATABASE_URL") or None

        self.max_recipe_depth = _int_from_env(
            "RECIPE_COSTING_MAX_DEPTH", DEFAULT_MAX_RECIPE_DEPTH, maximum=MAX_RECIPE_DEPTH_LIMIT
        )
        self.history_limit = _int_from_env("RECIPE_COSTING_HISTORY_LIMIT", DEFAULT_HISTORY_LIMIT)
        self.batch_max_workers = _int_from_env(
            "RECIPE_COSTING_BATCH_WORKERS", DEFAULT_BATCH_WORKERS
        )
        self.default_currency = (
            os.environ.get("RECIPE_COSTING_DEFAULT_CURRENCY", DEFAULT_CURRENCY).strip().upper()
            or DEFAULT_CURRENCY
        )

    def _get_project_data_dir(self) -> Path:
        """Get the project's data directory for development."""
        project_root = Path(__file__).parent.parent.parent
        return project_root / "data"

    def _get_user_documents_dir(self) -> Path:
        """Get the user's Documents directory (with app subdirectory) for production."""
        if os.name == "nt":  # Windows
            documents = Path(os.path.expanduser("~")) / "Documents"
        else:
            documents = Path.home() / "Documents"
        return documents / "RecipeCosting"

    def ensure_directories(self):
        """Create the default database directory (not needed with a URL override)."""
        if self._database_url_override:
            return
        self._database_dir.mkdir(parents=True, exist_ok=True)

    @property
    def app_name(self) -> str:
        """Application name."""
        return self._app_name

    @property
    def app_version(self) -> str:
        """Application version."""
        return self._app_version

    @property
    def database_version(self) -> str:
        """Database schema version."""
        return self._database_version

    @property
    def database_path(self) -> Path:
        """Full path to the database file."""
        return self._database_path

    @property
    def database_url(self) -> str:
        """
        SQLAlchemy database URL.

        Returns:
            RECIPE_COSTING_DATABASE_URL when set, otherwise a SQLite URL
            pointing at database_path
        """
        if self._database_url_override:
            return self._database_url_override
        db_path_str = str(self._database_path).replace("\\", "/")
        return f"sqlite:///{db_path_str}"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    def __repr__(self) -> str:
        """String representation of config."""
        return (
            f"Config(environment='{self.environment}', "
            f"database_url='{self.database_url}', "
            f"max_recipe_depth={self.max_recipe_depth})"
        )


_config_instance: Optional[Config] = None


def get_config(environment: Optional[str] = None) -> Config:
    """
    Get the global configuration instance.

    Once created, the singleton's environment cannot be changed by passing
    a different environment argument - this prevents accidental database
    switching mid-session.

    Args:
        environment: Optional environment for initial creation. If None, uses
                    RECIPE_COSTING_ENV or defaults to production. Ignored if
                    singleton already exists.

    Returns:
        Config instance
    """
    global _config_instance

    if _config_instance is None:
        if environment is None:
            environment = os.environ.get("RECIPE_COSTING_ENV", "production")
        _config_instance = Config(environment)
    elif environment is not None and environment != _config_instance.environment:
        logger.warning(
            f"get_config() called with environment='{environment}' but singleton "
            f"already exists with environment='{_config_instance.environment}'. "
            f"Returning existing singleton to prevent database switching."
        )

    return _config_instance


def reset_config():
    """
    Reset the global configuration instance.

    Useful for testing.
    """
    global _config_instance
    _config_instance = None


def get_database_url() -> str:
    """Get the database URL."""
    return get_config().database_url
