"""Recipe Costing - cost aggregation engine for restaurant recipes."""

from recipe_costing.utils.constants import APP_VERSION as __version__

__all__ = ["__version__"]
