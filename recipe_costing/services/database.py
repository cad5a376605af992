"""
Database plumbing for the costing persistence adapters.

The costing engine itself never touches the database. This module owns
everything the adapters need to reach it:
- one process-wide Engine built from Config.database_url
- the session factory and the session_scope() transaction helper
- creating, checking and resetting the costing tables

SQLite connections get foreign keys and WAL journaling so batch readers can
run while the history writer holds a transaction.
"""

from contextlib import contextmanager
import logging
from typing import Optional

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ..utils.config import get_config
from ..models.base import Base

logger = logging.getLogger(__name__)

COSTING_TABLES = ("ingredients", "recipes", "recipe_lines", "cost_history")

_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


@event.listens_for(Engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    """Enable foreign keys and WAL on every new SQLite connection."""
    if "sqlite" not in type(dbapi_connection).__module__:
        return

    cursor = dbapi_connection.cursor()
    # ON DELETE CASCADE / SET NULL on recipe lines depend on this
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


def create_database_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Build an Engine for the costing database.

    Args:
        database_url: SQLAlchemy URL (default: Config.database_url)
        echo: Log every SQL statement

    Returns:
        Engine. In-memory SQLite uses a single shared connection so batch
        worker threads see the same tables.
    """
    if database_url is None:
        database_url = get_config().database_url

    logger.info(f"Creating database engine: {database_url}")

    if ":memory:" in database_url or "mode=memory" in database_url:
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
    return create_engine(database_url, echo=echo, pool_pre_ping=True)


def get_engine() -> Engine:
    """Process-wide Engine, created on first use."""
    global _engine

    if _engine is None:
        _engine = create_database_engine()
    return _engine


def get_session_factory() -> sessionmaker:
    """
    Process-wide session factory.

    Sessions keep loaded attributes after commit (expire_on_commit=False),
    so rows read inside session_scope() stay usable as plain values.
    """
    global _SessionFactory

    if _SessionFactory is None:
        _SessionFactory = sessionmaker(bind=get_engine(), expire_on_commit=False)
    return _SessionFactory


@contextmanager
def session_scope():
    """
    Transactional scope: commit on success, roll back on error, always close.

    Example:
        with session_scope() as session:
            session.add(Recipe(name="Bread", portions=4))
    """
    session = get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def _register_models() -> None:
    # Importing the model modules registers their tables on Base.metadata
    from ..models import ingredient, recipe, cost_history  # noqa: F401


def init_database(engine: Optional[Engine] = None) -> None:
    """
    Create any costing tables that do not exist yet.

    Args:
        engine: Engine to use (default: get_engine())
    """
    engine = engine or get_engine()
    _register_models()
    Base.metadata.create_all(engine)
    logger.info("Costing tables ready")


def verify_database(engine: Optional[Engine] = None) -> bool:
    """
    Check that every costing table exists.

    Returns:
        True if all tables are present, False if any is missing or the
        database cannot be inspected
    """
    engine = engine or get_engine()
    try:
        tables = set(inspect(engine).get_table_names())
    except Exception as e:
        logger.error(f"Database verification failed: {e}")
        return False
    missing = [name for name in COSTING_TABLES if name not in tables]
    if missing:
        logger.warning(f"Missing tables: {', '.join(missing)}")
    return not missing


def reset_database(confirm: bool = False, engine: Optional[Engine] = None) -> None:
    """
    Drop and recreate every costing table. All data is lost.

    Args:
        confirm: Must be True
        engine: Engine to use (default: get_engine())

    Raises:
        ValueError: If confirm is not True
    """
    if not confirm:
        raise ValueError("Must pass confirm=True to reset database. This will delete all data!")

    engine = engine or get_engine()
    logger.warning("RESETTING DATABASE - ALL DATA WILL BE LOST")
    _register_models()
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)


def initialize_app_database(reset: bool = False) -> None:
    """
    Prepare the configured database for the CLI.

    Creates the data directory (default SQLite location only) and the
    costing tables. With reset=True every table is dropped and recreated.
    """
    config = get_config()
    config.ensure_directories()
    logger.info(f"Using database: {config.database_url}")

    engine = get_engine()
    if reset:
        reset_database(confirm=True, engine=engine)
    else:
        init_database(engine)

    if not verify_database(engine):
        logger.warning("Database verification failed - tables may not exist")
