"""
Store construction from runtime settings.
"""

from src.config.settings import DB_TYPE_POSTGRES, DB_TYPE_SQLITE, Settings
from src.observability.logger import get_logger
from src.utils.validation import mask_dsn

from .store import Store

logger = get_logger(__name__)


def open_store(settings: Settings, migrate: bool = True) -> Store:
    """
    Open the configured backend and optionally create the schema.

    Args:
        settings: Runtime settings (db_type, db_path)
        migrate: Whether to run schema migrations

    Returns:
        Store implementing both the processed and config interfaces

    Raises:
        ValueError: If db_type is not supported
        StoreError: If migration fails
    """
    if settings.db_type == DB_TYPE_POSTGRES:
        # Lazy import: psycopg is only needed for the PostgreSQL backend
        from .connection import DatabaseConnectionPool
        from .postgres_store import PostgresStore

        logger.info("initializing PostgreSQL storage", extra={"dsn": mask_dsn(settings.db_path)})
        store: Store = PostgresStore(DatabaseConnectionPool(dsn=settings.db_path))
    elif settings.db_type == DB_TYPE_SQLITE:
        from .sqlite_store import SQLiteStore

        logger.info("initializing SQLite storage", extra={"path": settings.db_path})
        store = SQLiteStore(settings.db_path)
    else:
        raise ValueError(f"Unsupported DB_TYPE: {settings.db_type}")

    if migrate:
        try:
            store.migrate()
        except Exception:
            store.close()
            raise
    return store
