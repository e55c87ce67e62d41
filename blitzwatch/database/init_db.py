"""
Database bootstrap for BlitzWatch
Checks the connection, enables PostGIS and creates the schema outside
production, where alembic migrations own it
"""

import logging
from typing import Optional

from blitzwatch.core.config import Settings, get_settings
from blitzwatch.core.errors import StoreError
from blitzwatch.core.logging import setup_logging
from .connection import DatabaseConnection
from .sql_store import SqlReportStore

logger = logging.getLogger(__name__)


def init_database(
    settings: Optional[Settings] = None,
    db: Optional[DatabaseConnection] = None
) -> SqlReportStore:
    """
    Prepare the database and return a store bound to it.

    Args:
        settings: Application settings
        db: Existing connection, created from settings if omitted

    Returns:
        SqlReportStore using the connection

    Raises:
        StoreError: the database is unreachable or PostGIS cannot be enabled
    """
    settings = settings or get_settings()
    db = db or DatabaseConnection(settings=settings)

    if not db.check_connection():
        raise StoreError(f"Database unreachable: {db._mask_url(db.database_url)}")

    if db.engine.dialect.name == "postgresql" and not db.enable_postgis():
        raise StoreError("PostGIS extension could not be enabled")

    if settings.is_production:
        logger.info("Production environment, schema is managed by migrations")
    else:
        db.create_tables()

    return SqlReportStore(db)


def main() -> None:
    """Entry point for ``blitzwatch-init-db``."""
    settings = get_settings()
    setup_logging(settings)

    store = init_database(settings)
    logger.info("Database ready")
    store.db.close()


if __name__ == "__main__":
    main()
