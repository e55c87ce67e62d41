"""
BlitzWatch - Logging Configuration
Process-wide logging setup, driven by Settings.
"""

import logging
import sys
from typing import Optional

from blitzwatch.core.config import Settings, get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"

# Database layer loggers, kept at WARNING unless SQL echo is on
_DB_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "alembic")


def setup_logging(
    settings: Optional[Settings] = None,
    level: Optional[str] = None
) -> logging.Logger:
    """
    Configure the root handler and return the application logger.

    Args:
        settings: Settings to read ``log_level``, ``debug`` and ``db_echo`` from
        level: Explicit level, overrides settings

    Returns:
        The ``blitzwatch`` logger
    """
    settings = settings or get_settings()
    if level is None:
        level = "DEBUG" if settings.debug else settings.log_level
    log_level = getattr(logging, level.upper())

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    logger = logging.getLogger("blitzwatch")
    logger.setLevel(log_level)

    db_level = logging.INFO if settings.db_echo else logging.WARNING
    for name in _DB_LOGGERS:
        logging.getLogger(name).setLevel(db_level)

    return logger
