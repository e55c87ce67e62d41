"""
Database module for BlitzWatch
Report stores: in-memory, and PostgreSQL + PostGIS persistence
"""

from .changes import ChangeFeed
from .memory import InMemoryReportStore
from .connection import DatabaseConnection
from .models import Base, ReportRecord, MessageRecord
from .sql_store import SqlReportStore
from .init_db import init_database

__all__ = [
    "ChangeFeed",
    "InMemoryReportStore",
    "DatabaseConnection",
    "Base",
    "ReportRecord",
    "MessageRecord",
    "SqlReportStore",
    "init_database",
]
