"""
PostgreSQL connection wrapper and schema migration runner.
"""

from dbshift.database import DatabaseConnection
from dbshift.migrations import (
    MIGRATIONS,
    DatabaseMigration,
    DatabaseMigrator,
    MigrationRegistry,
    PackageMigrationSource,
    SqlMigration,
    register,
)

__all__ = [
    "DatabaseConnection",
    "DatabaseMigration",
    "DatabaseMigrator",
    "MIGRATIONS",
    "MigrationRegistry",
    "PackageMigrationSource",
    "SqlMigration",
    "register",
]
