"""
Schema migrations: ordered, idempotent schema changes tracked in a ledger table.

Each migration has a unique identifier YYYYMMDDHHmm. Pending migrations run in
ascending identifier order, each in its own transaction together with its ledger
row. On failure the transaction is rolled back, nothing is recorded and the error is
re-raised.

Register migrations on the process-wide ``MIGRATIONS`` registry, on a registry of
your own, or point a ``PackageMigrationSource`` at the package that defines them.
"""

from dbshift.migrations.base import DatabaseMigration, SqlMigration
from dbshift.migrations.identity import MigrationIdentity, is_valid_migration_name, parse_identity
from dbshift.migrations.ledger import LedgerStore
from dbshift.migrations.runner import DatabaseMigrator, MigrationResult, validate_migrations
from dbshift.migrations.schema_file import find_schema_file, parse_schema_version
from dbshift.migrations.source import MigrationRegistry, MigrationSource, PackageMigrationSource

MIGRATIONS = MigrationRegistry()
register = MIGRATIONS.register

__all__ = [
    "DatabaseMigration",
    "DatabaseMigrator",
    "LedgerStore",
    "MIGRATIONS",
    "MigrationIdentity",
    "MigrationRegistry",
    "MigrationResult",
    "MigrationSource",
    "PackageMigrationSource",
    "SqlMigration",
    "find_schema_file",
    "is_valid_migration_name",
    "parse_identity",
    "parse_schema_version",
    "register",
    "validate_migrations",
]
