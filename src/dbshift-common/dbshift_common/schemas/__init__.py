from dbshift_common.schemas.migration import (
    ExecutedMigration,
    MigrationTableConfig,
    SchemaVersion,
    build_ledger_table,
)

__all__ = ["ExecutedMigration", "MigrationTableConfig", "SchemaVersion", "build_ledger_table"]
