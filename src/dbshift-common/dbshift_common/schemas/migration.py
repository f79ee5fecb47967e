"""
Migration ledger schema and models.

The ledger records which migrations have run so they execute only once.
identifier is the primary key (YYYYMMDDHHmm); name is informational and is not
re-validated against the migration source.
"""

from datetime import datetime
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import BigInteger, Column, DateTime, MetaData, Table, Text

from dbshift_common.constants import DEFAULT_MIGRATIONS_SCHEMA, DEFAULT_MIGRATIONS_TABLE


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


class MigrationTableConfig(BaseModel):
    """Location of the migration ledger table."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    schema_name: str = Field(default=DEFAULT_MIGRATIONS_SCHEMA, alias="schema", min_length=1)
    table: str = Field(default=DEFAULT_MIGRATIONS_TABLE, min_length=1)

    @property
    def fully_qualified_table_name(self) -> str:
        """The table name in the format "schema"."table"."""
        return f"{_quote(self.schema_name)}.{_quote(self.table)}"


class ExecutedMigration(BaseModel):
    identifier: int
    name: str
    executed_at: datetime


class SchemaVersion(NamedTuple):
    """Migration version recorded in a schema file header."""

    identifier: int
    name: str


def build_ledger_table(config: MigrationTableConfig, metadata: MetaData | None = None) -> Table:
    """Build the Core table for a ledger location. The primary key is what rejects a second
    insert for the same identifier when two processes race."""
    return Table(
        config.table,
        metadata if metadata is not None else MetaData(),
        Column("identifier", BigInteger, primary_key=True, autoincrement=False),
        Column("name", Text, nullable=False),
        Column("executed_at", DateTime(timezone=True), nullable=False),
        schema=config.schema_name,
    )
