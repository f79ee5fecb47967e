"""
Persistent record of executed migrations.

Every operation runs on the caller's session so that it takes part in the caller's
transaction: a migration and its ledger row commit or roll back together.
"""

from datetime import datetime
from typing import List, Optional, Set

from loguru import logger
from sqlalchemy import func, insert, select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.schema import CreateSchema, CreateTable

from dbshift_common.constants import UNIQUE_VIOLATION_SQLSTATE
from dbshift_common.schemas.migration import (
    ExecutedMigration,
    MigrationTableConfig,
    build_ledger_table,
)


def is_unique_violation(exc: BaseException) -> bool:
    """True for a unique-key violation raised by the driver (asyncpg UniqueViolationError)."""
    if not isinstance(exc, IntegrityError):
        return False
    orig = exc.orig
    for candidate in (orig, getattr(orig, "__cause__", None)):
        if candidate is None:
            continue
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code == UNIQUE_VIOLATION_SQLSTATE or type(candidate).__name__ == "UniqueViolationError":
            return True
    return False


class LedgerStore:
    def __init__(self, config: Optional[MigrationTableConfig] = None):
        self.config = config or MigrationTableConfig()
        self.table = build_ledger_table(self.config)

    async def lock(self, session: AsyncSession) -> None:
        """Transaction-scoped advisory lock keyed on the ledger's qualified name."""
        await session.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
            {"key": self.config.fully_qualified_table_name},
        )

    async def ensure_schema(self, session: AsyncSession) -> None:
        """
        Create the ledger schema and table if they do not exist. IF NOT EXISTS alone can
        still collide on PostgreSQL's catalog indexes when two sessions race, so the
        statements run under the advisory lock.
        """
        await self.lock(session)
        await session.execute(CreateSchema(self.config.schema_name, if_not_exists=True))
        await session.execute(CreateTable(self.table, if_not_exists=True))
        logger.debug(f"Ensured migration ledger {self.config.fully_qualified_table_name}")

    async def table_exists(self, session: AsyncSession) -> bool:
        result = await session.execute(
            text("SELECT to_regclass(:name) IS NOT NULL"),
            {"name": self.config.fully_qualified_table_name},
        )
        return bool(result.scalar())

    async def get_applied_identifiers(self, session: AsyncSession) -> Set[int]:
        result = await session.execute(select(self.table.c.identifier))
        return {row[0] for row in result.all()}

    async def retrieve_executed(self, session: AsyncSession) -> List[ExecutedMigration]:
        result = await session.execute(
            select(
                self.table.c.identifier, self.table.c.name, self.table.c.executed_at
            ).order_by(self.table.c.identifier)
        )
        return [
            ExecutedMigration(identifier=identifier, name=name, executed_at=executed_at)
            for identifier, name, executed_at in result.all()
        ]

    async def is_recorded(self, session: AsyncSession, identifier: int) -> bool:
        result = await session.execute(
            select(self.table.c.identifier).where(self.table.c.identifier == identifier)
        )
        return result.scalar_one_or_none() is not None

    async def count(self, session: AsyncSession) -> int:
        result = await session.execute(select(func.count()).select_from(self.table))
        return int(result.scalar() or 0)

    async def record_execution(
        self, session: AsyncSession, identifier: int, name: str, executed_at: datetime
    ) -> None:
        """Insert one ledger row. A second row for the same identifier fails on the primary key."""
        await session.execute(
            insert(self.table).values(identifier=identifier, name=name, executed_at=executed_at)
        )
