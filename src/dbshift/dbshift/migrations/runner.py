"""
Migration runner: reconciles discovered migrations against the ledger and applies the
pending ones.

Migrations run one at a time in ascending identifier order. Each runs in its own
transaction together with its ledger row, so a failure leaves neither the schema
change nor the ledger entry behind; earlier migrations of the batch stay committed.
On failure the batch stops and the error is re-raised. When another process records
the same migration first, the primary key rejects our ledger insert and the migration
counts as applied concurrently.
"""

import asyncio
import traceback
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from loguru import logger
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError

from dbshift_common.exceptions import (
    DuplicateMigrationError,
    MigrationCancelled,
    MigrationException,
    MigrationIdentityError,
)
from dbshift_common.schemas.migration import ExecutedMigration, MigrationTableConfig, SchemaVersion

from dbshift.database import DatabaseConnection
from dbshift.migrations.base import DatabaseMigration
from dbshift.migrations.ledger import LedgerStore, is_unique_violation
from dbshift.migrations.schema_file import find_schema_file, parse_schema_version, read_schema_file
from dbshift.migrations.source import MigrationSource


@dataclass
class MigrationResult:
    applied: List[int] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    concurrent: List[int] = field(default_factory=list)
    schema: Optional[SchemaVersion] = None

    @property
    def changed(self) -> bool:
        return bool(self.applied) or self.schema is not None


class _LedgerConflict(Exception):
    """The ledger already holds this identifier; raised inside the scope to roll it back."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_connectivity_error(exc: BaseException) -> bool:
    if isinstance(exc, (OSError, InterfaceError)):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


def validate_migrations(migrations: Sequence[DatabaseMigration]) -> None:
    """Reject invalid or duplicate identities before anything executes."""
    by_identifier: Dict[int, List[str]] = defaultdict(list)
    for migration in migrations:
        identifier = migration.identifier
        if not isinstance(identifier, int) or isinstance(identifier, bool) or identifier <= 0:
            raise MigrationIdentityError(
                f"Migration {type(migration).__name__} has invalid identifier {identifier!r}"
            )
        if not isinstance(migration.name, str) or not migration.name:
            raise MigrationIdentityError(
                f"Migration {identifier} ({type(migration).__name__}) has no name"
            )
        by_identifier[identifier].append(migration.name)
    for identifier, names in by_identifier.items():
        if len(names) > 1:
            raise DuplicateMigrationError(identifier, names)


class DatabaseMigrator:
    def __init__(
        self,
        connection: DatabaseConnection,
        source: MigrationSource,
        table_config: Optional[MigrationTableConfig] = None,
        schema_directory: Union[str, Path, None] = None,
        environment: Optional[str] = None,
        ledger: Optional[LedgerStore] = None,
    ):
        self.connection = connection
        self.source = source
        self.ledger = ledger or LedgerStore(table_config)
        self.schema_directory = schema_directory
        self.environment = environment

    async def ensure_schema(self) -> None:
        async with self.connection.session() as session:
            await self.ledger.ensure_schema(session)

    async def retrieve_already_executed(self) -> List[ExecutedMigration]:
        async with self.connection.session() as session:
            if not await self.ledger.table_exists(session):
                return []
            return await self.ledger.retrieve_executed(session)

    async def is_database_empty(self) -> bool:
        """True when the ledger table is missing or holds no rows."""
        async with self.connection.session() as session:
            if not await self.ledger.table_exists(session):
                return True
            return await self.ledger.count(session) == 0

    def discover(self, target_identifier: Optional[int] = None) -> List[DatabaseMigration]:
        """All known migrations (up to the target, inclusive), validated and ordered."""
        migrations = list(self.source.discover())
        validate_migrations(migrations)
        if target_identifier is not None:
            migrations = [m for m in migrations if m.identifier <= target_identifier]
        return sorted(migrations, key=lambda m: m.identifier)

    async def get_pending(self, target_identifier: Optional[int] = None) -> List[DatabaseMigration]:
        migrations = self.discover(target_identifier)
        applied = {m.identifier for m in await self.retrieve_already_executed()}
        return [m for m in migrations if m.identifier not in applied]

    async def migrate_to_latest(self, cancel_event: Optional[asyncio.Event] = None) -> MigrationResult:
        return await self._migrate(None, cancel_event)

    async def migrate_to(
        self, target_identifier: int, cancel_event: Optional[asyncio.Event] = None
    ) -> MigrationResult:
        """Apply pending migrations up to and including target_identifier."""
        return await self._migrate(target_identifier, cancel_event)

    async def run(self, migration: DatabaseMigration, cancel_event: Optional[asyncio.Event] = None) -> bool:
        """
        Apply one migration outside of a batch. Returns True when applied, False when
        another process recorded it first.
        """
        validate_migrations([migration])
        await self.ensure_schema()
        if cancel_event is not None and cancel_event.is_set():
            raise MigrationCancelled([migration.identifier])
        return await self._apply(migration, [])

    async def _migrate(
        self, target_identifier: Optional[int], cancel_event: Optional[asyncio.Event]
    ) -> MigrationResult:
        migrations = self.discover(target_identifier)
        result = MigrationResult()

        result.schema = await self._bootstrap(migrations, target_identifier)

        async with self.connection.session() as session:
            applied = await self.ledger.get_applied_identifiers(session)

        pending = [m for m in migrations if m.identifier not in applied]
        result.skipped = [m.identifier for m in migrations if m.identifier in applied]
        logger.info(
            f"Found {len(migrations)} migration(s), {len(result.skipped)} already applied, "
            f"{len(pending)} pending"
        )

        for index, migration in enumerate(pending):
            not_attempted = [m.identifier for m in pending[index + 1 :]]
            if cancel_event is not None and cancel_event.is_set():
                logger.warning(f"Migration batch cancelled before {migration.identifier} ({migration.name})")
                raise MigrationCancelled([migration.identifier] + not_attempted)
            if await self._apply(migration, not_attempted):
                result.applied.append(migration.identifier)
            else:
                result.concurrent.append(migration.identifier)

        if not pending:
            logger.info("Database is already up to date")
        return result

    async def _apply(self, migration: DatabaseMigration, not_attempted: List[int]) -> bool:
        logger.info(f"Applying migration {migration.identifier} ({migration.name})")
        try:
            async with self.connection.session() as session:
                await migration.up(session)
                try:
                    await self.ledger.record_execution(
                        session, migration.identifier, migration.name, _utcnow()
                    )
                except IntegrityError as exc:
                    if is_unique_violation(exc):
                        raise _LedgerConflict() from exc
                    raise
        except _LedgerConflict:
            logger.warning(
                f"Migration {migration.identifier} ({migration.name}) was recorded by another process, skipping"
            )
            return False
        except Exception as exc:
            if not _is_connectivity_error(exc) and await self._recorded_elsewhere(migration):
                logger.warning(
                    f"Migration {migration.identifier} ({migration.name}) was applied by another process, skipping"
                )
                return False
            logger.error(
                f"Migration {migration.identifier} ({migration.name}) failed: {exc}\n{traceback.format_exc()}"
            )
            if _is_connectivity_error(exc):
                raise
            raise MigrationException(migration, not_attempted) from exc
        logger.success(f"Migration {migration.identifier} ({migration.name}) completed")
        return True

    async def _recorded_elsewhere(self, migration: DatabaseMigration) -> bool:
        """After a failure, check whether a concurrent batch committed the same migration."""
        try:
            async with self.connection.session() as session:
                return await self.ledger.is_recorded(session, migration.identifier)
        except Exception as exc:
            logger.warning(f"Unable to re-check ledger for migration {migration.identifier}: {exc}")
            return False

    async def _bootstrap(
        self, migrations: List[DatabaseMigration], target_identifier: Optional[int]
    ) -> Optional[SchemaVersion]:
        """
        Ensure the ledger exists. On an empty database with a schema file available, apply
        the schema file instead and record its version plus every migration it covers.
        """
        schema_path = find_schema_file(self.schema_directory, self.environment)
        if schema_path is None:
            await self.ensure_schema()
            return None

        async with self.connection.session() as session:
            await self.ledger.lock(session)
            if await self.ledger.table_exists(session) and await self.ledger.count(session) > 0:
                return None
            content = read_schema_file(schema_path)
            version = parse_schema_version(content)
            if version is not None and target_identifier is not None and version.identifier > target_identifier:
                logger.info(
                    f"Schema file version {version.identifier} is newer than target {target_identifier}, running migrations instead"
                )
                await self.ledger.ensure_schema(session)
                return None
            logger.info(f"Empty database detected, applying schema file {schema_path.name}")
            await self.connection.execute_script(session, content)
            await self.ledger.ensure_schema(session)
            if version is None:
                logger.warning(f"Schema file {schema_path.name} has no migration version header")
                return None
            executed_at = _utcnow()
            await self.ledger.record_execution(session, version.identifier, version.name, executed_at)
            for migration in migrations:
                if migration.identifier < version.identifier:
                    await self.ledger.record_execution(
                        session, migration.identifier, migration.name, executed_at
                    )
        logger.success(f"Applied schema file {schema_path.name} at version {version.identifier} ({version.name})")
        return version
