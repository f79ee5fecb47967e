"""Unit tests for the migration ledger store and its table definition."""

from datetime import datetime, timezone

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.schema import CreateSchema, CreateTable

from dbshift_common.schemas.migration import ExecutedMigration, MigrationTableConfig, build_ledger_table

from dbshift.migrations.ledger import LedgerStore, is_unique_violation
from fixtures.db_fixtures import *  # noqa


class PgCodeViolation(Exception):
    pgcode = "23505"


class WrappedDriverError(Exception):
    pass


def test_fully_qualified_table_name_quotes_identifiers():
    assert MigrationTableConfig().fully_qualified_table_name == '"dbshift"."migrations"'
    config = MigrationTableConfig(schema='odd"schema', table="Ledger")
    assert config.schema_name == 'odd"schema'
    assert config.fully_qualified_table_name == '"odd""schema"."Ledger"'


def test_table_config_is_immutable():
    config = MigrationTableConfig(schema_name="ops", table="history")
    with pytest.raises(Exception):
        config.table = "other"


def test_build_ledger_table():
    table = build_ledger_table(MigrationTableConfig(schema_name="ops", table="history"))

    assert table.schema == "ops"
    assert table.name == "history"
    assert [c.name for c in table.primary_key.columns] == ["identifier"]
    assert not table.c.name.nullable
    assert table.c.executed_at.type.timezone
    ddl = str(CreateTable(table, if_not_exists=True).compile(dialect=postgresql.dialect()))
    assert "CREATE TABLE IF NOT EXISTS ops.history" in ddl
    assert "identifier BIGINT NOT NULL" in ddl


def test_is_unique_violation():
    assert is_unique_violation(IntegrityError("INSERT", {}, FakeUniqueViolation("duplicate")))
    assert is_unique_violation(IntegrityError("INSERT", {}, PgCodeViolation("duplicate")))

    wrapped = WrappedDriverError("wrapped")
    wrapped.__cause__ = FakeUniqueViolation("duplicate")
    assert is_unique_violation(IntegrityError("INSERT", {}, wrapped))

    class UniqueViolationError(Exception):
        pass

    assert is_unique_violation(IntegrityError("INSERT", {}, UniqueViolationError("duplicate")))


def test_is_unique_violation_rejects_other_errors():
    class NotNullViolation(Exception):
        sqlstate = "23502"

    assert not is_unique_violation(IntegrityError("INSERT", {}, NotNullViolation("null value")))
    assert not is_unique_violation(OperationalError("INSERT", {}, Exception("timeout")))
    assert not is_unique_violation(RuntimeError("UniqueViolationError"))
    assert not is_unique_violation(
        IntegrityError("INSERT", {}, Exception("UniqueViolationError mentioned in a message"))
    )


@pytest.mark.asyncio
async def test_ensure_schema_locks_then_creates(mock_session):
    ledger = LedgerStore(MigrationTableConfig(schema_name="ops", table="history"))

    await ledger.ensure_schema(mock_session)

    statements = [call.args[0] for call in mock_session.execute.await_args_list]
    assert len(statements) == 3
    assert "pg_advisory_xact_lock" in str(statements[0])
    assert mock_session.execute.await_args_list[0].args[1] == {"key": '"ops"."history"'}
    assert isinstance(statements[1], CreateSchema)
    assert statements[1].if_not_exists
    assert isinstance(statements[2], CreateTable)
    assert statements[2].element is ledger.table


@pytest.mark.asyncio
async def test_table_exists(mock_session, set_mock_session_result):
    ledger = LedgerStore()

    set_mock_session_result(scalar=True)
    assert await ledger.table_exists(mock_session)
    set_mock_session_result(scalar=None)
    assert not await ledger.table_exists(mock_session)

    assert mock_session.execute.await_args.args[1] == {"name": '"dbshift"."migrations"'}


@pytest.mark.asyncio
async def test_get_applied_identifiers(mock_session, set_mock_session_result):
    set_mock_session_result(rows=[(202401010000,), (202401020000,)])

    assert await LedgerStore().get_applied_identifiers(mock_session) == {202401010000, 202401020000}


@pytest.mark.asyncio
async def test_retrieve_executed(mock_session, set_mock_session_result):
    executed_at = datetime(2024, 1, 1, tzinfo=timezone.utc)
    set_mock_session_result(rows=[(202401010000, "AddUsers", executed_at)])

    executed = await LedgerStore().retrieve_executed(mock_session)

    assert executed == [ExecutedMigration(identifier=202401010000, name="AddUsers", executed_at=executed_at)]
    statement = mock_session.execute.await_args.args[0]
    assert "ORDER BY" in str(statement)


@pytest.mark.asyncio
async def test_is_recorded_and_count(mock_session, set_mock_session_result):
    ledger = LedgerStore()

    set_mock_session_result(scalar=202401010000)
    assert await ledger.is_recorded(mock_session, 202401010000)
    set_mock_session_result(scalar=None)
    assert not await ledger.is_recorded(mock_session, 202401010000)
    assert await ledger.count(mock_session) == 0
    set_mock_session_result(scalar=3)
    assert await ledger.count(mock_session) == 3


@pytest.mark.asyncio
async def test_record_execution_inserts_row(mock_session):
    ledger = LedgerStore()
    executed_at = datetime(2024, 1, 1, tzinfo=timezone.utc)

    await ledger.record_execution(mock_session, 202401010000, "AddUsers", executed_at)

    statement = mock_session.execute.await_args.args[0]
    compiled = statement.compile(dialect=postgresql.dialect())
    assert str(compiled).startswith("INSERT INTO dbshift.migrations")
    assert compiled.params == {"identifier": 202401010000, "name": "AddUsers", "executed_at": executed_at}
