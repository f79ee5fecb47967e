"""Tests for dbshift_common settings, logging setup and exception messages."""

from types import SimpleNamespace

from dbshift_common import logging as dbshift_logging
from dbshift_common.exceptions import DuplicateMigrationError, MigrationCancelled, MigrationException
from dbshift_common.settings import DatabaseSettings


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("POSTGRESQL", "postgresql+asyncpg://app:secret@db:5432/app")
    monkeypatch.setenv("MIGRATIONS_SCHEMA", "ops")
    monkeypatch.setenv("MIGRATIONS_TABLE", "history")
    monkeypatch.setenv("ENVIRONMENT", "staging")

    settings = DatabaseSettings()

    assert settings.sqlalchemy == "postgresql+asyncpg://app:secret@db:5432/app"
    assert settings.environment == "staging"
    config = settings.migration_table_config()
    assert config.fully_qualified_table_name == '"ops"."history"'


def test_settings_defaults(monkeypatch):
    for name in ("MIGRATIONS_SCHEMA", "MIGRATIONS_TABLE", "ENVIRONMENT", "DEBUG"):
        monkeypatch.delenv(name, raising=False)

    settings = DatabaseSettings()

    assert settings.migrations_schema == "dbshift"
    assert settings.migrations_table == "migrations"
    assert settings.environment is None
    assert settings.debug is False


def test_settings_fields_are_described():
    for name, field in DatabaseSettings.model_fields.items():
        assert field.description, name


def test_configure_logging_only_once(monkeypatch):
    monkeypatch.setattr(dbshift_logging, "_configured", False)

    assert dbshift_logging.configure_logging(debug=True) is True
    assert dbshift_logging.configure_logging() is False


def test_migration_exception_message():
    migration = SimpleNamespace(identifier=202401020000, name="AddOrders")

    exc = MigrationException(migration, [202401030000, 202401040000])

    assert str(exc) == (
        "Error while executing migration 202401020000: AddOrders. "
        "Not attempted: 202401030000, 202401040000."
    )
    assert str(MigrationException(migration)) == "Error while executing migration 202401020000: AddOrders."


def test_other_migration_errors():
    duplicate = DuplicateMigrationError(202401010000, ["AddUsers", "AddAccounts"])
    assert str(duplicate) == "Duplicate migration identifier 202401010000: AddUsers, AddAccounts"

    cancelled = MigrationCancelled([202401010000, 202401020000])
    assert cancelled.not_attempted == [202401010000, 202401020000]
    assert "2 migration(s) not attempted" in str(cancelled)
