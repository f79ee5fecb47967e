"""Unit tests for migration file scaffolding and tool configuration."""

from datetime import datetime, timezone

import pytest
import yaml

from dbshift.migrations import parse_identity
from dbshift_cli.config import ToolConfiguration, find_config_file
from dbshift_cli.scaffold import (
    generate_content,
    generate_file_name,
    generate_identifier,
    scaffold_migration,
    to_migration_name,
)

NOW = datetime(2026, 2, 16, 14, 30, 59, tzinfo=timezone.utc)


def test_generate_identifier():
    assert generate_identifier(NOW) == 202602161430
    assert len(str(generate_identifier())) == 12


@pytest.mark.parametrize(
    "name, expected",
    [
        ("add users table", "AddUsersTable"),
        ("add-users_table", "AddUsersTable"),
        ("AddUsersTable", "AddUsersTable"),
        ("  add  orders ", "AddOrders"),
        ("v2 index", "V2Index"),
    ],
)
def test_to_migration_name(name, expected):
    assert to_migration_name(name) == expected


@pytest.mark.parametrize("name", ["", "   ", "!!!", "2fa secrets"])
def test_to_migration_name_rejects(name):
    with pytest.raises(ValueError):
        to_migration_name(name)


def test_generated_file_matches_identity_convention():
    file_name = generate_file_name(202602161430, "AddUsersTable")
    content = generate_content(202602161430, "AddUsersTable")

    assert file_name == "_202602161430_AddUsersTable.py"
    assert parse_identity(file_name[:-3]) == (202602161430, "AddUsersTable")
    assert "class _202602161430_AddUsersTable(DatabaseMigration):" in content
    assert "async def up(self, session: AsyncSession) -> None:" in content
    compile(content, file_name, "exec")


def test_scaffold_migration(tmp_path):
    directory = tmp_path / "app" / "migrations"

    path = scaffold_migration(directory, "add users table", now=NOW)

    assert path == directory / "_202602161430_AddUsersTable.py"
    assert (directory / "__init__.py").read_text() == ""
    with pytest.raises(FileExistsError):
        scaffold_migration(directory, "add users table", now=NOW)


def test_load_configuration_from_parent_directory(tmp_path):
    (tmp_path / ".dbshift.yml").write_text(
        yaml.safe_dump({"module": "app.migrations", "project": "src", "schemas_directory": "db", "unknown": 1})
    )
    nested = tmp_path / "src" / "app"
    nested.mkdir(parents=True)

    config = ToolConfiguration.load(nested)

    assert find_config_file(nested) == (tmp_path / ".dbshift.yml").resolve()
    assert config.module == "app.migrations"
    assert config.base_path == tmp_path.resolve()
    assert config.get_project_path() == (tmp_path / "src").resolve()
    assert config.get_schemas_directory_path() == (tmp_path / "db").resolve()
    assert config.get_migrations_directory_path() == (tmp_path / "migrations").resolve()


def test_load_configuration_defaults(tmp_path):
    config = ToolConfiguration.load(tmp_path)

    assert config.module is None
    assert config.get_schemas_directory_path() is None
    assert config.migration_table_config().fully_qualified_table_name == '"dbshift"."migrations"'


def test_resolve_connection_string():
    config = ToolConfiguration(
        connection_string="postgresql+asyncpg://default",
        connection_strings={"Staging": "postgresql+asyncpg://staging"},
    )

    assert config.resolve_connection_string() == "postgresql+asyncpg://default"
    assert config.resolve_connection_string("postgresql+asyncpg://flag") == "postgresql+asyncpg://flag"
    assert config.resolve_connection_string(environment="STAGING") == "postgresql+asyncpg://staging"
    assert config.resolve_connection_string(environment="qa") is None
    assert config.available_environments() == ["Staging"]


def test_save_round_trips(tmp_path):
    config = ToolConfiguration(module="app.migrations", schema="ops", table="history")

    path = config.save(tmp_path)
    loaded = ToolConfiguration.load(tmp_path)

    assert path == tmp_path / ".dbshift.yml"
    assert "connection_strings" not in yaml.safe_load(path.read_text())
    assert loaded.module == "app.migrations"
    assert loaded.migration_table_config().fully_qualified_table_name == '"ops"."history"'
