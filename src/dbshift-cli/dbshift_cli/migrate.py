"""
Migration run commands (latest, to) and the helpers shared by every command that
talks to the database.
"""

import asyncio
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, NamedTuple, Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from dbshift_common.exceptions import MigrationError, QueryException
from dbshift_common.settings import settings

from dbshift.database import DatabaseConnection
from dbshift.migrations import DatabaseMigrator, MigrationResult, PackageMigrationSource
from dbshift_cli.config import ToolConfiguration
from dbshift_cli.constants import CONNECTION_STRING_ENVVAR, ENVIRONMENT_ENVVAR, MODULE_ENVVAR

console = Console()

migrate_app = typer.Typer(
    help="Apply pending migrations to the database.",
    no_args_is_help=True,
)


class CommandTarget(NamedTuple):
    config: ToolConfiguration
    url: str
    module: str
    environment: Optional[str]


def resolve_target(
    connection_string: Optional[str],
    environment: Optional[str],
    module: Optional[str],
) -> CommandTarget:
    """
    Load the tool configuration and resolve where to connect and what to import.
    Raises typer.Exit(1) when either cannot be resolved.
    """
    config = ToolConfiguration.load()
    module = module or config.module
    if not module:
        typer.echo(
            "Error: No migrations module configured. Pass --module or run 'dbshift init'.",
            err=True,
        )
        raise typer.Exit(1)
    url = config.resolve_connection_string(connection_string, environment)
    if not url:
        if environment:
            available = ", ".join(config.available_environments()) or "none"
            typer.echo(
                f"Error: No connection string for environment {environment!r} (available: {available}).",
                err=True,
            )
        else:
            typer.echo(
                f"Error: No connection string configured. Pass --connection-string or set {CONNECTION_STRING_ENVVAR}.",
                err=True,
            )
        raise typer.Exit(1)
    return CommandTarget(config=config, url=url, module=module, environment=environment)


def prepare_import_path(config: ToolConfiguration) -> None:
    project_path = str(config.get_project_path())
    if project_path not in sys.path:
        sys.path.insert(0, project_path)


@asynccontextmanager
async def open_migrator(target: CommandTarget) -> AsyncGenerator[DatabaseMigrator, None]:
    """Migrator over a fresh connection, disposed when the block exits."""
    prepare_import_path(target.config)
    connection = DatabaseConnection(target.url, echo=settings.debug)
    try:
        yield DatabaseMigrator(
            connection,
            PackageMigrationSource(target.module),
            table_config=target.config.migration_table_config(),
            schema_directory=target.config.get_schemas_directory_path(),
            environment=target.environment,
        )
    finally:
        await connection.dispose()


def display_result(result: MigrationResult) -> None:
    if result.schema is not None:
        console.print(
            f"[bold]Schema file applied:[/bold] {result.schema.identifier} ({result.schema.name})"
        )
    if not result.applied and not result.concurrent:
        console.print("Database is up to date.")
        return
    table = Table(title="Migrations", box=box.ROUNDED)
    table.add_column("Identifier", style="cyan")
    table.add_column("Result")
    for identifier in result.applied:
        table.add_row(str(identifier), "[green]applied[/green]")
    for identifier in result.concurrent:
        table.add_row(str(identifier), "[yellow]applied by another process[/yellow]")
    console.print(table)


def fail(exc: Exception) -> None:
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(1)


@migrate_app.command("latest", help="Apply every pending migration")
def migrate_latest(
    connection_string: Optional[str] = typer.Option(
        None, "--connection-string", "-c", help="Database URL", envvar=CONNECTION_STRING_ENVVAR
    ),
    environment: Optional[str] = typer.Option(
        None, "--environment", "-e", help="Named connection string / schema file environment", envvar=ENVIRONMENT_ENVVAR
    ),
    module: Optional[str] = typer.Option(
        None, "--module", "-m", help="Dotted package containing migrations", envvar=MODULE_ENVVAR
    ),
):
    target = resolve_target(connection_string, environment, module)

    async def _run():
        async with open_migrator(target) as migrator:
            try:
                return await migrator.migrate_to_latest()
            except (MigrationError, QueryException) as exc:
                fail(exc)

    display_result(asyncio.run(_run()))


@migrate_app.command("to", help="Apply pending migrations up to and including IDENTIFIER")
def migrate_to(
    identifier: int = typer.Argument(..., help="Target migration identifier (YYYYMMDDHHmm)"),
    connection_string: Optional[str] = typer.Option(
        None, "--connection-string", "-c", help="Database URL", envvar=CONNECTION_STRING_ENVVAR
    ),
    environment: Optional[str] = typer.Option(
        None, "--environment", "-e", help="Named connection string / schema file environment", envvar=ENVIRONMENT_ENVVAR
    ),
    module: Optional[str] = typer.Option(
        None, "--module", "-m", help="Dotted package containing migrations", envvar=MODULE_ENVVAR
    ),
):
    target = resolve_target(connection_string, environment, module)

    async def _run():
        async with open_migrator(target) as migrator:
            try:
                if not migrator.discover(identifier):
                    typer.echo(f"Error: No migrations found with identifier <= {identifier}.", err=True)
                    raise typer.Exit(1)
                return await migrator.migrate_to(identifier)
            except (MigrationError, QueryException) as exc:
                fail(exc)

    display_result(asyncio.run(_run()))
