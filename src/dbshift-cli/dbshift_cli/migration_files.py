"""
Migration inspection and scaffolding commands: status, create.
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich import box
from rich.table import Table

from dbshift_common.exceptions import MigrationError, QueryException

from dbshift_cli.config import ToolConfiguration
from dbshift_cli.constants import CONNECTION_STRING_ENVVAR, ENVIRONMENT_ENVVAR, MODULE_ENVVAR
from dbshift_cli.migrate import console, fail, open_migrator, resolve_target
from dbshift_cli.scaffold import scaffold_migration

migrations_app = typer.Typer(
    help="Inspect and create migrations.",
    no_args_is_help=True,
)


def register(app: typer.Typer) -> None:
    """Register status/create commands on the given Typer app."""

    @app.command("status", help="Show executed and pending migrations")
    def status(
        connection_string: Optional[str] = typer.Option(
            None, "--connection-string", "-c", help="Database URL", envvar=CONNECTION_STRING_ENVVAR
        ),
        environment: Optional[str] = typer.Option(
            None, "--environment", "-e", help="Named connection string environment", envvar=ENVIRONMENT_ENVVAR
        ),
        module: Optional[str] = typer.Option(
            None, "--module", "-m", help="Dotted package containing migrations", envvar=MODULE_ENVVAR
        ),
    ):
        target = resolve_target(connection_string, environment, module)

        async def _run():
            async with open_migrator(target) as migrator:
                try:
                    executed = await migrator.retrieve_already_executed()
                    pending = await migrator.get_pending()
                except (MigrationError, QueryException) as exc:
                    fail(exc)
            return executed, pending

        executed, pending = asyncio.run(_run())
        if not executed and not pending:
            console.print("No migrations.")
            return
        table = Table(title="Migrations", box=box.ROUNDED)
        table.add_column("Identifier", style="cyan")
        table.add_column("Name")
        table.add_column("Executed At")
        for migration in executed:
            table.add_row(
                str(migration.identifier),
                migration.name,
                migration.executed_at.strftime("%Y-%m-%d %H:%M:%S %Z").strip(),
            )
        for migration in pending:
            table.add_row(str(migration.identifier), migration.name, "[yellow]pending[/yellow]")
        console.print(table)
        console.print(f"[bold]Executed:[/bold] {len(executed)}  [bold]Pending:[/bold] {len(pending)}")

    @app.command("create", help="Create a new, empty migration file")
    def create(
        name: str = typer.Argument(..., help="Migration name, e.g. 'add users table'"),
        directory: Optional[Path] = typer.Option(
            None, "--directory", "-d", help="Output directory (defaults to migrations_directory from config)"
        ),
    ):
        if directory is None:
            directory = ToolConfiguration.load().get_migrations_directory_path()
        try:
            path = scaffold_migration(directory, name)
        except (ValueError, FileExistsError) as exc:
            fail(exc)
        console.print(f"Created migration [cyan]{path}[/cyan]")


register(migrations_app)
