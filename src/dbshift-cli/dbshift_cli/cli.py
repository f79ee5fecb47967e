"""
dbshift command line entry point.
"""

from pathlib import Path
from typing import Optional

import typer

from dbshift_common.logging import configure_logging
from dbshift_common.settings import settings

from dbshift_cli.config import ToolConfiguration, find_config_file
from dbshift_cli.constants import CONFIG_FILE_NAME
from dbshift_cli.migrate import console, migrate_app
from dbshift_cli.migration_files import migrations_app

app = typer.Typer(
    help="PostgreSQL schema migrations.",
    no_args_is_help=True,
)
app.add_typer(migrate_app, name="migrate")
app.add_typer(migrations_app, name="migrations")


@app.callback()
def main(
    debug: bool = typer.Option(settings.debug, "--debug", help="Log at DEBUG level"),
):
    configure_logging(debug)


@app.command("init", help=f"Write a {CONFIG_FILE_NAME} and migrations package in the current directory")
def init(
    module: str = typer.Option("migrations", "--module", "-m", help="Dotted package containing migrations"),
    migrations_directory: Optional[str] = typer.Option(
        None, "--migrations-directory", help="Directory for new migration files (defaults to the module path)"
    ),
    schemas_directory: Optional[str] = typer.Option(
        None, "--schemas-directory", help="Directory holding schema*.sql files"
    ),
    connection_string: Optional[str] = typer.Option(None, "--connection-string", "-c", help="Database URL"),
):
    directory = Path.cwd()
    if (directory / CONFIG_FILE_NAME).exists():
        typer.echo(f"Error: {CONFIG_FILE_NAME} already exists in {directory}.", err=True)
        raise typer.Exit(1)
    parent = find_config_file(directory)
    if parent is not None:
        console.print(f"[yellow]Note:[/yellow] a parent configuration exists at {parent}")

    config = ToolConfiguration(
        module=module,
        migrations_directory=migrations_directory or module.replace(".", "/"),
        schemas_directory=schemas_directory,
        connection_string=connection_string,
    )
    config_path = config.save(directory)

    package_path = config.get_migrations_directory_path()
    package_path.mkdir(parents=True, exist_ok=True)
    init_file = package_path / "__init__.py"
    if not init_file.exists():
        init_file.write_text("")

    console.print(f"Created [cyan]{config_path}[/cyan]")
    console.print(f"Migrations package: [cyan]{package_path}[/cyan]")


if __name__ == "__main__":
    app()
