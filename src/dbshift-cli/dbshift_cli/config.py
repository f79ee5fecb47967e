"""
Tool configuration, loaded from the nearest .dbshift.yml (searching upward from the
working directory). Relative paths resolve against the directory holding the file.
"""

from pathlib import Path
from typing import Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from dbshift_common.constants import DEFAULT_MIGRATIONS_SCHEMA, DEFAULT_MIGRATIONS_TABLE
from dbshift_common.schemas.migration import MigrationTableConfig

from dbshift_cli.constants import CONFIG_FILE_NAME


class ToolConfiguration(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    module: Optional[str] = Field(default=None, description="Dotted package containing migrations")
    project: str = Field(default=".", description="Directory added to sys.path to import the module")
    migrations_directory: str = Field(default="migrations", description="Output directory for new migrations")
    schemas_directory: Optional[str] = Field(default=None, description="Directory holding schema*.sql files")
    connection_string: Optional[str] = None
    connection_strings: Dict[str, str] = Field(default_factory=dict)
    schema_name: str = Field(default=DEFAULT_MIGRATIONS_SCHEMA, alias="schema")
    table: str = DEFAULT_MIGRATIONS_TABLE

    _base_path: Path = PrivateAttr(default_factory=Path.cwd)

    @property
    def base_path(self) -> Path:
        return self._base_path

    def get_project_path(self) -> Path:
        return (self._base_path / self.project).resolve()

    def get_migrations_directory_path(self) -> Path:
        return (self._base_path / self.migrations_directory).resolve()

    def get_schemas_directory_path(self) -> Optional[Path]:
        if not self.schemas_directory:
            return None
        return (self._base_path / self.schemas_directory).resolve()

    def migration_table_config(self) -> MigrationTableConfig:
        return MigrationTableConfig(schema_name=self.schema_name, table=self.table)

    def available_environments(self) -> list[str]:
        return sorted(self.connection_strings)

    def resolve_connection_string(
        self, override: Optional[str] = None, environment: Optional[str] = None
    ) -> Optional[str]:
        """
        Explicit override first, then the named environment (case-insensitive), then the
        default connection_string. An unknown environment resolves to None.
        """
        if override:
            return override
        if environment:
            lowered = environment.lower()
            return next(
                (url for env, url in self.connection_strings.items() if env.lower() == lowered),
                None,
            )
        return self.connection_string

    def save(self, directory: Path) -> Path:
        path = Path(directory) / CONFIG_FILE_NAME
        data = self.model_dump(by_alias=True, exclude_none=True)
        if not data.get("connection_strings"):
            data.pop("connection_strings", None)
        path.write_text(yaml.safe_dump(data, sort_keys=False))
        return path

    @classmethod
    def load(cls, start: Optional[Path] = None) -> "ToolConfiguration":
        """Load the nearest config file, or defaults rooted at the start directory."""
        path = find_config_file(start)
        if path is None:
            config = cls()
            config._base_path = Path(start or Path.cwd()).resolve()
            return config
        data = yaml.safe_load(path.read_text()) or {}
        config = cls.model_validate(data)
        config._base_path = path.parent.resolve()
        return config


def find_config_file(start: Optional[Path] = None) -> Optional[Path]:
    directory = Path(start or Path.cwd()).resolve()
    for candidate in (directory, *directory.parents):
        path = candidate / CONFIG_FILE_NAME
        if path.is_file():
            return path
    return None
