"""
Schema-first bootstrap files.

A schema file is a full SQL dump of a database whose header names the latest
migration it contains:

    --
    -- PostgreSQL database schema
    -- Migration version: 202602161430 (AddUsersTable)
    --

An empty database can be brought up from the file in one step instead of replaying
every migration.
"""

import re
from pathlib import Path
from typing import Optional, Union

from dbshift_common.constants import (
    DEFAULT_SCHEMA_FILE,
    SCHEMA_FILE_PREFIX,
    SCHEMA_FILE_SUFFIX,
)
from dbshift_common.exceptions import SchemaFileError
from dbshift_common.schemas.migration import SchemaVersion

_VERSION_RE = re.compile(
    r"^\s*--\s*Migration version:\s*(\S+)\s*\(\s*(.*?)\s*\)\s*$",
    re.MULTILINE | re.IGNORECASE,
)


def parse_schema_version(content: str) -> Optional[SchemaVersion]:
    """Migration version from a schema file header, or None when absent or malformed."""
    match = _VERSION_RE.search(content or "")
    if not match:
        return None
    identifier, name = match.groups()
    if not identifier.isdigit() or not name:
        return None
    return SchemaVersion(int(identifier), name)


def _is_schema_file(path: Path) -> bool:
    lowered = path.name.lower()
    return path.is_file() and lowered.startswith(SCHEMA_FILE_PREFIX) and lowered.endswith(SCHEMA_FILE_SUFFIX)


def _find_by_name(files: list[Path], name: str) -> Optional[Path]:
    return next((f for f in files if f.name.lower() == name.lower()), None)


def find_schema_file(
    directory: Union[str, Path, None], environment: Optional[str] = None
) -> Optional[Path]:
    """
    With an environment: schema.<environment>.sql (case-insensitive), falling back to
    schema.sql. Without one: schema.sql, then the first schema.*.sql by name.
    """
    if directory is None:
        return None
    directory = Path(directory)
    if not directory.is_dir():
        return None
    files = sorted((f for f in directory.iterdir() if _is_schema_file(f)), key=lambda f: f.name.lower())
    if environment and environment.strip():
        found = _find_by_name(files, f"{SCHEMA_FILE_PREFIX}{environment.strip()}{SCHEMA_FILE_SUFFIX}")
        return found or _find_by_name(files, DEFAULT_SCHEMA_FILE)
    return _find_by_name(files, DEFAULT_SCHEMA_FILE) or (files[0] if files else None)


def read_schema_file(path: Union[str, Path]) -> str:
    try:
        content = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise SchemaFileError(f"Unable to read schema file {path}: {exc}") from exc
    if not content.strip():
        raise SchemaFileError(f"Schema file {path} is empty")
    return content
