"""
New migration files: _{YYYYMMDDHHmm}_{Name}.py holding one DatabaseMigration subclass
named like the file, so identity is parsed from the class name.
"""

import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from dbshift_common.constants import MIGRATION_IDENTIFIER_FORMAT

MIGRATION_TEMPLATE = '''from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from dbshift.migrations import DatabaseMigration


class _{identifier}_{name}(DatabaseMigration):
    async def up(self, session: AsyncSession) -> None:
        await session.execute(
            text(
                """
                -- Write your migration SQL here
                """
            )
        )
'''


def generate_identifier(now: Optional[datetime] = None) -> int:
    """YYYYMMDDHHmm of the given (or current) UTC time."""
    now = now or datetime.now(timezone.utc)
    return int(now.strftime(MIGRATION_IDENTIFIER_FORMAT))


def to_migration_name(name: str) -> str:
    """'add users table' / 'add-users_table' -> 'AddUsersTable'. Already PascalCase names are kept."""
    words = [w for w in re.split(r"[^0-9A-Za-z]+", name) if w]
    if not words:
        raise ValueError(f"Invalid migration name: {name!r}")
    result = "".join(w[0].upper() + w[1:] for w in words)
    if result[0].isdigit():
        raise ValueError(f"Migration name must not start with a digit: {name!r}")
    return result


def generate_file_name(identifier: int, name: str) -> str:
    return f"_{identifier}_{name}.py"


def generate_content(identifier: int, name: str) -> str:
    return MIGRATION_TEMPLATE.format(identifier=identifier, name=name)


def scaffold_migration(directory: Path, name: str, now: Optional[datetime] = None) -> Path:
    """Write a new migration file (and the package __init__.py if missing)."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    init_file = directory / "__init__.py"
    if not init_file.exists():
        init_file.write_text("")
    migration_name = to_migration_name(name)
    identifier = generate_identifier(now)
    path = directory / generate_file_name(identifier, migration_name)
    if path.exists():
        raise FileExistsError(f"Migration file already exists: {path}")
    path.write_text(generate_content(identifier, migration_name))
    return path
