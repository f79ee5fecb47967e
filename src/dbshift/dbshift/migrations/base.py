"""
Base classes for database migrations.
"""

from abc import ABC, abstractmethod
from typing import ClassVar, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from dbshift.database import run_script
from dbshift.migrations.identity import parse_identity


class DatabaseMigration(ABC):
    """
    One schema change. Set ``identifier`` and ``name`` on the class, or name the class
    ``_{identifier}_{name}`` and let them be parsed.
    """

    identifier: ClassVar[Optional[int]] = None
    name: ClassVar[Optional[str]] = None

    def __init__(self):
        cls = type(self)
        if cls.identifier is None or cls.name is None:
            parsed = parse_identity(cls.__name__)
            self.identifier = cls.identifier if cls.identifier is not None else parsed.identifier
            self.name = cls.name if cls.name is not None else parsed.name

    @abstractmethod
    async def up(self, session: AsyncSession) -> None:
        """Apply the migration. Raise on any error; the transaction is owned by the runner."""
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.identifier} ({self.name})>"


class SqlMigration(DatabaseMigration):
    """Migration whose upgrade action is a fixed SQL script, sent to the server verbatim."""

    def __init__(self, identifier: int, name: str, sql: str):
        self.identifier = identifier
        self.name = name
        self.sql = sql

    async def up(self, session: AsyncSession) -> None:
        await run_script(session, self.sql)
