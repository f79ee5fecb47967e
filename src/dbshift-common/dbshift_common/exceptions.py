from typing import Any, Optional, Sequence


class DatabaseException(Exception): ...


class QueryException(DatabaseException):
    """Raised when SQL executed through the connection wrapper fails."""

    def __init__(self, sql: str, inner: Optional[BaseException] = None):
        self.sql = sql
        message = "Error while executing SQL."
        if inner is not None:
            message = f"{message} {type(inner).__name__}: {inner}"
        super().__init__(message)

    def __str__(self) -> str:
        sql = "\n".join(f"    {line}" for line in self.sql.strip().splitlines())
        return f"{self.args[0]}\nSQL:\n{sql}"


class MigrationError(DatabaseException): ...


class MigrationDiscoveryError(MigrationError): ...


class MigrationIdentityError(MigrationError): ...


class DuplicateMigrationError(MigrationIdentityError):
    """Two or more discovered migrations share an identifier."""

    def __init__(self, identifier: int, names: Sequence[str]):
        self.identifier = identifier
        self.names = list(names)
        super().__init__(
            f"Duplicate migration identifier {identifier}: {', '.join(self.names)}"
        )


class SchemaFileError(MigrationError): ...


class MigrationException(MigrationError):
    """Raised when a migration fails; its transaction has been rolled back."""

    def __init__(self, migration: Any, not_attempted: Optional[Sequence[int]] = None):
        self.migration = migration
        self.identifier = migration.identifier
        self.name = migration.name
        self.not_attempted = list(not_attempted or [])
        message = f"Error while executing migration {self.identifier}: {self.name}."
        if self.not_attempted:
            message += f" Not attempted: {', '.join(str(i) for i in self.not_attempted)}."
        super().__init__(message)


class MigrationCancelled(MigrationError):
    """Cancellation was requested before the next migration started."""

    def __init__(self, not_attempted: Sequence[int]):
        self.not_attempted = list(not_attempted)
        super().__init__(
            f"Migration batch cancelled, {len(self.not_attempted)} migration(s) not attempted"
        )
