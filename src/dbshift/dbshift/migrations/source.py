"""
Migration sources: produce every migration visible to the process. Ordering and
filtering belong to the runner.
"""

import importlib
import inspect
import pkgutil
from typing import List, Protocol, Type, Union

from loguru import logger

from dbshift_common.exceptions import MigrationDiscoveryError, MigrationIdentityError

from dbshift.migrations.base import DatabaseMigration


class MigrationSource(Protocol):
    def discover(self) -> List[DatabaseMigration]: ...


def _instantiate(migration_class: Type[DatabaseMigration]) -> DatabaseMigration:
    try:
        return migration_class()
    except MigrationIdentityError:
        raise
    except Exception as exc:
        raise MigrationDiscoveryError(
            f"Unable to instantiate migration {migration_class.__module__}.{migration_class.__qualname__}: {exc}"
        ) from exc


class MigrationRegistry:
    """Explicit registration list of migration instances and/or classes."""

    def __init__(self):
        self._entries: List[Union[DatabaseMigration, Type[DatabaseMigration]]] = []

    def register(self, migration):
        """
        Register a migration instance or class. Returns its argument so it can be used
        as a class decorator.
        """
        if inspect.isclass(migration):
            if not issubclass(migration, DatabaseMigration):
                raise TypeError(f"{migration!r} is not a DatabaseMigration subclass")
        elif not isinstance(migration, DatabaseMigration):
            raise TypeError(f"{migration!r} is not a DatabaseMigration")
        self._entries.append(migration)
        return migration

    def discover(self) -> List[DatabaseMigration]:
        """Instantiate registered classes; construction failures are fatal."""
        return [
            _instantiate(entry) if inspect.isclass(entry) else entry for entry in self._entries
        ]

    def __len__(self) -> int:
        return len(self._entries)


class PackageMigrationSource:
    """
    Finds every concrete DatabaseMigration subclass defined in a package (and its
    subpackages), imported by dotted name.
    """

    def __init__(self, package: str):
        self.package = package

    def _modules(self):
        try:
            root = importlib.import_module(self.package)
        except Exception as exc:
            raise MigrationDiscoveryError(
                f"Unable to import migrations package {self.package!r}: {exc}"
            ) from exc
        yield root
        if not hasattr(root, "__path__"):
            return
        for info in pkgutil.walk_packages(root.__path__, prefix=f"{root.__name__}."):
            try:
                yield importlib.import_module(info.name)
            except Exception as exc:
                raise MigrationDiscoveryError(
                    f"Unable to import migration module {info.name!r}: {exc}"
                ) from exc

    def discover(self) -> List[DatabaseMigration]:
        classes = []
        for module in self._modules():
            for _, member in inspect.getmembers(module, inspect.isclass):
                if (
                    issubclass(member, DatabaseMigration)
                    and member.__module__ == module.__name__
                    and not inspect.isabstract(member)
                    and member not in classes
                ):
                    classes.append(member)
        logger.debug(f"Discovered {len(classes)} migration class(es) in {self.package}")
        return [_instantiate(migration_class) for migration_class in classes]
