"""
Migration identity from the declared name convention: _{identifier}_{name},
e.g. _202310191050_AddUsersTable -> (202310191050, "AddUsersTable").
"""

import re
from typing import NamedTuple

from dbshift_common.constants import MIGRATION_IDENTIFIER_DIGITS
from dbshift_common.exceptions import MigrationIdentityError

# Optional leading underscore, 12-digit timestamp, underscore, remaining name.
_MIGRATION_NAME_RE = re.compile(rf"^_?(\d{{{MIGRATION_IDENTIFIER_DIGITS}}})_(.+)$")


class MigrationIdentity(NamedTuple):
    identifier: int
    name: str


def parse_identity(declared_name: str) -> MigrationIdentity:
    """Parse identifier and name from a migration class (or module) name."""
    match = _MIGRATION_NAME_RE.match(declared_name)
    if not match:
        raise MigrationIdentityError(
            f"Migration name {declared_name!r} does not match the expected format "
            "'_{identifier}_{name}' (e.g. '_202310191050_AddUsersTable')"
        )
    return MigrationIdentity(int(match.group(1)), match.group(2))


def is_valid_migration_name(declared_name: str) -> bool:
    return _MIGRATION_NAME_RE.match(declared_name) is not None
