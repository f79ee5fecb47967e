DEFAULT_MIGRATIONS_SCHEMA = "dbshift"
DEFAULT_MIGRATIONS_TABLE = "migrations"

# Migration identity: YYYYMMDDHHmm (12 digits), e.g. _202310191050_AddUsersTable
MIGRATION_IDENTIFIER_DIGITS = 12
MIGRATION_IDENTIFIER_FORMAT = "%Y%m%d%H%M"

# Schema-first bootstrap files
SCHEMA_FILE_PREFIX = "schema."
SCHEMA_FILE_SUFFIX = ".sql"
DEFAULT_SCHEMA_FILE = "schema.sql"

# PostgreSQL SQLSTATE for unique_violation
UNIQUE_VIOLATION_SQLSTATE = "23505"
