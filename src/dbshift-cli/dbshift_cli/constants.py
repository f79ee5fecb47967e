CONFIG_FILE_NAME = ".dbshift.yml"

# Environment variable names for CLI options (when not passed as flags)
CONNECTION_STRING_ENVVAR = "POSTGRESQL"
ENVIRONMENT_ENVVAR = "ENVIRONMENT"
MODULE_ENVVAR = "DBSHIFT_MODULE"
