"""Canonical logging field names for bootstrap log lines."""

TIMESTAMP = "timestamp"
LEVEL = "level"
LOGGER = "logger"
MESSAGE = "message"

# Run correlation.
RUN_ID = "run_id"
STAGE = "stage"
COMMAND = "command"

# Readiness polling.
GATE = "gate"
ENDPOINT = "endpoint"
ATTEMPT = "attempt"

# Provisioning.
SYMBOL = "symbol"
MINT_ADDRESS = "mint_address"
HOLDING_ACCOUNT = "holding_account"

# Errors.
ERROR_CODE = "error_code"
ERROR_CATEGORY = "error_category"

SERVICE = "service"
ENVIRONMENT = "environment"
