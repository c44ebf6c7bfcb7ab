"""Shared error code constants.

Codes are stable machine-readable identifiers attached to every bootstrap
error. Stage diagnostics and JSON log lines carry them verbatim.
"""

# Connectivity
ENDPOINT_UNREACHABLE = "ENDPOINT_UNREACHABLE"
MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
RPC_ERROR = "RPC_ERROR"
COMMAND_FAILED = "COMMAND_FAILED"
COMMAND_TIMEOUT = "COMMAND_TIMEOUT"

# Initialization
INITIALIZATION_FAILED = "INITIALIZATION_FAILED"

# Configuration
MISSING_REQUIRED_VALUE = "MISSING_REQUIRED_VALUE"
INVALID_VALUE = "INVALID_VALUE"
INVALID_KEY_FILE = "INVALID_KEY_FILE"
COMMAND_NOT_FOUND = "COMMAND_NOT_FOUND"
STATE_MISMATCH = "STATE_MISMATCH"
INVALID_TOPOLOGY = "INVALID_TOPOLOGY"

# Exhaustion
ATTEMPTS_EXHAUSTED = "ATTEMPTS_EXHAUSTED"
BUDGET_EXHAUSTED = "BUDGET_EXHAUSTED"
