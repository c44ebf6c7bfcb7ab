"""Public shared error API for devnet bootstrap components."""

from . import codes
from .types import (
    ConfigurationError,
    ConnectivityError,
    DevnetError,
    ErrorCategory,
    ErrorDetail,
    ExhaustionError,
    InitializationError,
)

__all__ = [
    "ConfigurationError",
    "ConnectivityError",
    "DevnetError",
    "ErrorCategory",
    "ErrorDetail",
    "ExhaustionError",
    "InitializationError",
    "codes",
]
