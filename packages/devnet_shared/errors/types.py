"""Error taxonomy for devnet bootstrap stages.

Four categories cover every failure a gate or provisioning step can observe:

- connectivity: endpoint unreachable or response malformed; retryable
- initialization: compatibility layer answered with a definitive failure;
  retryable because ``init-environment`` is safely repeatable
- configuration: missing settings or on-chain state inconsistent with the
  requested spec; fatal and never retried
- exhaustion: an attempt or duration bound ran out; terminal for the run
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

from . import codes


class ErrorCategory(str, Enum):
    """High-level categories shared by gates, provisioning and the CLI."""

    CONNECTIVITY = "connectivity"
    INITIALIZATION = "initialization"
    CONFIGURATION = "configuration"
    EXHAUSTION = "exhaustion"


@dataclass(frozen=True)
class ErrorDetail:
    """Structured, loggable snapshot of one bootstrap error."""

    code: str
    message: str
    category: ErrorCategory
    retryable: bool = False
    endpoint: str = ""
    metadata: Mapping[str, str] = field(default_factory=dict)


class DevnetError(Exception):
    """Base error for all devnet bootstrap failures."""

    category: ErrorCategory = ErrorCategory.CONNECTIVITY
    retryable: bool = False
    default_code: str = codes.ENDPOINT_UNREACHABLE

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        endpoint: str = "",
        metadata: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.endpoint = endpoint
        self.metadata = dict(metadata or {})

    def __str__(self) -> str:
        if self.endpoint:
            return f"{self.message} (endpoint: {self.endpoint})"
        return self.message

    def to_detail(self) -> ErrorDetail:
        """Return the structured form used in logs and JSON output."""
        return ErrorDetail(
            code=self.code,
            message=self.message,
            category=self.category,
            retryable=self.retryable,
            endpoint=self.endpoint,
            metadata=dict(self.metadata),
        )


class ConnectivityError(DevnetError):
    """Endpoint unreachable or answered with a malformed response."""

    category = ErrorCategory.CONNECTIVITY
    retryable = True
    default_code = codes.ENDPOINT_UNREACHABLE


class InitializationError(DevnetError):
    """Compatibility layer reported a definitive initialization failure."""

    category = ErrorCategory.INITIALIZATION
    retryable = True
    default_code = codes.INITIALIZATION_FAILED


class ConfigurationError(DevnetError):
    """Missing settings or on-chain state that contradicts the requested spec."""

    category = ErrorCategory.CONFIGURATION
    retryable = False
    default_code = codes.INVALID_VALUE


class ExhaustionError(DevnetError):
    """Attempt or duration bound reached without success."""

    category = ErrorCategory.EXHAUSTION
    retryable = False
    default_code = codes.ATTEMPTS_EXHAUSTED

    def __init__(
        self,
        message: str,
        *,
        attempts: int = 0,
        last_error: BaseException | None = None,
        code: str | None = None,
        endpoint: str = "",
        metadata: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=code, endpoint=endpoint, metadata=metadata)
        self.attempts = attempts
        self.last_error = last_error

    def __str__(self) -> str:
        base = super().__str__()
        if self.last_error is None:
            return base
        return f"{base}; last error: {self.last_error}"
