"""Contracts for readiness polling: endpoints, checks, states and results."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType

from packages.devnet_shared.errors import ConfigurationError, DevnetError, codes

SUPPORTED_PROTOCOLS = frozenset({"jsonrpc", "http", "cli"})


class ReadinessState(str, Enum):
    """Lifecycle of one readiness gate within one orchestration run."""

    UNKNOWN = "unknown"
    POLLING = "polling"
    READY = "ready"
    FAILED = "failed"


ALLOWED_TRANSITIONS = MappingProxyType(
    {
        ReadinessState.UNKNOWN: frozenset({ReadinessState.POLLING}),
        ReadinessState.POLLING: frozenset(
            {ReadinessState.READY, ReadinessState.FAILED}
        ),
        ReadinessState.READY: frozenset(),
        ReadinessState.FAILED: frozenset(),
    }
)


@dataclass(frozen=True, slots=True)
class ServiceEndpoint:
    """One network target a gate polls."""

    url: str
    protocol: str = "jsonrpc"

    def __post_init__(self) -> None:
        if not self.url.strip():
            raise ConfigurationError(
                "service endpoint url is required", code=codes.MISSING_REQUIRED_VALUE
            )
        if self.protocol not in SUPPORTED_PROTOCOLS:
            raise ConfigurationError(
                f"unsupported endpoint protocol '{self.protocol}'",
                code=codes.INVALID_VALUE,
                endpoint=self.url,
            )

    def __str__(self) -> str:
        return self.url


Predicate = Callable[[ServiceEndpoint], bool]


@dataclass(frozen=True, slots=True)
class ReadinessCheck:
    """Bounded-retry description of one readiness poll.

    With neither ``max_attempts`` nor ``max_duration_seconds`` the probe makes
    exactly one attempt. Invalid bounds are configuration errors, never
    silently coerced.
    """

    target: ServiceEndpoint
    predicate: Predicate
    interval_seconds: float = 1.0
    max_attempts: int | None = None
    max_duration_seconds: float | None = None

    def __post_init__(self) -> None:
        if self.interval_seconds <= 0:
            raise ConfigurationError(
                f"readiness interval must be > 0, got {self.interval_seconds}",
                code=codes.INVALID_VALUE,
                endpoint=self.target.url,
            )
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ConfigurationError(
                f"readiness max_attempts must be >= 1, got {self.max_attempts}",
                code=codes.INVALID_VALUE,
                endpoint=self.target.url,
            )
        if self.max_duration_seconds is not None and self.max_duration_seconds < 0:
            raise ConfigurationError(
                "readiness max_duration_seconds must be >= 0, "
                f"got {self.max_duration_seconds}",
                code=codes.INVALID_VALUE,
                endpoint=self.target.url,
            )

    @property
    def is_bounded(self) -> bool:
        """True when an attempt or duration bound is configured."""
        return self.max_attempts is not None or self.max_duration_seconds is not None


@dataclass(frozen=True, slots=True)
class ProbeResult:
    """Terminal outcome of one ``ReadinessProbe.poll`` call."""

    state: ReadinessState
    attempts: int
    elapsed_seconds: float
    last_error: DevnetError | None = None

    @property
    def ready(self) -> bool:
        return self.state is ReadinessState.READY


class ReadinessTracker:
    """Monotonic state holder; only ``reset`` moves a gate backwards."""

    def __init__(self) -> None:
        self._state = ReadinessState.UNKNOWN

    @property
    def state(self) -> ReadinessState:
        return self._state

    def transition(self, target: ReadinessState) -> None:
        """Move to ``target`` or raise on an illegal transition."""
        if target not in ALLOWED_TRANSITIONS[self._state]:
            raise RuntimeError(
                f"illegal readiness transition {self._state.value} -> {target.value}"
            )
        self._state = target

    def reset(self) -> None:
        self._state = ReadinessState.UNKNOWN
