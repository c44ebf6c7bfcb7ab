"""Public API for readiness probing and dependency gates."""

from .contracts import (
    ALLOWED_TRANSITIONS,
    Predicate,
    ProbeResult,
    ReadinessCheck,
    ReadinessState,
    ReadinessTracker,
    ServiceEndpoint,
)
from .gates import LedgerReadinessGate, PlatformReadinessGate, ReadinessGate
from .probe import ReadinessProbe, failure_error

__all__ = [
    "ALLOWED_TRANSITIONS",
    "LedgerReadinessGate",
    "PlatformReadinessGate",
    "Predicate",
    "ProbeResult",
    "ReadinessCheck",
    "ReadinessGate",
    "ReadinessProbe",
    "ReadinessState",
    "ReadinessTracker",
    "ServiceEndpoint",
    "failure_error",
]
