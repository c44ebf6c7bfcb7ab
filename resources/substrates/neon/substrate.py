"""Contract for the compatibility layer's one-time environment initialization."""

from __future__ import annotations

from typing import Protocol


class EnvironmentInitializer(Protocol):
    """Protocol for running the loader's ``init-environment`` operation.

    Implementations return normally on success and raise
    ``InitializationError`` for a definitive failure, ``ConnectivityError``
    when the loader or ledger could not be reached, and
    ``ConfigurationError`` when the tooling itself is unusable.
    """

    @property
    def endpoint(self) -> str:
        """Human-readable target (ledger URL and loader id) for diagnostics."""

    def init_environment(self) -> None:
        """Run one initialization attempt; safe to repeat."""
