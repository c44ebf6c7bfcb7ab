"""Readiness gates for the ledger node and the Neon EVM compatibility layer.

A gate wraps one ``ReadinessCheck`` with a monotonic state: once READY it
answers READY without re-evaluating its predicate, once FAILED it stays
FAILED, and only ``reset`` (a new orchestration run) clears it.
"""

from __future__ import annotations

from packages.devnet_shared.errors import DevnetError
from packages.devnet_shared.logging import fields, get_logger, log_context
from resources.substrates.neon import EnvironmentInitializer
from resources.substrates.solana import LedgerSubstrate

from .contracts import (
    ProbeResult,
    ReadinessCheck,
    ReadinessState,
    ReadinessTracker,
    ServiceEndpoint,
)
from .probe import ReadinessProbe, failure_error

logger = get_logger(__name__)


class ReadinessGate:
    """Shared polling lifecycle for one dependency."""

    name: str = "gate"
    description: str = "dependency"

    def __init__(
        self,
        *,
        endpoint: ServiceEndpoint,
        probe: ReadinessProbe | None = None,
        interval_seconds: float = 1.0,
        max_attempts: int | None = None,
        max_duration_seconds: float | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._probe = probe or ReadinessProbe()
        self._interval_seconds = interval_seconds
        self._max_attempts = max_attempts
        self._max_duration_seconds = max_duration_seconds
        self._tracker = ReadinessTracker()
        self._last_result: ProbeResult | None = None
        self._crash: Exception | None = None
        # Validate bounds eagerly rather than on first wait().
        self._build_check(duration_cap=None)

    @property
    def endpoint(self) -> ServiceEndpoint:
        return self._endpoint

    @property
    def state(self) -> ReadinessState:
        return self._tracker.state

    @property
    def last_result(self) -> ProbeResult | None:
        return self._last_result

    def reset(self) -> None:
        """Return to UNKNOWN for a new orchestration run."""
        self._tracker.reset()
        self._last_result = None
        self._crash = None

    def wait(self, *, duration_cap: float | None = None) -> ProbeResult:
        """Poll until READY or FAILED; settled gates return their last result.

        ``duration_cap`` tightens the duration bound of a bounded gate (the
        orchestrator passes its remaining budget). An unbounded gate still
        makes exactly one attempt.
        """
        if self._last_result is not None and self.state in (
            ReadinessState.READY,
            ReadinessState.FAILED,
        ):
            return self._last_result
        if self._crash is not None:
            raise self._crash

        check = self._build_check(duration_cap=duration_cap)
        with log_context({fields.GATE: self.name, fields.ENDPOINT: self._endpoint.url}):
            self._tracker.transition(ReadinessState.POLLING)
            logger.info("waiting for %s at %s", self.description, self._endpoint.url)
            try:
                result = self._probe.poll(check)
            except Exception as exc:
                # Unexpected predicate errors settle the gate as FAILED.
                self._tracker.transition(ReadinessState.FAILED)
                self._crash = exc
                logger.exception("%s check raised", self.description)
                raise
            self._tracker.transition(result.state)
            self._last_result = result
            if result.ready:
                logger.info(
                    "%s ready after %d attempt(s)", self.description, result.attempts
                )
            else:
                logger.warning(
                    "%s not ready after %d attempt(s): %s",
                    self.description,
                    result.attempts,
                    result.last_error,
                )
        return result

    def failure(self) -> DevnetError | None:
        """Return the surfaced error of a FAILED gate, else ``None``."""
        if self._last_result is None or self._last_result.ready:
            return None
        return failure_error(
            self._last_result,
            description=self.description,
            endpoint=self._endpoint.url,
        )

    def _predicate(self, endpoint: ServiceEndpoint) -> bool:
        raise NotImplementedError

    def _default_max_attempts(self) -> int | None:
        return self._max_attempts

    def _build_check(self, *, duration_cap: float | None) -> ReadinessCheck:
        max_attempts = self._default_max_attempts()
        max_duration = self._max_duration_seconds
        bounded = max_attempts is not None or max_duration is not None
        if duration_cap is not None and bounded:
            capped = max(duration_cap, 0.0)
            max_duration = capped if max_duration is None else min(max_duration, capped)
        return ReadinessCheck(
            target=self._endpoint,
            predicate=self._predicate,
            interval_seconds=self._interval_seconds,
            max_attempts=max_attempts,
            max_duration_seconds=max_duration,
        )


class LedgerReadinessGate(ReadinessGate):
    """Ready once the ledger answers ``getVersion`` with a version string.

    This is a liveness check only; consensus health is not inspected.
    """

    name = "ledger"
    description = "ledger node"

    def __init__(
        self,
        ledger: LedgerSubstrate,
        *,
        probe: ReadinessProbe | None = None,
        interval_seconds: float = 1.0,
        max_attempts: int | None = None,
        max_duration_seconds: float | None = None,
    ) -> None:
        self._ledger = ledger
        super().__init__(
            endpoint=ServiceEndpoint(url=ledger.url, protocol="jsonrpc"),
            probe=probe,
            interval_seconds=interval_seconds,
            max_attempts=max_attempts,
            max_duration_seconds=max_duration_seconds,
        )

    def _predicate(self, endpoint: ServiceEndpoint) -> bool:
        version = self._ledger.get_version()
        logger.debug("ledger at %s reports solana-core %s", endpoint, version.solana_core)
        return True


class PlatformReadinessGate(ReadinessGate):
    """Ready once ``init-environment`` succeeds against a ready ledger.

    Without an explicit bound the gate makes exactly one attempt; callers
    that want resilience must ask for a bounded retry window.
    """

    name = "platform"
    description = "Neon EVM loader"

    def __init__(
        self,
        initializer: EnvironmentInitializer,
        *,
        ledger_gate: LedgerReadinessGate,
        probe: ReadinessProbe | None = None,
        interval_seconds: float = 1.0,
        max_attempts: int | None = None,
        max_duration_seconds: float | None = None,
    ) -> None:
        self._initializer = initializer
        self._ledger_gate = ledger_gate
        super().__init__(
            endpoint=ServiceEndpoint(url=initializer.endpoint, protocol="cli"),
            probe=probe,
            interval_seconds=interval_seconds,
            max_attempts=max_attempts,
            max_duration_seconds=max_duration_seconds,
        )

    @property
    def ledger_gate(self) -> LedgerReadinessGate:
        return self._ledger_gate

    def wait(self, *, duration_cap: float | None = None) -> ProbeResult:
        """Wait for the ledger first; never poll the loader before it is READY."""
        ledger_result = self._ledger_gate.wait(duration_cap=duration_cap)
        if not ledger_result.ready:
            logger.warning("skipping %s: ledger gate failed", self.description)
            return ledger_result
        return super().wait(duration_cap=duration_cap)

    def failure(self) -> DevnetError | None:
        if self._ledger_gate.state is not ReadinessState.READY:
            return self._ledger_gate.failure()
        return super().failure()

    def _default_max_attempts(self) -> int | None:
        if self._max_attempts is None and self._max_duration_seconds is None:
            return 1
        return self._max_attempts

    def _predicate(self, endpoint: ServiceEndpoint) -> bool:
        self._initializer.init_environment()
        return True
