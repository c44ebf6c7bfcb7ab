"""Bounded-retry polling of one readiness predicate."""

from __future__ import annotations

import time
from collections.abc import Callable

from packages.devnet_shared.errors import (
    ConfigurationError,
    ConnectivityError,
    DevnetError,
    ExhaustionError,
    codes,
)
from packages.devnet_shared.logging import fields, get_logger, log_context

from .contracts import ProbeResult, ReadinessCheck, ReadinessState

logger = get_logger(__name__)


class ReadinessProbe:
    """Evaluate a predicate until it holds or the check's bound runs out.

    ``sleeper`` and ``monotonic`` are injectable so tests can drive a fake
    clock. The probe keeps no state between ``poll`` calls.
    """

    def __init__(
        self,
        *,
        sleeper: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sleeper = sleeper
        self._monotonic = monotonic

    def poll(self, check: ReadinessCheck) -> ProbeResult:
        """Return READY on the first true predicate, FAILED once exhausted."""
        started = self._monotonic()
        attempts = 0
        last_error: DevnetError | None = None

        while True:
            attempts += 1
            try:
                with log_context({fields.ATTEMPT: attempts}):
                    ready = bool(check.predicate(check.target))
            except ConfigurationError as exc:
                logger.error("readiness check aborted: %s", exc)
                return self._result(ReadinessState.FAILED, attempts, started, exc)
            except DevnetError as exc:
                last_error = exc
                ready = False
            else:
                if not ready:
                    last_error = ConnectivityError(
                        "readiness predicate not satisfied",
                        code=codes.ENDPOINT_UNREACHABLE,
                        endpoint=check.target.url,
                    )

            if ready:
                logger.debug("%s ready after %d attempt(s)", check.target.url, attempts)
                return self._result(ReadinessState.READY, attempts, started, None)

            elapsed = self._monotonic() - started
            logger.debug(
                "attempt %d against %s failed: %s",
                attempts,
                check.target.url,
                last_error,
            )
            if self._exhausted(check, attempts=attempts, elapsed=elapsed):
                return self._result(
                    ReadinessState.FAILED, attempts, started, last_error
                )
            self._sleeper(check.interval_seconds)

    def _exhausted(
        self, check: ReadinessCheck, *, attempts: int, elapsed: float
    ) -> bool:
        """True when no further attempt fits in the configured bound."""
        if not check.is_bounded:
            return True
        if check.max_attempts is not None and attempts >= check.max_attempts:
            return True
        if check.max_duration_seconds is not None:
            return elapsed + check.interval_seconds >= check.max_duration_seconds
        return False

    def _result(
        self,
        state: ReadinessState,
        attempts: int,
        started: float,
        last_error: DevnetError | None,
    ) -> ProbeResult:
        return ProbeResult(
            state=state,
            attempts=attempts,
            elapsed_seconds=self._monotonic() - started,
            last_error=last_error,
        )


def failure_error(
    result: ProbeResult, *, description: str, endpoint: str
) -> DevnetError:
    """Return the error a FAILED probe result should surface.

    Configuration errors surface as-is; everything else becomes an
    ``ExhaustionError`` carrying the last underlying error.
    """
    if isinstance(result.last_error, ConfigurationError):
        return result.last_error
    return ExhaustionError(
        f"{description} not ready after {result.attempts} attempt(s)",
        attempts=result.attempts,
        last_error=result.last_error,
        endpoint=endpoint,
    )
