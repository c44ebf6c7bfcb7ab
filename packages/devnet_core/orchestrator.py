"""Staged orchestration of one devnet bootstrap run.

Stages run strictly in order and the first failure ends the run::

    INIT -> LEDGER_WAIT -> PLATFORM_WAIT -> PROVISIONING -> READY

Any stage may move to FAILED instead.

Nothing is rolled back: every step is idempotent, so the recovery for a
failed run is simply another run.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType

from packages.devnet_shared.commands import CommandRunner, run_command
from packages.devnet_shared.errors import (
    ConfigurationError,
    DevnetError,
    ExhaustionError,
    codes,
)
from packages.devnet_shared.logging import fields, get_logger, log_context
from resources.substrates.neon import EnvironmentInitializer, NeonCliInitializer
from resources.substrates.solana import LedgerSubstrate

from .config import BootstrapConfig
from .provisioning import (
    AccountProvisioner,
    ProvisionedAccount,
    ProvisioningOutcome,
    TokenSpec,
    provision_all,
)
from .readiness import (
    LedgerReadinessGate,
    PlatformReadinessGate,
    ReadinessGate,
    ReadinessProbe,
)

logger = get_logger(__name__)


class BootstrapStage(str, Enum):
    """Stages of one orchestration run."""

    INIT = "init"
    LEDGER_WAIT = "ledger_wait"
    PLATFORM_WAIT = "platform_wait"
    PROVISIONING = "provisioning"
    READY = "ready"
    FAILED = "failed"


STAGE_TRANSITIONS = MappingProxyType(
    {
        BootstrapStage.INIT: frozenset(
            {BootstrapStage.LEDGER_WAIT, BootstrapStage.FAILED}
        ),
        BootstrapStage.LEDGER_WAIT: frozenset(
            {BootstrapStage.PLATFORM_WAIT, BootstrapStage.FAILED}
        ),
        BootstrapStage.PLATFORM_WAIT: frozenset(
            {BootstrapStage.PROVISIONING, BootstrapStage.FAILED}
        ),
        BootstrapStage.PROVISIONING: frozenset(
            {BootstrapStage.READY, BootstrapStage.FAILED}
        ),
        BootstrapStage.READY: frozenset(),
        BootstrapStage.FAILED: frozenset(),
    }
)


class BootstrapStageError(DevnetError):
    """Failure of one stage, wrapping the underlying bootstrap error.

    Category, code, retryability and endpoint are those of the cause.
    """

    def __init__(self, stage: BootstrapStage, cause: DevnetError) -> None:
        super().__init__(
            f"{stage.value} stage failed: {cause}",
            code=cause.code,
            endpoint=cause.endpoint,
            metadata={**cause.metadata, fields.STAGE: stage.value},
        )
        self.stage = stage
        self.cause = cause
        self.category = cause.category
        self.retryable = cause.retryable

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True, slots=True)
class BootstrapResult:
    """Outcome of one ``BootstrapOrchestrator.run`` call."""

    run_id: str
    stage: BootstrapStage
    transitions: tuple[BootstrapStage, ...]
    outcomes: tuple[ProvisioningOutcome, ...] = tuple()
    failed_stage: BootstrapStage | None = None
    error: BootstrapStageError | None = None

    @property
    def ready(self) -> bool:
        return self.stage is BootstrapStage.READY

    @property
    def accounts(self) -> tuple[ProvisionedAccount, ...]:
        return tuple(outcome.account for outcome in self.outcomes)


class BootstrapOrchestrator:
    """Drive the gates and the provisioner through one ordered run."""

    def __init__(
        self,
        *,
        ledger_gate: LedgerReadinessGate,
        platform_gate: PlatformReadinessGate,
        provisioner: AccountProvisioner | None = None,
        tokens: Sequence[TokenSpec] = tuple(),
        budget_seconds: float | None = None,
        max_workers: int = 4,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        if platform_gate.ledger_gate is not ledger_gate:
            raise ConfigurationError(
                "platform gate must be constructed with the orchestrated ledger gate"
            )
        if tokens and provisioner is None:
            raise ConfigurationError(
                "token provisioning requires an account provisioner",
                code=codes.MISSING_REQUIRED_VALUE,
            )
        if budget_seconds is not None and budget_seconds <= 0:
            raise ConfigurationError(
                f"bootstrap budget must be > 0, got {budget_seconds}"
            )
        self._ledger_gate = ledger_gate
        self._platform_gate = platform_gate
        self._provisioner = provisioner
        self._tokens = tuple(tokens)
        self._budget_seconds = budget_seconds
        self._max_workers = max_workers
        self._monotonic = monotonic

    @classmethod
    def from_config(
        cls,
        config: BootstrapConfig,
        *,
        ledger: LedgerSubstrate,
        initializer: EnvironmentInitializer | None = None,
        probe: ReadinessProbe | None = None,
        monotonic: Callable[[], float] = time.monotonic,
        runner: CommandRunner = run_command,
    ) -> BootstrapOrchestrator:
        """Wire gates and provisioner from a resolved ``BootstrapConfig``."""
        probe = probe or ReadinessProbe(monotonic=monotonic)
        ledger_gate = LedgerReadinessGate(
            ledger,
            probe=probe,
            interval_seconds=config.ledger_policy.interval_seconds,
            max_attempts=config.ledger_policy.max_attempts,
            max_duration_seconds=config.ledger_policy.max_duration_seconds,
        )
        platform_gate = PlatformReadinessGate(
            initializer or NeonCliInitializer(config.neon, runner=runner),
            ledger_gate=ledger_gate,
            probe=probe,
            interval_seconds=config.platform_policy.interval_seconds,
            max_attempts=config.platform_policy.max_attempts,
            max_duration_seconds=config.platform_policy.max_duration_seconds,
        )
        provisioner = (
            AccountProvisioner(ledger, owner=config.owner)
            if config.owner is not None
            else None
        )
        return cls(
            ledger_gate=ledger_gate,
            platform_gate=platform_gate,
            provisioner=provisioner,
            tokens=config.tokens,
            budget_seconds=config.budget_seconds,
            max_workers=config.max_workers,
            monotonic=monotonic,
        )

    @property
    def ledger_gate(self) -> LedgerReadinessGate:
        return self._ledger_gate

    @property
    def platform_gate(self) -> PlatformReadinessGate:
        return self._platform_gate

    def run(self) -> BootstrapResult:
        """Run every stage once; never raises for bootstrap failures."""
        run_id = uuid.uuid4().hex[:12]
        started = self._monotonic()
        transitions = [BootstrapStage.INIT]
        stage = BootstrapStage.INIT
        outcomes: tuple[ProvisioningOutcome, ...] = tuple()
        self._ledger_gate.reset()
        self._platform_gate.reset()

        with log_context({fields.RUN_ID: run_id}):
            logger.info("bootstrap run started")
            try:
                stage = self._advance(stage, BootstrapStage.LEDGER_WAIT, transitions)
                with log_context({fields.STAGE: stage.value}):
                    self._await_gate(self._ledger_gate, stage, started)

                stage = self._advance(stage, BootstrapStage.PLATFORM_WAIT, transitions)
                with log_context({fields.STAGE: stage.value}):
                    self._await_gate(self._platform_gate, stage, started)

                stage = self._advance(stage, BootstrapStage.PROVISIONING, transitions)
                with log_context({fields.STAGE: stage.value}):
                    outcomes = self._provision(stage, started)
            except DevnetError as exc:
                error = BootstrapStageError(stage, exc)
                self._advance(stage, BootstrapStage.FAILED, transitions)
                with log_context(
                    {
                        fields.STAGE: stage.value,
                        fields.ERROR_CODE: error.code,
                        fields.ERROR_CATEGORY: error.category.value,
                    }
                ):
                    logger.error("bootstrap run failed: %s", error)
                return BootstrapResult(
                    run_id=run_id,
                    stage=BootstrapStage.FAILED,
                    transitions=tuple(transitions),
                    failed_stage=stage,
                    error=error,
                )

            self._advance(stage, BootstrapStage.READY, transitions)
            logger.info(
                "bootstrap run ready in %.3fs with %d token(s)",
                self._monotonic() - started,
                len(outcomes),
            )
        return BootstrapResult(
            run_id=run_id,
            stage=BootstrapStage.READY,
            transitions=tuple(transitions),
            outcomes=outcomes,
        )

    def _advance(
        self,
        current: BootstrapStage,
        target: BootstrapStage,
        transitions: list[BootstrapStage],
    ) -> BootstrapStage:
        if target not in STAGE_TRANSITIONS[current]:
            raise RuntimeError(
                f"illegal bootstrap transition {current.value} -> {target.value}"
            )
        transitions.append(target)
        logger.debug("entering %s", target.value)
        return target

    def _await_gate(
        self, gate: ReadinessGate, stage: BootstrapStage, started: float
    ) -> None:
        result = gate.wait(duration_cap=self._remaining_budget(stage, started))
        if result.ready:
            return
        failure = gate.failure()
        if failure is None:
            raise RuntimeError(f"{gate.name} gate failed without an error")
        raise failure

    def _provision(
        self, stage: BootstrapStage, started: float
    ) -> tuple[ProvisioningOutcome, ...]:
        if not self._tokens or self._provisioner is None:
            logger.info("no tokens to provision")
            return tuple()
        self._remaining_budget(stage, started)
        return provision_all(
            self._provisioner, self._tokens, max_workers=self._max_workers
        )

    def _remaining_budget(self, stage: BootstrapStage, started: float) -> float | None:
        """Return the unspent budget, raising once it is gone."""
        if self._budget_seconds is None:
            return None
        remaining = self._budget_seconds - (self._monotonic() - started)
        if remaining <= 0:
            raise ExhaustionError(
                f"bootstrap budget of {self._budget_seconds}s spent before "
                f"{stage.value}",
                code=codes.BUDGET_EXHAUSTED,
            )
        return remaining
