"""``neon-cli`` backed environment initializer."""

from __future__ import annotations

from packages.devnet_shared.commands import CommandRunner, run_command
from packages.devnet_shared.errors import InitializationError, codes
from packages.devnet_shared.logging import get_logger

from .config import NeonConfig
from .substrate import EnvironmentInitializer

logger = get_logger(__name__)


class NeonCliInitializer(EnvironmentInitializer):
    """Run ``neon-cli init-environment`` against the configured ledger."""

    def __init__(
        self, config: NeonConfig, *, runner: CommandRunner = run_command
    ) -> None:
        self._config = config
        self._runner = runner

    @property
    def endpoint(self) -> str:
        return f"{self._config.ledger_url}:{self._config.loader_id}"

    def command(self) -> tuple[str, ...]:
        """Return the exact argv used for one initialization attempt."""
        return (
            self._config.cli_path,
            "--url",
            self._config.ledger_url,
            "--commitment",
            self._config.commitment,
            "--evm_loader",
            self._config.loader_id,
            "--loglevel",
            "off",
            "init-environment",
        )

    def init_environment(self) -> None:
        result = self._runner(
            self.command(),
            timeout_seconds=self._config.timeout_seconds,
            endpoint=self.endpoint,
        )
        if result.ok:
            logger.info("neon-cli init-environment succeeded")
            return
        raise InitializationError(
            f"neon-cli init-environment exited with {result.returncode}: "
            f"{result.summary()}",
            code=codes.INITIALIZATION_FAILED,
            endpoint=self.endpoint,
            metadata={"returncode": str(result.returncode)},
        )
