"""Ledger writes through the ``spl-token`` and ``solana`` command-line tools.

These commands are not idempotent on their own; callers decide whether to run
them from freshly queried on-chain state.
"""

from __future__ import annotations

from packages.devnet_shared.commands import CommandResult, CommandRunner, run_command
from packages.devnet_shared.errors import ConnectivityError, codes
from packages.devnet_shared.keys import KeyMaterial
from packages.devnet_shared.logging import get_logger

from .config import SolanaConfig

logger = get_logger(__name__)


class SplTokenCli:
    """Issue mint, holding-account and mint-to transactions."""

    def __init__(
        self, config: SolanaConfig, *, runner: CommandRunner = run_command
    ) -> None:
        self._config = config
        self._runner = runner

    def create_token(
        self, *, mint_key: KeyMaterial, decimals: int, authority: KeyMaterial
    ) -> CommandResult:
        return self._run(
            "create-token",
            "--decimals",
            str(decimals),
            "--mint-authority",
            authority.derived_address,
            str(mint_key.key_file_path),
            payer=authority,
        )

    def create_account(self, *, mint_address: str, owner: KeyMaterial) -> CommandResult:
        return self._run(
            "create-account",
            mint_address,
            "--owner",
            owner.derived_address,
            payer=owner,
        )

    def mint(
        self,
        *,
        mint_address: str,
        amount: int,
        recipient_address: str,
        authority: KeyMaterial,
    ) -> CommandResult:
        return self._run(
            "mint",
            mint_address,
            str(amount),
            recipient_address,
            "--mint-authority",
            str(authority.key_file_path),
            payer=authority,
        )

    def _run(self, subcommand: str, *args: str, payer: KeyMaterial) -> CommandResult:
        argv = (
            self._config.spl_token_path,
            "--url",
            self._config.url,
            "--fee-payer",
            str(payer.key_file_path),
            subcommand,
            *args,
        )
        logger.debug("running spl-token %s", subcommand)
        result = self._runner(
            argv,
            timeout_seconds=self._config.command_timeout_seconds,
            endpoint=self._config.url,
        )
        _raise_on_failure(
            result, description=f"spl-token {subcommand}", endpoint=self._config.url
        )
        return result


class SolanaCli:
    """Program deployment through ``solana program deploy``."""

    def __init__(
        self, config: SolanaConfig, *, runner: CommandRunner = run_command
    ) -> None:
        self._config = config
        self._runner = runner

    def deploy_program(
        self, *, program_key: KeyMaterial, program_path: str, payer: KeyMaterial
    ) -> CommandResult:
        argv = (
            self._config.solana_path,
            "--url",
            self._config.url,
            "--commitment",
            self._config.commitment,
            "--keypair",
            str(payer.key_file_path),
            "program",
            "deploy",
            "--program-id",
            str(program_key.key_file_path),
            program_path,
        )
        result = self._runner(
            argv,
            timeout_seconds=self._config.command_timeout_seconds,
            endpoint=self._config.url,
        )
        _raise_on_failure(
            result, description="solana program deploy", endpoint=self._config.url
        )
        return result


def _raise_on_failure(
    result: CommandResult, *, description: str, endpoint: str
) -> None:
    if result.ok:
        return
    raise ConnectivityError(
        f"{description} exited with {result.returncode}: {result.summary()}",
        code=codes.COMMAND_FAILED,
        endpoint=endpoint,
        metadata={"returncode": str(result.returncode)},
    )
