"""Ledger substrate combining JSON-RPC reads with CLI-driven writes."""

from __future__ import annotations

from packages.devnet_shared.commands import CommandRunner, run_command
from packages.devnet_shared.keys import KeyMaterial

from .config import SolanaConfig
from .rpc_client import SolanaRpcClient
from .substrate import (
    LedgerSubstrate,
    LedgerVersion,
    MintInfo,
    ProgramInfo,
    TokenAccountInfo,
)
from .token_cli import SolanaCli, SplTokenCli


class SolanaLedgerSubstrate(LedgerSubstrate):
    """Concrete ledger substrate for a Solana validator."""

    def __init__(
        self,
        config: SolanaConfig,
        *,
        rpc: SolanaRpcClient | None = None,
        runner: CommandRunner = run_command,
    ) -> None:
        self._config = config
        self._rpc = rpc or SolanaRpcClient(config)
        self._spl_token = SplTokenCli(config, runner=runner)
        self._solana = SolanaCli(config, runner=runner)

    @property
    def url(self) -> str:
        return self._config.url

    def close(self) -> None:
        self._rpc.close()

    def __enter__(self) -> SolanaLedgerSubstrate:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def get_version(self) -> LedgerVersion:
        return self._rpc.get_version()

    def get_mint(self, *, mint_address: str) -> MintInfo | None:
        return self._rpc.get_mint(mint_address=mint_address)

    def find_token_account(
        self, *, owner_address: str, mint_address: str
    ) -> TokenAccountInfo | None:
        return self._rpc.find_token_account(
            owner_address=owner_address, mint_address=mint_address
        )

    def get_program(self, *, program_id: str) -> ProgramInfo | None:
        return self._rpc.get_program(program_id=program_id)

    def create_mint(
        self, *, mint_key: KeyMaterial, decimals: int, authority: KeyMaterial
    ) -> None:
        self._spl_token.create_token(
            mint_key=mint_key, decimals=decimals, authority=authority
        )

    def create_token_account(self, *, mint_address: str, owner: KeyMaterial) -> None:
        self._spl_token.create_account(mint_address=mint_address, owner=owner)

    def mint_to(
        self,
        *,
        mint_address: str,
        recipient_address: str,
        amount: int,
        authority: KeyMaterial,
    ) -> None:
        self._spl_token.mint(
            mint_address=mint_address,
            amount=amount,
            recipient_address=recipient_address,
            authority=authority,
        )

    def deploy_program(
        self, *, program_key: KeyMaterial, program_path: str, payer: KeyMaterial
    ) -> None:
        self._solana.deploy_program(
            program_key=program_key, program_path=program_path, payer=payer
        )
