"""Transport-agnostic contract for the ledger operations bootstrap needs."""

from __future__ import annotations

from typing import Protocol

from pydantic import BaseModel, ConfigDict

from packages.devnet_shared.keys import KeyMaterial


class LedgerVersion(BaseModel):
    """Version payload returned by a live ledger node."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    solana_core: str
    feature_set: int | None = None


class MintInfo(BaseModel):
    """On-chain mint state. ``supply`` is in base units."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    address: str
    decimals: int
    supply: int
    mint_authority: str | None = None


class TokenAccountInfo(BaseModel):
    """On-chain token holding account state. ``amount`` is in base units."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    address: str
    mint: str
    owner: str
    amount: int


class ProgramInfo(BaseModel):
    """On-chain program account state."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    address: str
    executable: bool
    owner: str


class LedgerSubstrate(Protocol):
    """Protocol for ledger reads (source of truth) and provisioning writes."""

    @property
    def url(self) -> str:
        """Ledger endpoint URL used for diagnostics."""

    def get_version(self) -> LedgerVersion:
        """Return the node version or raise ``ConnectivityError``."""

    def get_mint(self, *, mint_address: str) -> MintInfo | None:
        """Return mint state, ``None`` when absent; non-mint accounts raise."""

    def find_token_account(
        self, *, owner_address: str, mint_address: str
    ) -> TokenAccountInfo | None:
        """Return the owner's holding account for ``mint_address`` if present."""

    def get_program(self, *, program_id: str) -> ProgramInfo | None:
        """Return program account state, ``None`` when absent."""

    def create_mint(
        self, *, mint_key: KeyMaterial, decimals: int, authority: KeyMaterial
    ) -> None:
        """Create a mint at ``mint_key``'s address."""

    def create_token_account(self, *, mint_address: str, owner: KeyMaterial) -> None:
        """Create ``owner``'s associated holding account for ``mint_address``."""

    def mint_to(
        self,
        *,
        mint_address: str,
        recipient_address: str,
        amount: int,
        authority: KeyMaterial,
    ) -> None:
        """Mint ``amount`` whole tokens into ``recipient_address``."""

    def deploy_program(
        self, *, program_key: KeyMaterial, program_path: str, payer: KeyMaterial
    ) -> None:
        """Deploy a program binary at ``program_key``'s address."""
