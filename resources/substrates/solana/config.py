"""Configuration model for the Solana ledger substrate."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, model_validator

from packages.devnet_shared.config import DevnetSettings


class SolanaConfig(BaseModel):
    """Runtime configuration required for ledger access."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: str
    commitment: Literal["processed", "confirmed", "finalized"] = "confirmed"
    timeout_seconds: float = 5.0
    spl_token_path: str = "spl-token"
    solana_path: str = "solana"
    command_timeout_seconds: float = 60.0

    @model_validator(mode="after")
    def _validate_fields(self) -> "SolanaConfig":
        """Validate required ledger substrate invariants."""
        if self.url.strip() == "":
            raise ValueError("solana.url is required")
        if not self.url.startswith(("http://", "https://")):
            raise ValueError("solana.url must be an http(s) URL")
        if self.timeout_seconds <= 0:
            raise ValueError("solana.timeout_seconds must be > 0")
        if self.command_timeout_seconds <= 0:
            raise ValueError("solana.command_timeout_seconds must be > 0")
        return self


def solana_config_from_settings(settings: DevnetSettings, *, url: str) -> SolanaConfig:
    """Build substrate config for ``url`` from root settings."""
    return SolanaConfig(
        url=url,
        commitment=settings.ledger.commitment,
        timeout_seconds=settings.ledger.request_timeout_seconds,
        spl_token_path=settings.provisioning.spl_token_path,
        solana_path=settings.provisioning.solana_path,
        command_timeout_seconds=settings.provisioning.command_timeout_seconds,
    )
