"""Configuration model for the Neon EVM loader substrate."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, model_validator


class NeonConfig(BaseModel):
    """Runtime configuration for ``neon-cli`` invocations against one ledger."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    ledger_url: str
    loader_id: str
    cli_path: str = "neon-cli"
    commitment: Literal["processed", "confirmed", "finalized"] = "confirmed"
    timeout_seconds: float = 60.0

    @model_validator(mode="after")
    def _validate_fields(self) -> "NeonConfig":
        """Validate required loader substrate invariants."""
        if self.ledger_url.strip() == "":
            raise ValueError("neon.ledger_url is required")
        if self.loader_id.strip() == "":
            raise ValueError("neon.loader_id is required")
        if self.cli_path.strip() == "":
            raise ValueError("neon.cli_path is required")
        if self.timeout_seconds <= 0:
            raise ValueError("neon.timeout_seconds must be > 0")
        return self
