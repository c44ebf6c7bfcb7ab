"""Typed configuration models for devnet bootstrap settings."""

from __future__ import annotations

from pathlib import Path
from typing import ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "devnet" / "devnet.yaml"
DEFAULT_KEYS_DIR = Path("/opt/keys")


class LoggingSettings(BaseModel):
    """Logging configuration shared by all CLI commands."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    json_output: bool = False
    service: str = "devnet"
    environment: str = "ci"


class LedgerSettings(BaseModel):
    """Ledger node (Solana validator) JSON-RPC settings.

    ``url`` has no default: readiness commands must be told where the ledger
    lives. ``local_url`` is only used by the provisioning entrypoints, which
    run inside the ledger container.
    """

    url: str | None = None
    local_url: str = "http://localhost:8899"
    commitment: Literal["processed", "confirmed", "finalized"] = "confirmed"
    request_timeout_seconds: float = Field(default=5.0, gt=0)


class PlatformSettings(BaseModel):
    """Neon EVM loader settings for the compatibility-layer gate."""

    loader_id: str | None = None
    loader_key_file: Path = Path("/opt/evm_loader-keypair.json")
    loader_program_file: Path = Path("/opt/evm_loader.so")
    cli_path: str = "neon-cli"
    command_timeout_seconds: float = Field(default=60.0, gt=0)


class ReadinessSettings(BaseModel):
    """Polling defaults for readiness gates and the overall bootstrap budget."""

    poll_interval_seconds: float = Field(default=1.0, gt=0)
    ledger_max_attempts: int | None = Field(default=None, gt=0)
    platform_max_attempts: int | None = Field(default=None, gt=0)
    max_duration_seconds: float | None = Field(default=None, ge=0)
    bootstrap_budget_seconds: float | None = Field(default=None, gt=0)


class TokenSettings(BaseModel):
    """One fixed-supply test token to provision."""

    model_config = ConfigDict(frozen=True)

    symbol: str = Field(min_length=1)
    decimals: int = Field(ge=0, le=255)
    initial_supply: int = Field(ge=0)
    key_file: Path


def _default_test_tokens() -> list[TokenSettings]:
    return [
        TokenSettings(
            symbol="USDT",
            decimals=6,
            initial_supply=100_000_000_000,
            key_file=DEFAULT_KEYS_DIR / "usdt_token_keypair.json",
        ),
        TokenSettings(
            symbol="ETH",
            decimals=8,
            initial_supply=100_000_000_000,
            key_file=DEFAULT_KEYS_DIR / "eth_token_keypair.json",
        ),
    ]


def _default_native_token() -> TokenSettings:
    return TokenSettings(
        symbol="NEON",
        decimals=9,
        initial_supply=0,
        key_file=DEFAULT_KEYS_DIR / "neon_token_keypair.json",
    )


class ProvisioningSettings(BaseModel):
    """Token provisioning settings for ``deploy-evm`` and ``deploy-multi-tokens``."""

    spl_token_path: str = "spl-token"
    solana_path: str = "solana"
    owner_key_file: Path = Path("/root/.config/solana/id.json")
    command_timeout_seconds: float = Field(default=60.0, gt=0)
    max_workers: int = Field(default=4, gt=0)
    tokens: list[TokenSettings] = Field(default_factory=_default_test_tokens)
    native_token: TokenSettings = Field(default_factory=_default_native_token)

    @field_validator("tokens")
    @classmethod
    def _reject_duplicate_key_files(
        cls, value: list[TokenSettings]
    ) -> list[TokenSettings]:
        """Two token entries sharing one key file would share one mint."""
        seen: set[Path] = set()
        for token in value:
            if token.key_file in seen:
                raise ValueError(
                    f"provisioning.tokens reuses key file {token.key_file} "
                    f"for symbol {token.symbol}"
                )
            seen.add(token.key_file)
        return value


class DevnetSettings(BaseSettings):
    """Root settings resolved from init/env/yaml/defaults sources."""

    model_config = SettingsConfigDict(
        env_prefix="DEVNET_",
        env_nested_delimiter="__",
        extra="ignore",
        nested_model_default_partial_update=True,
    )

    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    ledger: LedgerSettings = Field(default_factory=LedgerSettings)
    platform: PlatformSettings = Field(default_factory=PlatformSettings)
    readiness: ReadinessSettings = Field(default_factory=ReadinessSettings)
    provisioning: ProvisioningSettings = Field(default_factory=ProvisioningSettings)
    topology_path: Path | None = None

    _config_path: ClassVar[Path] = DEFAULT_CONFIG_PATH

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Apply precedence: init > env > yaml > model defaults."""
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(
                settings_cls,
                yaml_file=cls._config_path,
                yaml_file_encoding="utf-8",
            ),
        )
