"""Explicit, eagerly validated configuration for one bootstrap run.

Settings and the topology are resolved into a ``BootstrapConfig`` before any
endpoint is polled; anything missing or unreadable raises
``ConfigurationError`` here rather than half-way through a run.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from pydantic import ValidationError

from packages.devnet_shared.config import DevnetSettings, TokenSettings
from packages.devnet_shared.errors import ConfigurationError, codes
from packages.devnet_shared.keys import KeyMaterial, load_key_material
from resources.substrates.neon import NeonConfig
from resources.substrates.solana import SolanaConfig, solana_config_from_settings

from .provisioning import TokenSpec
from .topology import TopologyDescriptor


@dataclass(frozen=True, slots=True)
class GatePolicy:
    """Polling bounds for one readiness gate."""

    interval_seconds: float = 1.0
    max_attempts: int | None = None
    max_duration_seconds: float | None = None


@dataclass(frozen=True, slots=True)
class BootstrapConfig:
    """Everything an orchestration run needs, resolved once at startup."""

    ledger: SolanaConfig
    neon: NeonConfig
    owner: KeyMaterial | None
    tokens: tuple[TokenSpec, ...]
    ledger_policy: GatePolicy
    platform_policy: GatePolicy
    budget_seconds: float | None = None
    max_workers: int = 4

    @classmethod
    def from_settings(
        cls,
        settings: DevnetSettings,
        *,
        topology: TopologyDescriptor | None = None,
        tokens: Sequence[TokenSettings] | None = None,
        max_attempts: int | None = None,
        use_local_ledger: bool = False,
        require_owner: bool = True,
    ) -> BootstrapConfig:
        """Resolve settings (and optionally the topology) into a run config.

        ``max_attempts`` overrides both gates' attempt bounds, which is how the
        ``wait-for-*`` commands pass their ``TIMEOUT_SECONDS`` argument.
        """
        ledger = resolve_ledger_config(
            settings, topology=topology, use_local_ledger=use_local_ledger
        )
        loader_id = resolve_loader_id(settings, topology=topology)
        try:
            neon = NeonConfig(
                ledger_url=ledger.url,
                loader_id=loader_id,
                cli_path=settings.platform.cli_path,
                commitment=settings.ledger.commitment,
                timeout_seconds=settings.platform.command_timeout_seconds,
            )
        except ValidationError as exc:
            raise ConfigurationError(
                f"invalid platform configuration: {exc.errors(include_url=False)}",
                code=codes.INVALID_VALUE,
            ) from exc

        owner = (
            load_key_material(settings.provisioning.owner_key_file)
            if require_owner
            else None
        )
        token_settings = settings.provisioning.tokens if tokens is None else tokens
        specs = tuple(TokenSpec.from_settings(token) for token in token_settings)
        if specs and owner is None:
            raise ConfigurationError(
                "token provisioning requires an owner key file",
                code=codes.MISSING_REQUIRED_VALUE,
            )

        readiness = settings.readiness
        return cls(
            ledger=ledger,
            neon=neon,
            owner=owner,
            tokens=specs,
            ledger_policy=GatePolicy(
                interval_seconds=readiness.poll_interval_seconds,
                max_attempts=max_attempts or readiness.ledger_max_attempts,
                max_duration_seconds=readiness.max_duration_seconds,
            ),
            platform_policy=GatePolicy(
                interval_seconds=readiness.poll_interval_seconds,
                max_attempts=max_attempts or readiness.platform_max_attempts,
                max_duration_seconds=readiness.max_duration_seconds,
            ),
            budget_seconds=readiness.bootstrap_budget_seconds,
            max_workers=settings.provisioning.max_workers,
        )


def resolve_ledger_config(
    settings: DevnetSettings,
    *,
    topology: TopologyDescriptor | None = None,
    use_local_ledger: bool = False,
) -> SolanaConfig:
    """Return validated ledger substrate config for the resolved URL."""
    url = resolve_ledger_url(
        settings, topology=topology, use_local_ledger=use_local_ledger
    )
    try:
        return solana_config_from_settings(settings, url=url)
    except ValidationError as exc:
        raise ConfigurationError(
            f"invalid ledger configuration: {exc.errors(include_url=False)}",
            code=codes.INVALID_VALUE,
            endpoint=url,
        ) from exc


def resolve_ledger_url(
    settings: DevnetSettings,
    *,
    topology: TopologyDescriptor | None = None,
    use_local_ledger: bool = False,
) -> str:
    """Return the ledger URL: settings, then topology, then the local default."""
    if settings.ledger.url:
        return settings.ledger.url
    if topology is not None:
        return topology.endpoint_for_role("ledger").url
    if use_local_ledger:
        return settings.ledger.local_url
    raise ConfigurationError(
        "ledger url is required: set DEVNET_LEDGER__URL or SOLANA_URL",
        code=codes.MISSING_REQUIRED_VALUE,
    )


def resolve_loader_id(
    settings: DevnetSettings, *, topology: TopologyDescriptor | None = None
) -> str:
    """Return the loader id: settings, then topology, then the loader key file."""
    if settings.platform.loader_id:
        return settings.platform.loader_id
    if topology is not None:
        from_topology = topology.environment_value("EVM_LOADER")
        if from_topology:
            return from_topology
    try:
        return load_key_material(settings.platform.loader_key_file).derived_address
    except ConfigurationError as exc:
        raise ConfigurationError(
            "loader id is required: set DEVNET_PLATFORM__LOADER_ID or EVM_LOADER, "
            f"or provide {settings.platform.loader_key_file} ({exc.message})",
            code=codes.MISSING_REQUIRED_VALUE,
        ) from exc
