"""Devnet bootstrap CLI actor implemented with Typer."""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import typer

from packages.devnet_core import (
    BootstrapConfig,
    BootstrapOrchestrator,
    BootstrapResult,
    BootstrapStage,
    BootstrapStageError,
    LedgerReadinessGate,
    ProgramDeployer,
    ProvisioningOutcome,
    ReadinessProbe,
    TopologyDescriptor,
    load_topology,
    resolve_ledger_config,
)
from packages.devnet_shared.config import DevnetSettings, load_settings
from packages.devnet_shared.errors import (
    ConfigurationError,
    DevnetError,
    ErrorCategory,
    codes,
)
from packages.devnet_shared.keys import load_key_material
from packages.devnet_shared.logging import configure_logging, fields, log_context
from resources.substrates.neon import (
    EnvironmentInitializer,
    NeonCliInitializer,
    NeonConfig,
)
from resources.substrates.solana import SolanaConfig, SolanaLedgerSubstrate

SUCCESS_EXIT_CODE = 0
FAILURE_EXIT_CODE = 1
CONFIGURATION_ERROR_EXIT_CODE = 2

CommandOutput = tuple[list[str], dict[str, Any]]
DeployHook = Callable[[BootstrapOrchestrator, SolanaLedgerSubstrate], list[str]]


@dataclass(frozen=True)
class CliConfig:
    """Global CLI options shared by every command."""

    config_path: Path | None
    topology_path: Path | None
    ledger_url: str | None
    loader_id: str | None
    log_level: str | None
    json_logs: bool
    as_json: bool


def _build_ledger(config: SolanaConfig) -> SolanaLedgerSubstrate:
    return SolanaLedgerSubstrate(config)


def _build_initializer(config: NeonConfig) -> EnvironmentInitializer:
    return NeonCliInitializer(config)


def _build_probe() -> ReadinessProbe:
    return ReadinessProbe()


def _emit_output(lines: list[str], data: dict[str, Any], as_json: bool) -> None:
    """Render command output on stdout in the requested format."""
    if as_json:
        typer.echo(json.dumps(data, sort_keys=True, separators=(",", ":")))
        return
    for line in lines:
        typer.echo(line)


def _emit_error(exc: DevnetError, as_json: bool) -> None:
    """Render one bootstrap error to stderr, naming stage and endpoint."""
    if as_json:
        detail = exc.to_detail()
        typer.echo(
            json.dumps(
                {
                    "error": str(exc),
                    "code": detail.code,
                    "category": detail.category.value,
                    "endpoint": detail.endpoint,
                    "stage": detail.metadata.get(fields.STAGE, ""),
                },
                sort_keys=True,
            ),
            err=True,
        )
        return
    typer.echo(f"error: {exc}", err=True)


def _exit_code_for(exc: DevnetError, *, configuration_exit_code: int) -> int:
    if exc.category is ErrorCategory.CONFIGURATION:
        return configuration_exit_code
    return FAILURE_EXIT_CODE


def _load_settings(cfg: CliConfig) -> DevnetSettings:
    cli_params: dict[str, Any] = {}
    if cfg.ledger_url is not None:
        cli_params["ledger"] = {"url": cfg.ledger_url}
    if cfg.loader_id is not None:
        cli_params["platform"] = {"loader_id": cfg.loader_id}
    if cfg.topology_path is not None:
        cli_params["topology_path"] = cfg.topology_path
    settings = load_settings(cli_params=cli_params, config_path=cfg.config_path)
    configure_logging(
        level=cfg.log_level or settings.logging.level,
        json_output=cfg.json_logs or settings.logging.json_output,
        service=settings.logging.service,
        environment=settings.logging.environment,
    )
    return settings


def _load_topology(settings: DevnetSettings) -> TopologyDescriptor | None:
    if settings.topology_path is None:
        return None
    return load_topology(settings.topology_path)


def _run_command(
    cfg: CliConfig,
    command: str,
    invoke: Callable[[DevnetSettings], CommandOutput],
    *,
    configuration_exit_code: int = CONFIGURATION_ERROR_EXIT_CODE,
) -> None:
    """Execute one command and map outcomes and errors to exit codes.

    The wait commands pass ``FAILURE_EXIT_CODE`` so that every failure,
    configuration included, exits 1.
    """
    try:
        settings = _load_settings(cfg)
        with log_context({fields.COMMAND: command}):
            lines, data = invoke(settings)
    except DevnetError as exc:
        _emit_error(exc, cfg.as_json)
        raise typer.Exit(
            code=_exit_code_for(exc, configuration_exit_code=configuration_exit_code)
        ) from exc

    _emit_output(lines, data, cfg.as_json)
    raise typer.Exit(code=SUCCESS_EXIT_CODE)


def _require_config(ctx: typer.Context) -> CliConfig:
    """Return required CLI config from Typer context."""
    config = ctx.obj
    if not isinstance(config, CliConfig):
        raise RuntimeError("CLI configuration not initialized")
    return config


def _account_line(outcome: ProvisioningOutcome) -> str:
    account = outcome.account
    action = "minted" if outcome.minted else "unchanged"
    return (
        f"{account.symbol}: mint={account.mint_address} "
        f"holding={account.holding_account_address} "
        f"supply={account.minted_supply} ({action})"
    )


def _account_data(outcome: ProvisioningOutcome) -> dict[str, Any]:
    data = outcome.account.model_dump(mode="json")
    data.update(outcome.model_dump(mode="json", exclude={"account"}))
    return data


def _orchestrated(
    config: BootstrapConfig, *, before_run: DeployHook | None = None
) -> CommandOutput:
    """Run one orchestration with the configured ledger and initializer."""
    with _build_ledger(config.ledger) as ledger:
        orchestrator = BootstrapOrchestrator.from_config(
            config,
            ledger=ledger,
            initializer=_build_initializer(config.neon),
            probe=_build_probe(),
        )
        lines = before_run(orchestrator, ledger) if before_run is not None else []
        result = orchestrator.run()
    return _report(result, lines)


def _report(result: BootstrapResult, lines: list[str]) -> CommandOutput:
    if result.error is not None:
        raise result.error
    lines = lines + [_account_line(outcome) for outcome in result.outcomes]
    lines.append(f"bootstrap ready (run {result.run_id})")
    data = {
        "ready": result.ready,
        "run_id": result.run_id,
        "transitions": [stage.value for stage in result.transitions],
        "accounts": [_account_data(outcome) for outcome in result.outcomes],
    }
    return lines, data


app = typer.Typer(no_args_is_help=True, help="Devnet bootstrap command-line interface")


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Path | None = typer.Option(
        None, "--config", help="Settings YAML path"
    ),
    topology_path: Path | None = typer.Option(
        None, "--topology", help="Service topology YAML path"
    ),
    ledger_url: str | None = typer.Option(None, help="Ledger JSON-RPC URL"),
    loader_id: str | None = typer.Option(None, help="Neon EVM loader program id"),
    log_level: str | None = typer.Option(None, help="Log level override"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit JSON log lines"),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON output"),
) -> None:
    """Store global options for all commands."""
    ctx.obj = CliConfig(
        config_path=config_path,
        topology_path=topology_path,
        ledger_url=ledger_url,
        loader_id=loader_id,
        log_level=log_level,
        json_logs=json_logs,
        as_json=as_json,
    )


@app.command("wait-for-ledger")
def wait_for_ledger(
    ctx: typer.Context,
    timeout: int | None = typer.Argument(
        None,
        min=1,
        metavar="[TIMEOUT_SECONDS]",
        help="Attempt bound, one attempt per poll interval; omit for one attempt",
    ),
) -> None:
    """Wait until the ledger answers getVersion."""
    cfg = _require_config(ctx)

    def invoke(settings: DevnetSettings) -> CommandOutput:
        ledger_config = resolve_ledger_config(
            settings, topology=_load_topology(settings)
        )
        readiness = settings.readiness
        with _build_ledger(ledger_config) as ledger:
            gate = LedgerReadinessGate(
                ledger,
                probe=_build_probe(),
                interval_seconds=readiness.poll_interval_seconds,
                max_attempts=timeout or readiness.ledger_max_attempts,
                max_duration_seconds=readiness.max_duration_seconds,
            )
            result = gate.wait()
            failure = gate.failure()
        if failure is not None:
            raise BootstrapStageError(BootstrapStage.LEDGER_WAIT, failure)
        url = ledger_config.url
        return (
            [f"ledger ready at {url} after {result.attempts} attempt(s)"],
            {"ready": True, "endpoint": url, "attempts": result.attempts},
        )

    _run_command(
        cfg, "wait-for-ledger", invoke, configuration_exit_code=FAILURE_EXIT_CODE
    )


@app.command("wait-for-platform")
def wait_for_platform(
    ctx: typer.Context,
    timeout: int | None = typer.Argument(
        None,
        min=1,
        metavar="[TIMEOUT_SECONDS]",
        help="Attempt bound applied to both the ledger and the loader waits",
    ),
) -> None:
    """Wait for the ledger, then until neon-cli init-environment succeeds."""
    cfg = _require_config(ctx)

    def invoke(settings: DevnetSettings) -> CommandOutput:
        config = BootstrapConfig.from_settings(
            settings,
            topology=_load_topology(settings),
            tokens=(),
            max_attempts=timeout,
            require_owner=False,
        )
        lines, data = _orchestrated(config)
        return [f"platform ready with loader {config.neon.loader_id}"] + lines, data

    _run_command(
        cfg, "wait-for-platform", invoke, configuration_exit_code=FAILURE_EXIT_CODE
    )


@app.command("deploy-evm")
def deploy_evm(ctx: typer.Context) -> None:
    """Deploy the EVM loader program if absent and provision the NEON mint."""
    cfg = _require_config(ctx)

    def invoke(settings: DevnetSettings) -> CommandOutput:
        config = BootstrapConfig.from_settings(
            settings,
            topology=_load_topology(settings),
            tokens=(settings.provisioning.native_token,),
            use_local_ledger=True,
        )
        program_key = load_key_material(settings.platform.loader_key_file)
        if program_key.derived_address != config.neon.loader_id:
            raise ConfigurationError(
                f"loader id {config.neon.loader_id} does not match "
                f"{settings.platform.loader_key_file} "
                f"({program_key.derived_address})",
                code=codes.STATE_MISMATCH,
            )

        def deploy(
            orchestrator: BootstrapOrchestrator, ledger: SolanaLedgerSubstrate
        ) -> list[str]:
            orchestrator.ledger_gate.wait()
            failure = orchestrator.ledger_gate.failure()
            if failure is not None:
                raise BootstrapStageError(BootstrapStage.LEDGER_WAIT, failure)
            deployer = ProgramDeployer(ledger, payer=config.owner)
            deployed = deployer.ensure_deployed(
                program_key=program_key,
                program_path=settings.platform.loader_program_file,
            )
            action = "deployed" if deployed.deployed else "already deployed"
            return [f"evm loader {deployed.program_id} {action}"]

        return _orchestrated(config, before_run=deploy)

    _run_command(cfg, "deploy-evm", invoke)


@app.command("deploy-multi-tokens")
def deploy_multi_tokens(ctx: typer.Context) -> None:
    """Provision the configured test tokens (USDT and ETH by default)."""
    cfg = _require_config(ctx)

    def invoke(settings: DevnetSettings) -> CommandOutput:
        config = BootstrapConfig.from_settings(
            settings,
            topology=_load_topology(settings),
            use_local_ledger=True,
        )
        return _orchestrated(config)

    _run_command(cfg, "deploy-multi-tokens", invoke)


@app.command("bootstrap")
def bootstrap(ctx: typer.Context) -> None:
    """Run the full ledger, platform and token provisioning sequence."""
    cfg = _require_config(ctx)

    def invoke(settings: DevnetSettings) -> CommandOutput:
        config = BootstrapConfig.from_settings(
            settings, topology=_load_topology(settings)
        )
        return _orchestrated(config)

    _run_command(cfg, "bootstrap", invoke)


@app.command("topology")
def topology(ctx: typer.Context) -> None:
    """Print the service startup order and the services behind each gate."""
    cfg = _require_config(ctx)

    def invoke(settings: DevnetSettings) -> CommandOutput:
        descriptor = load_topology(settings.topology_path)
        order = descriptor.startup_order()
        ledger = descriptor.dependents_of("ledger")
        platform = descriptor.dependents_of("platform")
        lines = [
            f"startup order: {', '.join(order)}",
            f"ledger gate: {', '.join(ledger) or '-'}",
            f"platform gate: {', '.join(platform) or '-'}",
        ]
        data = {
            "startup_order": list(order),
            "dependents": {"ledger": list(ledger), "platform": list(platform)},
        }
        return lines, data

    _run_command(cfg, "topology", invoke)


if __name__ == "__main__":
    app()
