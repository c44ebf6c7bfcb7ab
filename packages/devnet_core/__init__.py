"""Public API for devnet readiness gating, provisioning and orchestration."""

from packages.devnet_core.config import (
    BootstrapConfig,
    GatePolicy,
    resolve_ledger_config,
    resolve_ledger_url,
    resolve_loader_id,
)
from packages.devnet_core.deployment import DeployedProgram, ProgramDeployer
from packages.devnet_core.orchestrator import (
    STAGE_TRANSITIONS,
    BootstrapOrchestrator,
    BootstrapResult,
    BootstrapStage,
    BootstrapStageError,
)
from packages.devnet_core.provisioning import (
    AccountProvisioner,
    ProvisionedAccount,
    ProvisioningOutcome,
    TokenSpec,
    provision_all,
)
from packages.devnet_core.readiness import (
    LedgerReadinessGate,
    PlatformReadinessGate,
    ProbeResult,
    ReadinessCheck,
    ReadinessProbe,
    ReadinessState,
    ServiceEndpoint,
)
from packages.devnet_core.topology import (
    DEFAULT_TOPOLOGY_PATH,
    ServiceDescriptor,
    TopologyDescriptor,
    load_topology,
)

__all__ = [
    "AccountProvisioner",
    "BootstrapConfig",
    "BootstrapOrchestrator",
    "BootstrapResult",
    "BootstrapStage",
    "BootstrapStageError",
    "DEFAULT_TOPOLOGY_PATH",
    "DeployedProgram",
    "GatePolicy",
    "LedgerReadinessGate",
    "PlatformReadinessGate",
    "ProbeResult",
    "ProgramDeployer",
    "ProvisionedAccount",
    "ProvisioningOutcome",
    "ReadinessCheck",
    "ReadinessProbe",
    "ReadinessState",
    "STAGE_TRANSITIONS",
    "ServiceDescriptor",
    "ServiceEndpoint",
    "TokenSpec",
    "TopologyDescriptor",
    "load_topology",
    "provision_all",
    "resolve_ledger_config",
    "resolve_ledger_url",
    "resolve_loader_id",
]
