"""Declarative service graph for the devnet environment."""

from __future__ import annotations

from graphlib import CycleError, TopologicalSorter
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from packages.devnet_shared.errors import ConfigurationError, codes

from .readiness import ServiceEndpoint

DEFAULT_TOPOLOGY_PATH = (
    Path(__file__).resolve().parents[2] / "resources" / "topology" / "devnet.yaml"
)

ServiceRole = Literal["ledger", "api", "rpc", "tests"]
GateName = Literal["ledger", "platform"]


class ServiceDescriptor(BaseModel):
    """One named service in the graph."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    role: ServiceRole
    hostname: str = Field(min_length=1)
    image: str | None = None
    ports: tuple[int, ...] = tuple()
    environment: dict[str, str] = Field(default_factory=dict)
    depends_on: tuple[str, ...] = tuple()
    requires: tuple[GateName, ...] = tuple()


class TopologyDescriptor(BaseModel):
    """Services, their environment and their dependency edges."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    services: dict[str, ServiceDescriptor]

    @model_validator(mode="after")
    def _validate_graph(self) -> "TopologyDescriptor":
        """Reject dangling dependency edges and cycles."""
        for name, service in self.services.items():
            missing = sorted(
                dep for dep in service.depends_on if dep not in self.services
            )
            if missing:
                raise ValueError(
                    f"service '{name}' depends on unknown services: {missing}"
                )
        try:
            tuple(TopologicalSorter(self._graph()).static_order())
        except CycleError as exc:
            raise ValueError(
                f"service dependency cycle detected: {exc.args[1]}"
            ) from exc
        return self

    def startup_order(self) -> tuple[str, ...]:
        """Return service names with every dependency before its dependents."""
        return tuple(TopologicalSorter(self._graph()).static_order())

    def service_for_role(self, role: ServiceRole) -> tuple[str, ServiceDescriptor]:
        matches = [
            (name, service)
            for name, service in sorted(self.services.items())
            if service.role == role
        ]
        if not matches:
            raise ConfigurationError(
                f"topology defines no '{role}' service", code=codes.INVALID_TOPOLOGY
            )
        return matches[0]

    def endpoint_for_role(self, role: ServiceRole) -> ServiceEndpoint:
        """Return the in-network endpoint of the first service with ``role``."""
        name, service = self.service_for_role(role)
        if not service.ports:
            raise ConfigurationError(
                f"service '{name}' exposes no ports", code=codes.INVALID_TOPOLOGY
            )
        protocol = "jsonrpc" if role in ("ledger", "rpc") else "http"
        return ServiceEndpoint(
            url=f"http://{service.hostname}:{service.ports[0]}", protocol=protocol
        )

    def dependents_of(self, gate: GateName) -> tuple[str, ...]:
        """Return services that must not be used before ``gate`` is READY."""
        order = self.startup_order()
        return tuple(name for name in order if gate in self.services[name].requires)

    def environment_value(self, key: str) -> str | None:
        """Return the first literal value of ``key`` in startup order.

        Values that are still ``${...}`` placeholders are skipped.
        """
        for name in self.startup_order():
            value = self.services[name].environment.get(key)
            if value and not value.startswith("${"):
                return value
        return None

    def _graph(self) -> dict[str, tuple[str, ...]]:
        return {name: service.depends_on for name, service in self.services.items()}


def load_topology(path: str | Path | None = None) -> TopologyDescriptor:
    """Load and validate one topology YAML file."""
    resolved = Path(path) if path is not None else DEFAULT_TOPOLOGY_PATH
    try:
        with resolved.open("r", encoding="utf-8") as handle:
            parsed = yaml.safe_load(handle)
    except OSError as exc:
        raise ConfigurationError(
            f"topology file unreadable: {resolved}", code=codes.INVALID_TOPOLOGY
        ) from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(
            f"topology file is not valid YAML: {resolved}", code=codes.INVALID_TOPOLOGY
        ) from exc

    if not isinstance(parsed, dict):
        raise ConfigurationError(
            f"topology file must contain a top-level mapping: {resolved}",
            code=codes.INVALID_TOPOLOGY,
        )
    try:
        return TopologyDescriptor.model_validate(parsed)
    except ValidationError as exc:
        raise ConfigurationError(
            f"invalid topology {resolved}: {exc.errors(include_url=False)}",
            code=codes.INVALID_TOPOLOGY,
        ) from exc
