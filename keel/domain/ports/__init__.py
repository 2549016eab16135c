"""
Domain Ports Package

Architectural Intent:
- Contains port interfaces (abstract contracts) for external dependencies
- Ports define what the engine needs, adapters implement how
"""

from keel.domain.ports.secret_store_port import SecretStorePort
from keel.domain.ports.hook_runner_port import HookRunnerPort
from keel.domain.ports.workload_probe_port import WorkloadProbePort
from keel.domain.ports.artifact_registry_port import (
    ArtifactRegistryPort,
    ArtifactHandle,
    registry_host,
)
from keel.domain.ports.host_connector_port import HostConnectorPort, HostBinding
from keel.domain.ports.history_port import DeploymentHistoryPort
from keel.domain.ports.event_bus_port import EventBusPort

__all__ = [
    "SecretStorePort",
    "HookRunnerPort",
    "WorkloadProbePort",
    "ArtifactRegistryPort",
    "ArtifactHandle",
    "registry_host",
    "HostConnectorPort",
    "HostBinding",
    "DeploymentHistoryPort",
    "EventBusPort",
]
