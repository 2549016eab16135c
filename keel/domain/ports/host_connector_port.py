"""
Host Connector Port

Architectural Intent:
- Binds host-facing adapters (runner, probe, registry) to one target host
- Each host task receives its own binding; nothing is shared across hosts
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
from keel.domain.value_objects.host import Host
from keel.domain.ports.hook_runner_port import HookRunnerPort
from keel.domain.ports.workload_probe_port import WorkloadProbePort
from keel.domain.ports.artifact_registry_port import ArtifactRegistryPort


@dataclass(frozen=True)
class HostBinding:
    runner: HookRunnerPort
    probe: Optional[WorkloadProbePort] = None
    registry: Optional[ArtifactRegistryPort] = None


class HostConnectorPort(ABC):
    @abstractmethod
    def bind(self, host: Host) -> HostBinding:
        pass
