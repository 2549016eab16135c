"""
Deployment History Port

Architectural Intent:
- Append-only log of per-host transitions and final results
- Lives outside the core; the coordinator writes once per deployment
"""

from abc import ABC, abstractmethod
from typing import Sequence
from keel.domain.entities.deployment_result import DeploymentResult
from keel.domain.entities.host_deployment import HostDeploymentState


class DeploymentHistoryPort(ABC):
    @abstractmethod
    def append(
        self, result: DeploymentResult, hosts: Sequence[HostDeploymentState]
    ) -> None:
        pass
