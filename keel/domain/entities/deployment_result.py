"""
Deployment Result Module

Architectural Intent:
- Aggregate produced once per DeploymentRequest, immutable once finalized
- Every failed host is attributed to a phase, a hook and a raw exit/timeout signal
- Overall status is derived from the per-host outcomes, never set by hand
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any

from keel.domain.entities.host_deployment import HostFailure


class OverallStatus(Enum):
    SUCCEEDED = "Succeeded"
    PARTIALLY_FAILED = "PartiallyFailed"
    FAILED = "Failed"
    ROLLED_BACK = "RolledBack"


@dataclass(frozen=True)
class DeploymentResult:
    deployment_id: str
    artifact_reference: str
    succeeded_hosts: tuple[str, ...]
    failed_hosts: tuple[HostFailure, ...]
    skipped_hosts: tuple[str, ...] = ()
    rolled_back_hosts: tuple[str, ...] = ()
    overall_status: OverallStatus = OverallStatus.FAILED

    @staticmethod
    def aggregate(
        deployment_id: str,
        artifact_reference: str,
        succeeded_hosts: tuple[str, ...],
        failed_hosts: tuple[HostFailure, ...],
        skipped_hosts: tuple[str, ...] = (),
        rolled_back_hosts: tuple[str, ...] = (),
        halted: bool = False,
        fleet_rolled_back: bool = False,
    ) -> "DeploymentResult":
        """
        Collapses per-host terminal states into one result.

        A halted rollout (one-at-a-time or canary) is FAILED even when some
        hosts had already succeeded; those hosts stay deployed.
        """
        if fleet_rolled_back:
            status = OverallStatus.ROLLED_BACK
        elif succeeded_hosts and not failed_hosts and not skipped_hosts:
            status = OverallStatus.SUCCEEDED
        elif halted or not succeeded_hosts:
            status = OverallStatus.FAILED
        else:
            status = OverallStatus.PARTIALLY_FAILED

        return DeploymentResult(
            deployment_id=deployment_id,
            artifact_reference=artifact_reference,
            succeeded_hosts=succeeded_hosts,
            failed_hosts=failed_hosts,
            skipped_hosts=skipped_hosts,
            rolled_back_hosts=rolled_back_hosts,
            overall_status=status,
        )

    @property
    def succeeded(self) -> bool:
        return self.overall_status is OverallStatus.SUCCEEDED

    def failure_for(self, host_id: str) -> HostFailure | None:
        for failure in self.failed_hosts:
            if failure.host_id == host_id:
                return failure
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "deployment_id": self.deployment_id,
            "artifact_reference": self.artifact_reference,
            "overall_status": self.overall_status.value,
            "succeeded_hosts": list(self.succeeded_hosts),
            "failed_hosts": [f.to_dict() for f in self.failed_hosts],
            "skipped_hosts": list(self.skipped_hosts),
            "rolled_back_hosts": list(self.rolled_back_hosts),
        }
