"""
Deployment Events

Architectural Intent:
- Published by the coordinator as a deployment progresses
- aggregate_id is always the deployment id
- Carry attribution only (host, phase, hook); never hook environment or secrets
"""

from dataclasses import dataclass
from typing import Optional

from keel.domain.events.event_base import DomainEvent


@dataclass(frozen=True)
class DeploymentStartedEvent(DomainEvent):
    artifact_reference: str = ""
    host_count: int = 0
    policy: str = ""


@dataclass(frozen=True)
class HookCompletedEvent(DomainEvent):
    host_id: str = ""
    phase: str = ""
    command: str = ""
    status: str = ""
    exit_code: Optional[int] = None
    duration_ms: int = 0


@dataclass(frozen=True)
class HostSucceededEvent(DomainEvent):
    host_id: str = ""


@dataclass(frozen=True)
class HostFailedEvent(DomainEvent):
    host_id: str = ""
    phase: str = ""
    reason: str = ""
    exit_code: Optional[int] = None


@dataclass(frozen=True)
class HostRolledBackEvent(DomainEvent):
    host_id: str = ""
    success: bool = False


@dataclass(frozen=True)
class DeploymentFinishedEvent(DomainEvent):
    overall_status: str = ""
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
