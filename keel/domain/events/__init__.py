"""
Domain Events Package

Architectural Intent:
- Contains domain events and the event base class
- Events are the primary mechanism for progress reporting and telemetry
"""

from keel.domain.events.event_base import DomainEvent
from keel.domain.events.deployment_events import (
    DeploymentStartedEvent,
    HookCompletedEvent,
    HostSucceededEvent,
    HostFailedEvent,
    HostRolledBackEvent,
    DeploymentFinishedEvent,
)

__all__ = [
    "DomainEvent",
    "DeploymentStartedEvent",
    "HookCompletedEvent",
    "HostSucceededEvent",
    "HostFailedEvent",
    "HostRolledBackEvent",
    "DeploymentFinishedEvent",
]
