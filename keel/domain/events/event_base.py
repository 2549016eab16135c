"""
Domain Events Module

Architectural Intent:
- Immutable record of something that happened during a deployment
- aggregate_id is the deployment id, so every event can be attributed to
  one DeploymentRequest
- Host state collects events; the coordinator drains and publishes them
"""

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Any


@dataclass(frozen=True)
class DomainEvent:
    occurred_at: str = field(
        default_factory=lambda: datetime.now(UTC).isoformat(), init=False, repr=False
    )
    aggregate_id: str = ""

    @property
    def event_type(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict[str, Any]:
        """Flat payload: event_type plus every field, for JSON output."""
        payload: dict[str, Any] = {"event_type": self.event_type}
        for f in dataclasses.fields(self):
            payload[f.name] = getattr(self, f.name)
        return payload
