"""
Keel Telemetry Infrastructure

Architectural Intent:
- OpenTelemetry integration for deployment observability
- Hook durations, host outcomes and deployment results as metrics
"""

from keel.infrastructure.telemetry.otel_exporter import (
    OTELExporter,
    OTELConfig,
    create_exporter,
)

__all__ = [
    "OTELExporter",
    "OTELConfig",
    "create_exporter",
]
