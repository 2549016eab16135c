"""
OpenTelemetry Exporter for Keel

Architectural Intent:
- Exports deployment telemetry to OTLP-compatible backends
- Subscribes to the event bus; the coordinator never calls it directly
- Metrics are attributed by deployment, host and phase, never by hook
  environment or captured output

Security:
- Endpoint defaults to empty string (must be explicitly configured)
- Non-localhost http:// endpoints rejected unless insecure=True
- Validation in __post_init__ prevents accidental plaintext export
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Any
from urllib.parse import urlparse
import logging
from datetime import datetime, UTC

from keel.domain.events.event_base import DomainEvent
from keel.domain.events.deployment_events import (
    DeploymentFinishedEvent,
    HookCompletedEvent,
    HostFailedEvent,
    HostRolledBackEvent,
    HostSucceededEvent,
)
from keel.domain.ports.event_bus_port import EventBusPort

logger = logging.getLogger(__name__)


@dataclass
class OTELConfig:
    endpoint: str = ""
    service_name: str = "keel"
    environment: str = "development"
    export_interval_ms: int = 10000
    insecure: bool = False

    def __post_init__(self) -> None:
        if self.endpoint:
            parsed = urlparse(self.endpoint)
            is_localhost = parsed.hostname in ("localhost", "127.0.0.1", "::1")
            if parsed.scheme == "http" and not is_localhost and not self.insecure:
                raise ValueError(
                    f"Non-localhost HTTP endpoint '{self.endpoint}' requires "
                    "insecure=True or use https://. "
                    "Set insecure=True to explicitly allow plaintext export."
                )


class OTELExporter:
    """
    OpenTelemetry exporter for deployment events.

    Every metric is also kept in a local buffer so a run without an
    endpoint can still be inspected (and tested).
    """

    def __init__(self, config: OTELConfig):
        self.config = config
        self._initialized = False
        self._metrics_buffer: list[dict[str, Any]] = []
        self._meter: Any = None
        self._provider: Any = None
        self._instruments: dict[str, Any] = {}

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def buffered_metrics(self) -> list[dict[str, Any]]:
        return list(self._metrics_buffer)

    async def initialize(self) -> None:
        """Initialize OpenTelemetry SDK and exporters."""
        if not self.config.endpoint:
            logger.info("OTEL endpoint not configured, telemetry disabled")
            return

        try:
            from opentelemetry.sdk.resources import Resource, SERVICE_NAME
            from opentelemetry import metrics
            from opentelemetry.sdk.metrics import MeterProvider
            from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
            from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import (
                OTLPMetricExporter,
            )

            resource = Resource(
                attributes={
                    SERVICE_NAME: self.config.service_name,
                    "environment": self.config.environment,
                }
            )

            reader = PeriodicExportingMetricReader(
                OTLPMetricExporter(
                    endpoint=self.config.endpoint, insecure=self.config.insecure
                ),
                export_interval_millis=self.config.export_interval_ms,
            )
            self._provider = MeterProvider(resource=resource, metric_readers=[reader])
            metrics.set_meter_provider(self._provider)
            self._meter = metrics.get_meter("keel")
            self._initialized = True

        except ImportError:
            logger.warning("OpenTelemetry SDK not installed, telemetry disabled")
            self._initialized = False
        except Exception as e:
            logger.error("Failed to initialize OTEL: %s", e)
            self._initialized = False

    def _get_histogram(self, name: str, unit: str = "") -> Any:
        if name not in self._instruments and self._meter:
            self._instruments[name] = self._meter.create_histogram(name, unit=unit)
        return self._instruments.get(name)

    def record_metric(
        self,
        name: str,
        value: float,
        unit: str = "",
        attributes: Optional[dict[str, str]] = None,
    ) -> None:
        """Record a metric value."""
        self._metrics_buffer.append(
            {
                "name": name,
                "value": value,
                "unit": unit,
                "attributes": attributes or {},
                "timestamp": datetime.now(UTC).isoformat(),
            }
        )

        if self._initialized:
            instrument = self._get_histogram(name, unit)
            if instrument:
                instrument.record(value, attributes=attributes or {})

    def record_hook(
        self,
        deployment_id: str,
        host_id: str,
        phase: str,
        status: str,
        duration_ms: float,
    ) -> None:
        """Record one hook execution."""
        self.record_metric(
            "keel.hook.duration_ms",
            duration_ms,
            unit="ms",
            attributes={
                "deployment_id": deployment_id,
                "host_id": host_id,
                "phase": phase,
                "status": status,
            },
        )

    def record_host_outcome(
        self,
        deployment_id: str,
        host_id: str,
        succeeded: bool,
        phase: str = "",
        reason: str = "",
    ) -> None:
        attributes = {
            "deployment_id": deployment_id,
            "host_id": host_id,
            "outcome": "succeeded" if succeeded else "failed",
        }
        if not succeeded:
            attributes["phase"] = phase
            attributes["reason"] = reason
        self.record_metric("keel.host.outcome", 1.0, attributes=attributes)

    def record_deployment(
        self,
        deployment_id: str,
        overall_status: str,
        succeeded: int,
        failed: int,
        skipped: int,
    ) -> None:
        attributes = {"deployment_id": deployment_id, "status": overall_status}
        self.record_metric("keel.deployment.hosts_succeeded", succeeded, attributes=attributes)
        self.record_metric("keel.deployment.hosts_failed", failed, attributes=attributes)
        self.record_metric("keel.deployment.hosts_skipped", skipped, attributes=attributes)

    async def handle_event(self, event: DomainEvent) -> None:
        """Event bus handler translating deployment events to metrics."""
        if isinstance(event, HookCompletedEvent):
            self.record_hook(
                event.aggregate_id,
                event.host_id,
                event.phase,
                event.status,
                event.duration_ms,
            )
        elif isinstance(event, HostSucceededEvent):
            self.record_host_outcome(event.aggregate_id, event.host_id, True)
        elif isinstance(event, HostFailedEvent):
            self.record_host_outcome(
                event.aggregate_id,
                event.host_id,
                False,
                phase=event.phase,
                reason=event.reason,
            )
        elif isinstance(event, HostRolledBackEvent):
            self.record_metric(
                "keel.host.rollback",
                1.0 if event.success else 0.0,
                attributes={"deployment_id": event.aggregate_id, "host_id": event.host_id},
            )
        elif isinstance(event, DeploymentFinishedEvent):
            self.record_deployment(
                event.aggregate_id,
                event.overall_status,
                event.succeeded,
                event.failed,
                event.skipped,
            )

    def subscribe_to(self, bus: EventBusPort) -> None:
        bus.subscribe(DomainEvent, self.handle_event)

    async def export(self) -> None:
        """Push pending metrics to the collector and clear the local buffer."""
        if not self._initialized:
            return

        exported_count = len(self._metrics_buffer)
        self._metrics_buffer.clear()
        # no periodic tick is guaranteed before the process exits
        self._provider.force_flush()

        if exported_count:
            logger.debug("Flushed %d buffered metrics", exported_count)


async def create_exporter(
    endpoint: Optional[str] = None,
    service_name: str = "keel",
    insecure: bool = False,
) -> OTELExporter:
    """Factory function to create OTEL exporter."""
    config = OTELConfig(
        endpoint=endpoint or "",
        service_name=service_name,
        insecure=insecure,
    )
    exporter = OTELExporter(config)
    await exporter.initialize()
    return exporter
