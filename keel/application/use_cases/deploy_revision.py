"""
Deploy Revision Use Case

Architectural Intent:
- Turns a lifecycle descriptor, an artifact reference and a target list into
  a DeploymentRequest and hands it to the DeploymentCoordinator
- When a build descriptor is given, its parameter-store table becomes the
  SecretResolver mapping and its logical names the request's secret names
- A fresh coordinator is built per execution; the latest one stays reachable
  through `coordinator` so a caller can cancel it
"""

import logging
from typing import Optional

from keel.application.dtos.deployment_dtos import DeployRevisionRequest
from keel.application.orchestration.deployment_coordinator import (
    DeploymentCoordinator,
)
from keel.domain.entities.deployment_request import DeploymentRequest
from keel.domain.entities.deployment_result import DeploymentResult
from keel.domain.ports.event_bus_port import EventBusPort
from keel.domain.ports.history_port import DeploymentHistoryPort
from keel.domain.ports.host_connector_port import HostConnectorPort
from keel.domain.ports.secret_store_port import SecretStorePort
from keel.domain.services.secret_resolver import SecretResolver
from keel.domain.value_objects.deployment_policy import DeploymentPolicy
from keel.domain.value_objects.host import Host
from keel.infrastructure.descriptors.build_descriptor import load_build_descriptor
from keel.infrastructure.descriptors.lifecycle_descriptor import (
    load_lifecycle_descriptor,
)

logger = logging.getLogger(__name__)


class DeployRevision:
    def __init__(
        self,
        connector: HostConnectorPort,
        secret_store: Optional[SecretStorePort] = None,
        event_bus: Optional[EventBusPort] = None,
        history: Optional[DeploymentHistoryPort] = None,
        default_selector: Optional[str] = None,
    ):
        self.connector = connector
        self.secret_store = secret_store
        self.event_bus = event_bus
        self.history = history
        self.default_selector = default_selector
        self.coordinator: Optional[DeploymentCoordinator] = None

    def build_request(
        self, dto: DeployRevisionRequest
    ) -> tuple[DeploymentRequest, Optional[SecretResolver]]:
        descriptor = load_lifecycle_descriptor(dto.appspec_path)
        hosts = tuple(h for t in dto.targets for h in Host.parse_group(t))
        policy = DeploymentPolicy.parse(
            dto.policy,
            max_concurrency=dto.max_concurrency,
            fleet_rollback=dto.fleet_rollback,
        )

        resolver = None
        secret_names: frozenset[str] = frozenset()
        if dto.buildspec_path:
            if self.secret_store is None:
                raise ValueError("A build descriptor was given but no secret store is configured")
            build = load_build_descriptor(dto.buildspec_path)
            resolver = SecretResolver(self.secret_store, build.parameter_store)
            secret_names = frozenset(dto.secret_names or build.parameter_store)

        request = DeploymentRequest(
            artifact_reference=dto.artifact_reference,
            target_group=hosts,
            hooks=descriptor.hooks,
            policy=policy,
            secret_names=secret_names,
            workload_selector=dto.workload_selector or self.default_selector,
        )
        return request, resolver

    async def execute(self, dto: DeployRevisionRequest) -> DeploymentResult:
        request, resolver = self.build_request(dto)
        logger.info(
            "Deploying %s from %s (%d hook(s), %d secret name(s))",
            request.artifact_reference,
            dto.appspec_path,
            sum(len(specs) for specs in request.hooks.values()),
            len(request.secret_names),
            extra={"deployment_id": request.deployment_id},
        )
        self.coordinator = DeploymentCoordinator(
            self.connector,
            secret_resolver=resolver,
            event_bus=self.event_bus,
            history=self.history,
        )
        return await self.coordinator.deploy(request)

    def cancel(self, reason: str = "cancelled by operator") -> None:
        if self.coordinator is not None:
            self.coordinator.cancel(reason)
