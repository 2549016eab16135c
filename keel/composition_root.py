"""
Composition Root

Architectural Intent:
- Dependency injection composition root for the Keel application
- Single place where all adapters and use cases are wired together
- No adapter instantiation should occur outside this module

Design Decisions:
- Uses a simple dataclass container instead of a DI framework
- Factory function creates and wires all dependencies from KeelConfig
- Optional components (history log, telemetry, Parameter Store) are only
  built when configured
"""

from dataclasses import dataclass
from typing import Optional

from keel.application.use_cases.deploy_revision import DeployRevision
from keel.application.use_cases.publish_artifact import PublishArtifact
from keel.application.use_cases.validate_descriptors import ValidateDescriptors
from keel.domain.ports.secret_store_port import SecretStorePort
from keel.domain.value_objects.auth_context import AuthContext
from keel.infrastructure.adapters.docker_registry_adapter import DockerRegistryAdapter
from keel.infrastructure.adapters.environment_secret_store import EnvironmentSecretStore
from keel.infrastructure.adapters.host_connector import (
    DockerHostConnector,
    RunnerFactory,
    local_runner_factory,
    ssh_runner_factory,
)
from keel.infrastructure.adapters.local_hook_runner import LocalHookRunner
from keel.infrastructure.config import KeelConfig
from keel.infrastructure.event_bus import EventBus
from keel.infrastructure.repositories.sqlite_history_repository import (
    SQLiteHistoryRepository,
)
from keel.infrastructure.telemetry.otel_exporter import OTELConfig, OTELExporter


@dataclass
class KeelContainer:
    """DI container holding all wired dependencies."""

    config: KeelConfig
    secret_store: SecretStorePort
    connector: DockerHostConnector
    event_bus: EventBus
    deploy_revision: DeployRevision
    publish_artifact: PublishArtifact
    validate_descriptors: ValidateDescriptors
    history: Optional[SQLiteHistoryRepository] = None
    telemetry: Optional[OTELExporter] = None

    def close(self) -> None:
        if self.history is not None:
            self.history.close()


def _auth_context(config: KeelConfig) -> AuthContext:
    settings = {}
    if config.secrets.profile:
        settings["aws_profile"] = config.secrets.profile
    if config.runner.ssh_key_file:
        settings["ssh_key_file"] = config.runner.ssh_key_file
    return AuthContext(name=config.secrets.profile or "default", settings=settings)


def _secret_store(config: KeelConfig, auth: AuthContext) -> SecretStorePort:
    provider = config.secrets.provider
    if provider == "env":
        return EnvironmentSecretStore()
    if provider == "parameter-store":
        from keel.infrastructure.adapters.parameter_store_adapter import (
            ParameterStoreAdapter,
        )

        return ParameterStoreAdapter(
            region=config.secrets.region or None,
            max_attempts=config.secrets.max_attempts,
            auth=auth,
        )
    raise ValueError(f"Unknown secrets provider: {provider!r}")


def _runner_factory(config: KeelConfig, auth: AuthContext) -> RunnerFactory:
    runner = config.runner
    if runner.mode == "local":
        return local_runner_factory(
            runner.output_limit_bytes,
            runner.kill_grace_seconds,
            cwd=runner.working_dir or None,
        )
    if runner.mode == "ssh":
        return ssh_runner_factory(
            user=runner.ssh_user or None,
            connect_timeout=runner.connect_timeout,
            output_limit=runner.output_limit_bytes,
            kill_grace_seconds=runner.kill_grace_seconds,
            port=runner.ssh_port,
            auth=auth,
        )
    raise ValueError(f"Unknown runner mode: {runner.mode!r}")


def create_container(config: Optional[KeelConfig] = None) -> KeelContainer:
    """Create and wire all dependencies."""
    config = config or KeelConfig()
    auth = _auth_context(config)

    secret_store = _secret_store(config, auth)
    connector = DockerHostConnector(
        _runner_factory(config, auth),
        probe_workloads=config.workload.probe,
        pull_artifacts=config.registry.pull_before_start,
        docker_binary=config.registry.docker_binary,
    )
    event_bus = EventBus()

    history = None
    if config.history.db_path:
        history = SQLiteHistoryRepository(config.history.db_path)
        history.connect()

    telemetry = None
    if config.telemetry.endpoint:
        telemetry = OTELExporter(
            OTELConfig(
                endpoint=config.telemetry.endpoint,
                service_name=config.telemetry.service_name,
                insecure=config.telemetry.insecure,
            )
        )
        telemetry.subscribe_to(event_bus)

    # Pushes always run on the build machine itself.
    build_runner = LocalHookRunner(
        output_limit=config.runner.output_limit_bytes,
        kill_grace_seconds=config.runner.kill_grace_seconds,
    )
    registry = DockerRegistryAdapter(build_runner, config.registry.docker_binary)

    return KeelContainer(
        config=config,
        secret_store=secret_store,
        connector=connector,
        event_bus=event_bus,
        deploy_revision=DeployRevision(
            connector,
            secret_store=secret_store,
            event_bus=event_bus,
            history=history,
            default_selector=config.workload.selector or None,
        ),
        publish_artifact=PublishArtifact(secret_store, registry),
        validate_descriptors=ValidateDescriptors(),
        history=history,
        telemetry=telemetry,
    )
