"""Global test configuration.

Shared fakes for the hook runner, secret store, registry and host connector,
plus a DeploymentRequest builder. Nothing here touches a real host.
"""

import asyncio
from typing import Mapping, Optional

import pytest

from keel.domain.entities.deployment_request import DeploymentRequest
from keel.domain.errors import (
    ArtifactNotFound,
    SecretNotFoundError,
    SecretStoreUnreachable,
)
from keel.domain.ports.artifact_registry_port import ArtifactHandle, ArtifactRegistryPort
from keel.domain.ports.hook_runner_port import HookRunnerPort
from keel.domain.ports.host_connector_port import HostBinding, HostConnectorPort
from keel.domain.ports.secret_store_port import SecretStorePort
from keel.domain.value_objects.deployment_policy import DeploymentPolicy
from keel.domain.value_objects.hook_outcome import HookOutcome, HookStatus
from keel.domain.value_objects.hook_spec import HookSpec
from keel.domain.value_objects.host import Host
from keel.domain.value_objects.lifecycle_phase import FORWARD_PHASES, LifecyclePhase


class FakeRunner(HookRunnerPort):
    """Hook runner scripted per command; unscripted commands exit 0."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, str]]] = []
        self._script: dict[str, tuple[HookOutcome, float, Optional[Exception]]] = {}

    def script(
        self,
        command: str,
        status: HookStatus = HookStatus.SUCCEEDED,
        exit_code: Optional[int] = 0,
        output: str = "",
        delay: float = 0.0,
        raises: Optional[Exception] = None,
    ) -> "FakeRunner":
        self._script[command] = (HookOutcome(status, exit_code, 1, output), delay, raises)
        return self

    def fail(self, command: str, exit_code: int = 1, output: str = "") -> "FakeRunner":
        return self.script(command, HookStatus.FAILED, exit_code, output)

    @property
    def commands(self) -> list[str]:
        return [command for command, _ in self.calls]

    async def run(self, hook: HookSpec, env: Mapping[str, str]) -> HookOutcome:
        self.calls.append((hook.command, dict(env)))
        outcome, delay, raises = self._script.get(
            hook.command, (HookOutcome(HookStatus.SUCCEEDED, 0, 1), 0.0, None)
        )
        if delay:
            await asyncio.sleep(delay)
        if raises is not None:
            raise raises
        return outcome


class FakeSecretStore(SecretStorePort):
    def __init__(self, values: Optional[dict[str, str]] = None, reachable: bool = True):
        self.values = dict(values or {})
        self.reachable = reachable
        self.reads: list[str] = []

    async def get(self, path: str) -> str:
        self.reads.append(path)
        if not self.reachable:
            raise SecretStoreUnreachable("connection refused")
        if path not in self.values:
            raise SecretNotFoundError(path)
        return self.values[path]


class FakeRegistry(ArtifactRegistryPort):
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.error = error
        self.pulled: list[str] = []
        self.pushed: list[tuple[str, object]] = []

    async def pull(self, artifact_reference: str) -> ArtifactHandle:
        self.pulled.append(artifact_reference)
        if self.error is not None:
            raise self.error
        return ArtifactHandle(artifact_reference, "sha256:" + "0" * 64)

    async def push(self, artifact_reference: str, credential) -> None:
        self.pushed.append((artifact_reference, credential))
        if self.error is not None:
            raise self.error


class FakeConnector(HostConnectorPort):
    """One FakeRunner per host id, created on first bind."""

    def __init__(self, probe=None, registries: Optional[dict] = None) -> None:
        self.runners: dict[str, FakeRunner] = {}
        self.probe = probe
        self.registries = dict(registries or {})
        self.bound: list[str] = []

    def runner_for(self, host_id: str) -> FakeRunner:
        return self.runners.setdefault(host_id, FakeRunner())

    def bind(self, host: Host) -> HostBinding:
        self.bound.append(host.host_id)
        return HostBinding(
            runner=self.runner_for(host.host_id),
            probe=self.probe,
            registry=self.registries.get(host.host_id),
        )


DEFAULT_HOOKS = {
    LifecyclePhase.BEFORE_INSTALL: ["scripts/before_install.sh"],
    LifecyclePhase.APPLICATION_STOP: ["scripts/stop.sh"],
    LifecyclePhase.AFTER_INSTALL: ["scripts/after_install.sh"],
    LifecyclePhase.APPLICATION_START: ["scripts/start.sh"],
    LifecyclePhase.VALIDATE_SERVICE: ["scripts/validate.sh"],
}


def build_request(
    hosts=("web1",),
    hooks: Optional[dict] = None,
    policy: Optional[DeploymentPolicy] = None,
    **kwargs,
) -> DeploymentRequest:
    hooks = DEFAULT_HOOKS if hooks is None else hooks
    specs = {
        phase: tuple(HookSpec(phase, command, timeout_seconds=30) for command in commands)
        for phase, commands in hooks.items()
    }
    return DeploymentRequest(
        artifact_reference=kwargs.pop("artifact_reference", "registry.example.com/app:1.4.2"),
        target_group=tuple(Host(h) for h in hosts),
        hooks=specs,
        policy=policy or DeploymentPolicy(),
        **kwargs,
    )


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture
def secret_store():
    return FakeSecretStore(
        {
            "/app/registry/username": "deployer",
            "/app/registry/password": "s3cr3t-pa55",
        }
    )


@pytest.fixture
def make_request():
    return build_request


@pytest.fixture
def forward_commands():
    return [DEFAULT_HOOKS[phase][0] for phase in FORWARD_PHASES]
