"""
Host Connector

Architectural Intent:
- HostConnectorPort adapter binding runner, probe and registry to one host
- "local" mode runs every host's hooks on this machine (single-host or
  agent-style installs); "ssh" mode opens a Fabric runner per host
- Probe and registry are layered on the host's own runner so they observe
  the same machine the hooks mutate
"""

import dataclasses
from typing import Callable, Optional

from keel.domain.ports.host_connector_port import HostBinding, HostConnectorPort
from keel.domain.ports.hook_runner_port import HookRunnerPort
from keel.domain.value_objects.auth_context import AuthContext
from keel.domain.value_objects.host import Host
from keel.infrastructure.adapters.docker_registry_adapter import DockerRegistryAdapter
from keel.infrastructure.adapters.docker_workload_probe import DockerWorkloadProbe
from keel.infrastructure.adapters.local_hook_runner import LocalHookRunner

RunnerFactory = Callable[[Host], HookRunnerPort]


class DockerHostConnector(HostConnectorPort):
    def __init__(
        self,
        runner_factory: RunnerFactory,
        probe_workloads: bool = True,
        pull_artifacts: bool = True,
        docker_binary: str = "docker",
    ) -> None:
        self._runner_factory = runner_factory
        self._probe_workloads = probe_workloads
        self._pull_artifacts = pull_artifacts
        self._docker = docker_binary

    def bind(self, host: Host) -> HostBinding:
        runner = self._runner_factory(host)
        return HostBinding(
            runner=runner,
            probe=DockerWorkloadProbe(runner, self._docker)
            if self._probe_workloads
            else None,
            registry=DockerRegistryAdapter(runner, self._docker)
            if self._pull_artifacts
            else None,
        )


def local_runner_factory(
    output_limit: int, kill_grace_seconds: float, cwd: Optional[str] = None
) -> RunnerFactory:
    runner = LocalHookRunner(
        output_limit=output_limit, kill_grace_seconds=kill_grace_seconds, cwd=cwd
    )
    return lambda host: runner


def ssh_runner_factory(
    user: Optional[str],
    connect_timeout: int,
    output_limit: int,
    kill_grace_seconds: float,
    port: int = 22,
    auth: Optional[AuthContext] = None,
) -> RunnerFactory:
    from keel.infrastructure.adapters.fabric_hook_runner import FabricHookRunner

    def factory(host: Host) -> HookRunnerPort:
        # an explicit :port in the target wins over the configured default
        if host.port == 22 and port != 22:
            host = dataclasses.replace(host, port=port)
        return FabricHookRunner(
            host,
            user=user,
            connect_timeout=connect_timeout,
            output_limit=output_limit,
            kill_grace_seconds=kill_grace_seconds,
            auth=auth,
        )

    return factory
