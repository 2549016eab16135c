"""
Docker Workload Probe

Architectural Intent:
- WorkloadProbePort adapter listing running containers through a hook runner
- Works for local and SSH runners alike, since it only issues `docker ps`
- The selector is a `docker ps --filter` expression (e.g. label=app=web);
  "*" lists every running container
- Only lines that look like container ids count; runners merge stderr into
  the output, so daemon warnings must not be mistaken for workloads
- A truncated listing fails the check rather than under-counting matches
"""

import logging
import re
import shlex

from keel.domain.errors import HookError
from keel.domain.ports.hook_runner_port import HookRunnerPort
from keel.domain.ports.workload_probe_port import WorkloadProbePort
from keel.domain.value_objects.hook_outcome import TRUNCATION_MARKER
from keel.domain.value_objects.hook_spec import HookSpec
from keel.domain.value_objects.lifecycle_phase import LifecyclePhase

logger = logging.getLogger(__name__)

MATCH_ALL = "*"
_CONTAINER_ID = re.compile(r"^[0-9a-f]{12,64}$")


class DockerWorkloadProbe(WorkloadProbePort):
    def __init__(
        self,
        runner: HookRunnerPort,
        docker_binary: str = "docker",
        timeout_seconds: int = 60,
    ) -> None:
        self._runner = runner
        self._docker = docker_binary
        self._timeout = timeout_seconds

    def command_for(self, selector: str) -> str:
        argv = [self._docker, "ps", "--quiet", "--no-trunc"]
        if selector != MATCH_ALL:
            argv += ["--filter", selector]
        return shlex.join(argv)

    async def running_workloads(self, selector: str) -> list[str]:
        command = self.command_for(selector)
        hook = HookSpec(
            phase=LifecyclePhase.APPLICATION_STOP,
            command=command,
            timeout_seconds=self._timeout,
        )
        outcome = await self._runner.run(hook, {})
        outcome.raise_for_status(command)
        output = outcome.truncated_output
        if output.startswith(TRUNCATION_MARKER):
            raise HookError(
                command, f"Listing for {selector!r} was truncated", output
            )
        matches = []
        for line in output.splitlines():
            line = line.strip()
            if _CONTAINER_ID.match(line):
                matches.append(line)
            elif line:
                logger.debug("Ignoring non-id line from docker ps: %s", line)
        logger.debug("%d workload(s) match %r", len(matches), selector)
        return matches
