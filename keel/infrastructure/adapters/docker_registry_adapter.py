"""
Docker Registry Adapter

Architectural Intent:
- ArtifactRegistryPort adapter driving the docker CLI through a hook runner
- Pull runs on the target host (before ApplicationStart), push on the build host
- CLI failures are classified into RegistryAuthError, RegistryUnreachable
  and ArtifactNotFound; nothing is retried

Security:
- Registry credentials travel as environment variables only; the login
  pipeline reads them inside the shell and feeds the password on stdin
"""

import logging
import re
import shlex

from keel.domain.errors import (
    ArtifactNotFound,
    RegistryAuthError,
    RegistryError,
    RegistryUnreachable,
)
from keel.domain.ports.artifact_registry_port import ArtifactHandle, ArtifactRegistryPort
from keel.domain.ports.hook_runner_port import HookRunnerPort
from keel.domain.value_objects.credential import RegistryCredential
from keel.domain.value_objects.hook_outcome import HookOutcome, HookStatus
from keel.domain.value_objects.hook_spec import HookSpec
from keel.domain.value_objects.lifecycle_phase import LifecyclePhase

logger = logging.getLogger(__name__)

_DIGEST_RE = re.compile(r"(sha256:[0-9a-f]{64})")
_NOT_FOUND_MARKERS = ("manifest unknown", "not found", "does not exist")
_AUTH_MARKERS = ("unauthorized", "authentication required", "denied", "incorrect username")
_NETWORK_MARKERS = (
    "connection refused",
    "no such host",
    "i/o timeout",
    "dial tcp",
    "tls handshake timeout",
    "network is unreachable",
)

_LOGIN_SCRIPT = (
    'printf %s "$REGISTRY_PASSWORD" | '
    'docker login --username "$REGISTRY_USERNAME" --password-stdin $REGISTRY_URL'
)


def _classify(
    outcome: HookOutcome, action: str, reference: str, allow_not_found: bool
) -> RegistryError:
    text = outcome.truncated_output.lower()
    detail = f"{action} {reference}: {outcome.status.value} (exit={outcome.exit_code})"
    if outcome.status in (HookStatus.TIMED_OUT, HookStatus.UNSTARTABLE):
        return RegistryUnreachable(detail)
    if any(marker in text for marker in _NETWORK_MARKERS):
        return RegistryUnreachable(detail)
    if allow_not_found and any(marker in text for marker in _NOT_FOUND_MARKERS):
        return ArtifactNotFound(detail)
    if any(marker in text for marker in _AUTH_MARKERS):
        return RegistryAuthError(detail)
    return RegistryUnreachable(detail)


class DockerRegistryAdapter(ArtifactRegistryPort):
    def __init__(
        self,
        runner: HookRunnerPort,
        docker_binary: str = "docker",
        timeout_seconds: int = 900,
    ) -> None:
        self._runner = runner
        self._docker = docker_binary
        self._timeout = timeout_seconds

    def _spec(self, argv: list[str]) -> HookSpec:
        # phase is nominal for registry commands
        return HookSpec(
            phase=LifecyclePhase.APPLICATION_START,
            command=shlex.join(argv),
            timeout_seconds=self._timeout,
        )

    async def pull(self, artifact_reference: str) -> ArtifactHandle:
        spec = self._spec([self._docker, "pull", artifact_reference])
        outcome = await self._runner.run(spec, {})
        if not outcome.succeeded:
            raise _classify(outcome, "pull", artifact_reference, allow_not_found=True)
        match = _DIGEST_RE.search(outcome.truncated_output)
        return ArtifactHandle(
            reference=artifact_reference, digest=match.group(1) if match else None
        )

    async def push(
        self, artifact_reference: str, credential: RegistryCredential
    ) -> None:
        await self._login(credential)
        spec = self._spec([self._docker, "push", artifact_reference])
        outcome = await self._runner.run(spec, {})
        if not outcome.succeeded:
            raise _classify(outcome, "push", artifact_reference, allow_not_found=False)
        logger.info("Pushed %s", artifact_reference)

    async def _login(self, credential: RegistryCredential) -> None:
        script = _LOGIN_SCRIPT.replace("docker", shlex.quote(self._docker), 1)
        spec = self._spec(["sh", "-c", script])
        env = {
            "REGISTRY_USERNAME": credential.username,
            "REGISTRY_PASSWORD": credential.password,
            "REGISTRY_URL": credential.url,
        }
        outcome = await self._runner.run(spec, env)
        if outcome.succeeded:
            return
        error = _classify(
            outcome, "login", credential.url or "default registry", allow_not_found=False
        )
        if isinstance(error, RegistryUnreachable) and outcome.status is HookStatus.FAILED:
            text = outcome.truncated_output.lower()
            if not any(marker in text for marker in _NETWORK_MARKERS):
                error = RegistryAuthError(str(error))
        raise error

