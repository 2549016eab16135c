"""
Host Lifecycle State Machine

Architectural Intent:
- Drives one host through BeforeInstall -> ApplicationStop -> AfterInstall ->
  ApplicationStart -> ValidateService, strictly sequentially
- The first non-successful hook fails the host; later hooks never run
- Side effects already applied are not reversed here; Rollback hooks are
  invoked separately by the coordinator
- Secrets are resolved fresh for every hook and injected as environment only

Stop-phase policy:
- Zero running workloads matching the selector is success (stop hooks no-op)
- More than one match is AmbiguousTargetState; nothing is stopped

Cancellation:
- No new hook starts once the token is cancelled
- A running hook is shielded from task cancellation and finishes or times out
"""

import asyncio
import logging
from typing import Mapping, Optional

from keel.application.lifecycle.cancellation import CancellationToken
from keel.domain.entities.deployment_request import DeploymentRequest
from keel.domain.entities.host_deployment import FailureReason, HostDeploymentState
from keel.domain.errors import (
    AmbiguousTargetState,
    HookError,
    HookFailed,
    HookTimedOut,
    RegistryError,
    SecretUnavailable,
)
from keel.domain.ports.host_connector_port import HostBinding
from keel.domain.services.secret_resolver import SecretResolver
from keel.domain.value_objects.credential import Credential
from keel.domain.value_objects.hook_outcome import HookOutcome, HookStatus
from keel.domain.value_objects.hook_spec import HookSpec
from keel.domain.value_objects.host import Host
from keel.domain.value_objects.lifecycle_phase import FORWARD_PHASES, LifecyclePhase

logger = logging.getLogger(__name__)

_MASK = "****"


def _failure_reason_for(error: HookError) -> FailureReason:
    if isinstance(error, HookTimedOut):
        return FailureReason.HOOK_TIMED_OUT
    if isinstance(error, HookFailed):
        return FailureReason.HOOK_FAILED
    return FailureReason.HOOK_UNSTARTABLE


def scrub_secrets(output: str, credentials: Mapping[str, Credential]) -> str:
    for credential in credentials.values():
        if credential.value:
            output = output.replace(credential.value, _MASK)
    return output


class HostLifecycle:
    def __init__(
        self,
        host: Host,
        request: DeploymentRequest,
        binding: HostBinding,
        secret_resolver: Optional[SecretResolver] = None,
        token: Optional[CancellationToken] = None,
    ) -> None:
        self._host = host
        self._request = request
        self._binding = binding
        self._resolver = secret_resolver
        self._token = token or CancellationToken()
        self._state = HostDeploymentState(host.host_id, request.deployment_id)
        self._target_workload: Optional[str] = None

    @property
    def host(self) -> Host:
        return self._host

    @property
    def state(self) -> HostDeploymentState:
        return self._state

    def _log_extra(self) -> dict[str, str]:
        return {
            "deployment_id": self._request.deployment_id,
            "host_id": self._host.host_id,
            "phase": self._state.current_phase.value,
        }

    async def run(self) -> HostDeploymentState:
        for phase in FORWARD_PHASES:
            if self._cancelled_before(None):
                return self._state

            self._state.enter(phase)
            logger.info(
                "%s entered %s", self._host.host_id, phase, extra=self._log_extra()
            )

            if phase is LifecyclePhase.APPLICATION_STOP:
                if not await self._check_stop_target():
                    return self._state
            if phase is LifecyclePhase.APPLICATION_START:
                if not await self._pull_artifact():
                    return self._state

            for hook in self._request.hooks_for(phase):
                if not await self._run_hook(hook):
                    return self._state

            self._state.complete_phase(phase)

        self._state.succeed()
        logger.info("%s succeeded", self._host.host_id, extra=self._log_extra())
        return self._state

    async def rollback(self) -> bool:
        """Runs the Rollback hooks in order; stops at the first failure."""
        self._state.enter_rollback()
        success = True
        for hook in self._request.hooks_for(LifecyclePhase.ROLLBACK):
            if self._token.cancelled:
                success = False
                break
            outcome = await self._invoke(hook)
            if outcome is None or not outcome.succeeded:
                success = False
                break
        self._state.finish_rollback(success)
        log = logger.info if success else logger.error
        log(
            "%s rollback %s",
            self._host.host_id,
            "succeeded" if success else "failed",
            extra=self._log_extra(),
        )
        return success

    def _cancelled_before(self, hook: Optional[HookSpec]) -> bool:
        if not self._token.cancelled:
            return False
        self._state.fail(
            FailureReason.CANCELLED,
            hook=hook.command if hook else None,
            detail=self._token.reason or "cancelled",
        )
        return True

    async def _run_hook(self, hook: HookSpec) -> bool:
        if self._cancelled_before(hook):
            return False

        outcome = await self._invoke(hook)
        if outcome is None:
            return False
        if outcome.succeeded:
            return True

        self._state.fail(
            FailureReason.from_hook_status(outcome.status),
            hook=hook.command,
            exit_code=outcome.exit_code,
            detail=outcome.truncated_output,
        )
        logger.error(
            "%s hook %r %s (exit=%s)",
            self._host.host_id,
            hook.command,
            outcome.status.value,
            outcome.exit_code,
            extra=self._log_extra(),
        )
        return False

    async def _invoke(self, hook: HookSpec) -> Optional[HookOutcome]:
        """
        Resolves secrets, runs the hook and records its outcome.
        Returns None when the host was failed before the hook could run.
        """
        try:
            credentials = await self._resolve_secrets()
        except SecretUnavailable as e:
            logger.error(
                "%s: %s", self._host.host_id, e, extra=self._log_extra()
            )
            if not self._state.is_terminal:
                self._state.fail(
                    FailureReason.SECRET_UNAVAILABLE, hook=hook.command, detail=str(e)
                )
            return None

        env = self._environment(hook, credentials)
        task = asyncio.ensure_future(self._execute(hook, env))
        try:
            outcome = await asyncio.shield(task)
        except asyncio.CancelledError:
            logger.warning(
                "%s: cancelled while %r runs; waiting for it to finish",
                self._host.host_id,
                hook.command,
                extra=self._log_extra(),
            )
            self._token.cancel("deployment task cancelled")
            outcome = await task
            self._state.record_hook(
                hook, outcome.with_output(scrub_secrets(outcome.truncated_output, credentials))
            )
            if not self._state.is_terminal:
                self._state.fail(
                    FailureReason.CANCELLED,
                    hook=hook.command,
                    exit_code=outcome.exit_code,
                    detail="deployment task cancelled",
                )
            raise

        outcome = outcome.with_output(
            scrub_secrets(outcome.truncated_output, credentials)
        )
        self._state.record_hook(hook, outcome)
        return outcome

    async def _execute(self, hook: HookSpec, env: Mapping[str, str]) -> HookOutcome:
        try:
            return await self._binding.runner.run(hook, env)
        except Exception as e:
            logger.exception(
                "%s: runner raised for %r", self._host.host_id, hook.command
            )
            return HookOutcome(HookStatus.UNSTARTABLE, truncated_output=str(e))

    async def _resolve_secrets(self) -> dict[str, Credential]:
        names = self._request.secret_names
        if not names:
            return {}
        if self._resolver is None:
            raise SecretUnavailable(sorted(names)[0], "no secret resolver configured")
        return await self._resolver.resolve(names)

    def _environment(
        self, hook: HookSpec, credentials: Mapping[str, Credential]
    ) -> dict[str, str]:
        env = {
            "DEPLOYMENT_ID": self._request.deployment_id,
            "LIFECYCLE_EVENT": hook.phase.value,
            "ARTIFACT_REFERENCE": self._request.artifact_reference,
            "HOST_ID": self._host.host_id,
        }
        if self._target_workload:
            env["TARGET_WORKLOAD"] = self._target_workload
        for name, credential in credentials.items():
            env[name] = credential.value
        return env

    async def _check_stop_target(self) -> bool:
        selector = self._request.workload_selector
        probe = self._binding.probe
        if selector is None or probe is None:
            return True

        try:
            matches = await probe.running_workloads(selector)
            if len(matches) > 1:
                raise AmbiguousTargetState(selector, matches)
        except AmbiguousTargetState as e:
            self._state.fail(FailureReason.AMBIGUOUS_TARGET_STATE, detail=str(e))
            logger.error(
                "%s: %s; operator intervention required",
                self._host.host_id,
                e,
                extra=self._log_extra(),
            )
            return False
        except HookError as e:
            self._state.fail(
                _failure_reason_for(e),
                hook=e.command,
                exit_code=getattr(e, "exit_code", None),
                detail=str(e),
            )
            return False
        except Exception as e:
            logger.exception(
                "%s: workload check for %r raised",
                self._host.host_id,
                selector,
                extra=self._log_extra(),
            )
            self._state.fail(
                FailureReason.HOOK_UNSTARTABLE, detail=f"{type(e).__name__}: {e}"
            )
            return False

        if matches:
            self._target_workload = matches[0]
            logger.info(
                "%s: stopping workload %s",
                self._host.host_id,
                self._target_workload,
                extra=self._log_extra(),
            )
        else:
            logger.info(
                "%s: no running workload matches %r; nothing to stop",
                self._host.host_id,
                selector,
                extra=self._log_extra(),
            )
        return True

    async def _pull_artifact(self) -> bool:
        registry = self._binding.registry
        if registry is None:
            return True
        if self._cancelled_before(None):
            return False

        reference = self._request.artifact_reference
        try:
            handle = await registry.pull(reference)
        except RegistryError as e:
            self._state.fail(
                FailureReason.ARTIFACT_PULL_FAILED,
                hook=f"pull {reference}",
                detail=f"{type(e).__name__}: {e}",
            )
            logger.error(
                "%s: pull of %s failed: %s",
                self._host.host_id,
                reference,
                e,
                extra=self._log_extra(),
            )
            return False
        except Exception as e:
            logger.exception(
                "%s: pull of %s raised",
                self._host.host_id,
                reference,
                extra=self._log_extra(),
            )
            self._state.fail(
                FailureReason.ARTIFACT_PULL_FAILED,
                hook=f"pull {reference}",
                detail=f"{type(e).__name__}: {e}",
            )
            return False

        logger.info(
            "%s: pulled %s (%s)",
            self._host.host_id,
            reference,
            handle.digest or "no digest",
            extra=self._log_extra(),
        )
        return True
