"""
Host Deployment State Module

Architectural Intent:
- Per-host mutable state, owned by exactly one HostLifecycle instance
- Transitions are forward-only; re-entering or regressing a phase is an error
- Succeeded and Failed are absorbing for forward phases
- The failure record carries the exact phase, hook and raw exit/timeout signal
- Domain events are collected here and drained by the coordinator

Domain Events:
- HookCompletedEvent: Recorded after every hook outcome
- HostSucceededEvent: Recorded when the host reaches Succeeded
- HostFailedEvent: Recorded when the host reaches Failed
- HostRolledBackEvent: Recorded when rollback hooks finish
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from typing import Optional

from keel.domain.errors import InvalidTransitionError
from keel.domain.events.event_base import DomainEvent
from keel.domain.events.deployment_events import (
    HookCompletedEvent,
    HostFailedEvent,
    HostRolledBackEvent,
    HostSucceededEvent,
)
from keel.domain.value_objects.hook_outcome import HookOutcome, HookStatus
from keel.domain.value_objects.hook_spec import HookSpec
from keel.domain.value_objects.lifecycle_phase import HostPhase, LifecyclePhase


class TransitionOutcome(Enum):
    ENTERED = "entered"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class FailureReason(Enum):
    HOOK_FAILED = "HookFailed"
    HOOK_TIMED_OUT = "HookTimedOut"
    HOOK_UNSTARTABLE = "HookUnstartable"
    SECRET_UNAVAILABLE = "SecretUnavailable"
    AMBIGUOUS_TARGET_STATE = "AmbiguousTargetState"
    ARTIFACT_PULL_FAILED = "ArtifactPullFailed"
    CANCELLED = "Cancelled"

    @classmethod
    def from_hook_status(cls, status: HookStatus) -> "FailureReason":
        return {
            HookStatus.FAILED: cls.HOOK_FAILED,
            HookStatus.TIMED_OUT: cls.HOOK_TIMED_OUT,
            HookStatus.UNSTARTABLE: cls.HOOK_UNSTARTABLE,
        }[status]


@dataclass(frozen=True)
class PhaseTransition:
    phase: str
    outcome: TransitionOutcome
    hook: Optional[str] = None
    detail: str = ""
    at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    def to_dict(self) -> dict:
        return {
            "phase": self.phase,
            "outcome": self.outcome.value,
            "hook": self.hook,
            "detail": self.detail,
            "at": self.at,
        }


@dataclass(frozen=True)
class HostFailure:
    host_id: str
    phase: str
    reason: FailureReason
    hook: Optional[str] = None
    exit_code: Optional[int] = None
    detail: str = ""

    def to_dict(self) -> dict:
        return {
            "host_id": self.host_id,
            "phase": self.phase,
            "hook": self.hook,
            "reason": self.reason.value,
            "exit_code": self.exit_code,
            "detail": self.detail,
        }


class HostDeploymentState:
    """
    Single-owner record of one host's walk through the lifecycle.
    """

    def __init__(self, host_id: str, deployment_id: str = "") -> None:
        self._host_id = host_id
        self._deployment_id = deployment_id
        self._current_phase = HostPhase.IDLE
        self._history: list[PhaseTransition] = []
        self._failure: Optional[HostFailure] = None
        self._rolled_back: Optional[bool] = None
        self._hooks_run = 0
        self._domain_events: list[DomainEvent] = []

    @property
    def host_id(self) -> str:
        return self._host_id

    @property
    def current_phase(self) -> HostPhase:
        return self._current_phase

    @property
    def history(self) -> tuple[PhaseTransition, ...]:
        return tuple(self._history)

    @property
    def failure(self) -> Optional[HostFailure]:
        return self._failure

    @property
    def rolled_back(self) -> Optional[bool]:
        return self._rolled_back

    @property
    def hooks_run(self) -> int:
        return self._hooks_run

    @property
    def is_terminal(self) -> bool:
        return self._current_phase.is_terminal

    def enter(self, phase: LifecyclePhase) -> None:
        target = HostPhase.from_lifecycle(phase)
        if self.is_terminal:
            raise InvalidTransitionError(
                f"{self._host_id}: cannot enter {phase} from {self._current_phase}"
            )
        if target.rank <= self._current_phase.rank:
            raise InvalidTransitionError(
                f"{self._host_id}: {phase} does not follow {self._current_phase}"
            )
        self._current_phase = target
        self._record(phase.value, TransitionOutcome.ENTERED)

    def record_hook(self, hook: HookSpec, outcome: HookOutcome) -> None:
        self._hooks_run += 1
        self._record(
            hook.phase.value,
            TransitionOutcome.SUCCEEDED if outcome.succeeded else TransitionOutcome.FAILED,
            hook=hook.command,
            detail=f"{outcome.status.value} exit={outcome.exit_code} "
            f"duration_ms={outcome.duration_ms}",
        )
        self._domain_events.append(
            HookCompletedEvent(
                aggregate_id=self._deployment_id,
                host_id=self._host_id,
                phase=hook.phase.value,
                command=hook.command,
                status=outcome.status.value,
                exit_code=outcome.exit_code,
                duration_ms=outcome.duration_ms,
            )
        )

    def complete_phase(self, phase: LifecyclePhase) -> None:
        if self._current_phase is not HostPhase.from_lifecycle(phase):
            raise InvalidTransitionError(
                f"{self._host_id}: {phase} is not the current phase"
            )
        self._record(phase.value, TransitionOutcome.SUCCEEDED)

    def succeed(self) -> None:
        if self._current_phase is not HostPhase.VALIDATE_SERVICE:
            raise InvalidTransitionError(
                f"{self._host_id}: cannot succeed from {self._current_phase}"
            )
        self._current_phase = HostPhase.SUCCEEDED
        self._record(HostPhase.SUCCEEDED.value, TransitionOutcome.ENTERED)
        self._domain_events.append(
            HostSucceededEvent(aggregate_id=self._deployment_id, host_id=self._host_id)
        )

    def fail(
        self,
        reason: FailureReason,
        hook: Optional[str] = None,
        exit_code: Optional[int] = None,
        detail: str = "",
    ) -> HostFailure:
        if self.is_terminal:
            raise InvalidTransitionError(
                f"{self._host_id}: cannot fail from {self._current_phase}"
            )
        failure = HostFailure(
            host_id=self._host_id,
            phase=self._current_phase.value,
            reason=reason,
            hook=hook,
            exit_code=exit_code,
            detail=detail,
        )
        self._failure = failure
        self._current_phase = HostPhase.FAILED
        self._record(
            HostPhase.FAILED.value, TransitionOutcome.ENTERED, hook=hook, detail=reason.value
        )
        self._domain_events.append(
            HostFailedEvent(
                aggregate_id=self._deployment_id,
                host_id=self._host_id,
                phase=failure.phase,
                reason=reason.value,
                exit_code=exit_code,
            )
        )
        return failure

    def enter_rollback(self) -> None:
        if not self.is_terminal:
            raise InvalidTransitionError(
                f"{self._host_id}: rollback requires a terminal host"
            )
        if self._rolled_back is not None:
            raise InvalidTransitionError(f"{self._host_id}: already rolled back")
        self._record(LifecyclePhase.ROLLBACK.value, TransitionOutcome.ENTERED)

    def finish_rollback(self, success: bool) -> None:
        self._rolled_back = success
        self._record(
            LifecyclePhase.ROLLBACK.value,
            TransitionOutcome.SUCCEEDED if success else TransitionOutcome.FAILED,
        )
        self._domain_events.append(
            HostRolledBackEvent(
                aggregate_id=self._deployment_id,
                host_id=self._host_id,
                success=success,
            )
        )

    def drain_events(self) -> list[DomainEvent]:
        events, self._domain_events = self._domain_events, []
        return events

    def _record(
        self,
        phase: str,
        outcome: TransitionOutcome,
        hook: Optional[str] = None,
        detail: str = "",
    ) -> None:
        self._history.append(PhaseTransition(phase, outcome, hook, detail))

    def __repr__(self) -> str:
        return (
            f"HostDeploymentState(host_id={self._host_id}, "
            f"current_phase={self._current_phase}, transitions={len(self._history)})"
        )
