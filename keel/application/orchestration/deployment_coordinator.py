"""
Deployment Coordinator

Architectural Intent:
- Fans a DeploymentRequest out across its target group, one HostLifecycle per host
- Applies the rollout policy: all-at-once, one-at-a-time, canary
- Collapses per-host terminal states into exactly one DeploymentResult
- Decides rollback: failed hosts only, or the whole fleet when the policy opts in

Concurrency:
- One sequential asyncio task per host; max_concurrency bounds a batch
- The result accumulator is the only shared state and is lock-guarded
- Cancellation is cooperative; undeployed hosts are reported as skipped
"""

from __future__ import annotations
import asyncio
import logging
from typing import Optional, Sequence

from keel.application.lifecycle.cancellation import CancellationToken
from keel.application.lifecycle.host_lifecycle import HostLifecycle
from keel.domain.entities.deployment_request import DeploymentRequest
from keel.domain.entities.deployment_result import DeploymentResult
from keel.domain.entities.host_deployment import FailureReason, HostDeploymentState
from keel.domain.events.deployment_events import (
    DeploymentFinishedEvent,
    DeploymentStartedEvent,
)
from keel.domain.ports.event_bus_port import EventBusPort
from keel.domain.ports.history_port import DeploymentHistoryPort
from keel.domain.ports.host_connector_port import HostConnectorPort
from keel.domain.services.secret_resolver import SecretResolver
from keel.domain.value_objects.deployment_policy import PolicyKind
from keel.domain.value_objects.host import Host
from keel.domain.value_objects.lifecycle_phase import HostPhase

logger = logging.getLogger(__name__)

# Hosts failed for these reasons are left exactly as found for an operator.
_NO_ROLLBACK_REASONS = (FailureReason.AMBIGUOUS_TARGET_STATE,)


class _ResultAccumulator:
    def __init__(self, host_order: Sequence[str]) -> None:
        self._order = {host_id: i for i, host_id in enumerate(host_order)}
        self._lock = asyncio.Lock()
        self._finished: dict[str, HostLifecycle] = {}
        self._skipped: set[str] = set()

    async def finish(self, lifecycle: HostLifecycle) -> None:
        async with self._lock:
            self._finished[lifecycle.host.host_id] = lifecycle

    async def skip(self, host: Host) -> None:
        async with self._lock:
            self._skipped.add(host.host_id)

    def _sorted(self, host_ids) -> list[str]:
        return sorted(host_ids, key=self._order.__getitem__)

    @property
    def lifecycles(self) -> list[HostLifecycle]:
        return [self._finished[h] for h in self._sorted(self._finished)]

    def with_phase(self, phase: HostPhase) -> list[HostLifecycle]:
        return [lc for lc in self.lifecycles if lc.state.current_phase is phase]

    @property
    def any_failed(self) -> bool:
        return bool(self.with_phase(HostPhase.FAILED))

    @property
    def skipped(self) -> tuple[str, ...]:
        return tuple(self._sorted(self._skipped))


class DeploymentCoordinator:
    def __init__(
        self,
        connector: HostConnectorPort,
        secret_resolver: Optional[SecretResolver] = None,
        event_bus: Optional[EventBusPort] = None,
        history: Optional[DeploymentHistoryPort] = None,
    ) -> None:
        self._connector = connector
        self._resolver = secret_resolver
        self._event_bus = event_bus
        self._history = history
        self._token: Optional[CancellationToken] = None

    def cancel(self, reason: str = "cancelled by operator") -> None:
        if self._token is not None:
            self._token.cancel(reason)

    async def deploy(self, request: DeploymentRequest) -> DeploymentResult:
        token = CancellationToken()
        self._token = token
        accumulator = _ResultAccumulator(request.host_ids)
        policy = request.policy
        hosts = request.target_group

        logger.info(
            "Deployment %s of %s to %d host(s) with policy %s",
            request.deployment_id,
            request.artifact_reference,
            len(hosts),
            policy,
            extra={"deployment_id": request.deployment_id},
        )
        await self._publish(
            [
                DeploymentStartedEvent(
                    aggregate_id=request.deployment_id,
                    artifact_reference=request.artifact_reference,
                    host_count=len(hosts),
                    policy=str(policy),
                )
            ]
        )

        halted = False
        if policy.kind is PolicyKind.ALL_AT_ONCE:
            await self._run_batch(request, hosts, accumulator, token)
        elif policy.kind is PolicyKind.ONE_AT_A_TIME:
            for host in hosts:
                if halted or token.cancelled:
                    await accumulator.skip(host)
                    continue
                state = await self._run_host(request, host, accumulator, token)
                halted = state.current_phase is HostPhase.FAILED
        else:
            size = policy.canary_size(len(hosts))
            canary, remainder = hosts[:size], hosts[size:]
            logger.info(
                "Canary batch: %s",
                ", ".join(h.host_id for h in canary),
                extra={"deployment_id": request.deployment_id},
            )
            await self._run_batch(request, canary, accumulator, token)
            if accumulator.any_failed:
                halted = True
                for host in remainder:
                    await accumulator.skip(host)
            else:
                await self._run_batch(request, remainder, accumulator, token)

        if halted:
            logger.warning(
                "Rollout halted after a failure; %d host(s) not deployed",
                len(accumulator.skipped),
                extra={"deployment_id": request.deployment_id},
            )

        fleet_rolled_back = await self._rollback(request, accumulator, token)
        result = DeploymentResult.aggregate(
            deployment_id=request.deployment_id,
            artifact_reference=request.artifact_reference,
            succeeded_hosts=tuple(
                lc.host.host_id for lc in accumulator.with_phase(HostPhase.SUCCEEDED)
            ),
            failed_hosts=tuple(
                lc.state.failure
                for lc in accumulator.with_phase(HostPhase.FAILED)
                if lc.state.failure is not None
            ),
            skipped_hosts=accumulator.skipped,
            rolled_back_hosts=tuple(
                lc.host.host_id for lc in accumulator.lifecycles if lc.state.rolled_back
            ),
            halted=halted,
            fleet_rolled_back=fleet_rolled_back,
        )

        states = [lc.state for lc in accumulator.lifecycles]
        self._record_history(result, states)
        await self._publish(
            [
                DeploymentFinishedEvent(
                    aggregate_id=request.deployment_id,
                    overall_status=result.overall_status.value,
                    succeeded=len(result.succeeded_hosts),
                    failed=len(result.failed_hosts),
                    skipped=len(result.skipped_hosts),
                )
            ]
        )
        logger.info(
            "Deployment %s finished: %s",
            request.deployment_id,
            result.overall_status.value,
            extra={"deployment_id": request.deployment_id},
        )
        self._token = None
        return result

    async def _run_batch(
        self,
        request: DeploymentRequest,
        hosts: Sequence[Host],
        accumulator: _ResultAccumulator,
        token: CancellationToken,
    ) -> None:
        limit = request.policy.max_concurrency or max(len(hosts), 1)
        semaphore = asyncio.Semaphore(limit)

        async def guarded(host: Host) -> None:
            async with semaphore:
                if token.cancelled:
                    await accumulator.skip(host)
                    return
                await self._run_host(request, host, accumulator, token)

        await asyncio.gather(*(guarded(h) for h in hosts))

    async def _run_host(
        self,
        request: DeploymentRequest,
        host: Host,
        accumulator: _ResultAccumulator,
        token: CancellationToken,
    ) -> HostDeploymentState:
        lifecycle = HostLifecycle(
            host,
            request,
            self._connector.bind(host),
            secret_resolver=self._resolver,
            token=token,
        )
        try:
            state = await lifecycle.run()
        finally:
            await accumulator.finish(lifecycle)
            await self._publish(lifecycle.state.drain_events())
        return state

    async def _rollback(
        self,
        request: DeploymentRequest,
        accumulator: _ResultAccumulator,
        token: CancellationToken,
    ) -> bool:
        """
        Rolls back failed hosts, plus succeeded hosts when the policy asks for
        a fleet rollback. Returns True when a fleet rollback fully succeeded.
        """
        if not request.has_rollback or token.cancelled:
            return False

        failed = [
            lc
            for lc in accumulator.with_phase(HostPhase.FAILED)
            if lc.state.failure is not None
            and lc.state.failure.reason not in _NO_ROLLBACK_REASONS
        ]
        targets = list(failed)
        fleet = request.policy.fleet_rollback and (
            accumulator.any_failed or bool(accumulator.skipped)
        )
        if fleet:
            targets.extend(accumulator.with_phase(HostPhase.SUCCEEDED))
        if not targets:
            return False

        logger.warning(
            "Rolling back %d host(s)%s",
            len(targets),
            " (fleet rollback)" if fleet else "",
            extra={"deployment_id": request.deployment_id},
        )

        async def roll(lifecycle: HostLifecycle) -> bool:
            try:
                return await lifecycle.rollback()
            finally:
                await self._publish(lifecycle.state.drain_events())

        outcomes = await asyncio.gather(*(roll(lc) for lc in targets))
        left_alone = len(accumulator.with_phase(HostPhase.FAILED)) - len(failed)
        return fleet and all(outcomes) and left_alone == 0

    def _record_history(
        self, result: DeploymentResult, states: list[HostDeploymentState]
    ) -> None:
        if self._history is None:
            return
        try:
            self._history.append(result, states)
        except Exception as e:
            logger.error(
                "Failed to append deployment %s to history: %s",
                result.deployment_id,
                e,
            )

    async def _publish(self, events) -> None:
        if self._event_bus is None or not events:
            return
        try:
            await self._event_bus.publish(list(events))
        except Exception as e:
            logger.error("Event handler failed: %s", e)
