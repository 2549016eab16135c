"""
Deployment Coordinator Tests

Architectural Intent:
- Exercises rollout policies, result aggregation, rollback decisions,
  cancellation, history recording and event publication
- Every host gets its own scripted FakeRunner via FakeConnector
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock

from conftest import FakeConnector, FakeRegistry, FakeRunner
from keel.application.orchestration.deployment_coordinator import DeploymentCoordinator
from keel.domain.entities.deployment_result import OverallStatus
from keel.domain.entities.host_deployment import FailureReason
from keel.domain.events.deployment_events import (
    DeploymentFinishedEvent,
    DeploymentStartedEvent,
    HookCompletedEvent,
    HostFailedEvent,
    HostRolledBackEvent,
    HostSucceededEvent,
)
from keel.domain.events.event_base import DomainEvent
from keel.domain.value_objects.deployment_policy import DeploymentPolicy, PolicyKind
from keel.domain.value_objects.lifecycle_phase import LifecyclePhase
from keel.infrastructure.event_bus import EventBus

HOSTS = ("web1", "web2", "web3")

WITH_ROLLBACK = {
    LifecyclePhase.AFTER_INSTALL: ["install.sh"],
    LifecyclePhase.APPLICATION_START: ["start.sh"],
    LifecyclePhase.ROLLBACK: ["rollback.sh"],
}


class TestAllAtOnce:
    @pytest.mark.asyncio
    async def test_all_hosts_succeed(self, make_request, connector, forward_commands):
        coordinator = DeploymentCoordinator(connector)
        result = await coordinator.deploy(make_request(hosts=HOSTS))
        assert result.overall_status is OverallStatus.SUCCEEDED
        assert result.succeeded_hosts == HOSTS
        assert result.failed_hosts == ()
        for host in HOSTS:
            assert connector.runners[host].commands == forward_commands

    @pytest.mark.asyncio
    async def test_one_failure_is_partial(self, make_request, connector):
        connector.runner_for("web2").fail("scripts/start.sh", exit_code=2)
        result = await DeploymentCoordinator(connector).deploy(make_request(hosts=HOSTS))
        assert result.overall_status is OverallStatus.PARTIALLY_FAILED
        assert result.succeeded_hosts == ("web1", "web3")
        failure = result.failure_for("web2")
        assert failure.phase == "ApplicationStart"
        assert failure.hook == "scripts/start.sh"
        assert failure.exit_code == 2

    @pytest.mark.asyncio
    async def test_every_host_fails(self, make_request, connector):
        for host in HOSTS:
            connector.runner_for(host).fail("scripts/validate.sh")
        result = await DeploymentCoordinator(connector).deploy(make_request(hosts=HOSTS))
        assert result.overall_status is OverallStatus.FAILED
        assert len(result.failed_hosts) == 3

    @pytest.mark.asyncio
    async def test_max_concurrency_bounds_parallel_hosts(self, make_request):
        running = 0
        peak = 0

        class CountingRunner(FakeRunner):
            async def run(self, hook, env):
                nonlocal running, peak
                running += 1
                peak = max(peak, running)
                await asyncio.sleep(0.01)
                running -= 1
                return await super().run(hook, env)

        connector = FakeConnector()
        for host in ("web1", "web2", "web3", "web4"):
            connector.runners[host] = CountingRunner()
        request = make_request(
            hosts=("web1", "web2", "web3", "web4"),
            policy=DeploymentPolicy(max_concurrency=2),
        )
        result = await DeploymentCoordinator(connector).deploy(request)
        assert result.succeeded
        assert peak == 2

    @pytest.mark.asyncio
    async def test_workload_check_error_fails_hosts(self, make_request):
        probe = AsyncMock()
        probe.running_workloads.side_effect = ConnectionResetError("reset by peer")
        connector = FakeConnector(probe=probe)
        request = make_request(hosts=HOSTS, workload_selector="label=app=web")
        result = await DeploymentCoordinator(connector).deploy(request)
        assert result.overall_status is OverallStatus.FAILED
        for host in HOSTS:
            failure = result.failure_for(host)
            assert failure.reason is FailureReason.HOOK_UNSTARTABLE
            assert failure.phase == "ApplicationStop"
            assert "ConnectionResetError" in failure.detail
            assert "scripts/stop.sh" not in connector.runners[host].commands

    @pytest.mark.asyncio
    async def test_unexpected_pull_error_fails_host(self, make_request):
        connector = FakeConnector(
            registries={"web2": FakeRegistry(error=RuntimeError("socket closed"))}
        )
        result = await DeploymentCoordinator(connector).deploy(make_request(hosts=HOSTS))
        assert result.overall_status is OverallStatus.PARTIALLY_FAILED
        assert result.succeeded_hosts == ("web1", "web3")
        failure = result.failure_for("web2")
        assert failure.reason is FailureReason.ARTIFACT_PULL_FAILED
        assert failure.phase == "ApplicationStart"
        assert "scripts/start.sh" not in connector.runners["web2"].commands


class TestOneAtATime:
    @pytest.mark.asyncio
    async def test_hosts_run_strictly_in_order(self, make_request):
        log = []

        class LoggingRunner(FakeRunner):
            def __init__(self, host_id):
                super().__init__()
                self.host_id = host_id

            async def run(self, hook, env):
                log.append(self.host_id)
                await asyncio.sleep(0)
                return await super().run(hook, env)

        connector = FakeConnector()
        for host in HOSTS:
            connector.runners[host] = LoggingRunner(host)
        request = make_request(hosts=HOSTS, policy=DeploymentPolicy(PolicyKind.ONE_AT_A_TIME))
        result = await DeploymentCoordinator(connector).deploy(request)
        assert result.succeeded
        assert log == ["web1"] * 5 + ["web2"] * 5 + ["web3"] * 5

    @pytest.mark.asyncio
    async def test_first_failure_halts_remaining_hosts(self, make_request, connector):
        connector.runner_for("web1").fail("scripts/after_install.sh", exit_code=1)
        request = make_request(hosts=HOSTS, policy=DeploymentPolicy(PolicyKind.ONE_AT_A_TIME))
        result = await DeploymentCoordinator(connector).deploy(request)
        assert result.overall_status is OverallStatus.FAILED
        assert result.skipped_hosts == ("web2", "web3")
        assert connector.bound == ["web1"]
        failure = result.failure_for("web1")
        assert failure.phase == "AfterInstall"
        assert failure.exit_code == 1

    @pytest.mark.asyncio
    async def test_halt_after_a_success_is_still_failed(self, make_request, connector):
        connector.runner_for("web2").fail("scripts/stop.sh")
        request = make_request(hosts=HOSTS, policy=DeploymentPolicy(PolicyKind.ONE_AT_A_TIME))
        result = await DeploymentCoordinator(connector).deploy(request)
        assert result.overall_status is OverallStatus.FAILED
        assert result.succeeded_hosts == ("web1",)
        assert result.skipped_hosts == ("web3",)


class TestCanary:
    HOSTS = tuple(f"web{i}" for i in range(1, 11))

    @pytest.mark.asyncio
    async def test_canary_then_remainder(self, make_request, connector):
        request = make_request(
            hosts=self.HOSTS,
            policy=DeploymentPolicy(PolicyKind.CANARY, canary_percentage=20),
        )
        result = await DeploymentCoordinator(connector).deploy(request)
        assert result.succeeded
        assert connector.bound[:2] == ["web1", "web2"]
        assert len(connector.bound) == 10

    @pytest.mark.asyncio
    async def test_canary_failure_halts_rollout(self, make_request, connector):
        connector.runner_for("web2").fail("scripts/validate.sh")
        request = make_request(
            hosts=self.HOSTS,
            policy=DeploymentPolicy(PolicyKind.CANARY, canary_percentage=20),
        )
        result = await DeploymentCoordinator(connector).deploy(request)
        assert result.overall_status is OverallStatus.FAILED
        assert sorted(connector.bound) == ["web1", "web2"]
        assert result.succeeded_hosts == ("web1",)
        assert result.skipped_hosts == self.HOSTS[2:]


class TestRollback:
    @pytest.mark.asyncio
    async def test_only_failed_hosts_roll_back_by_default(self, make_request, connector):
        connector.runner_for("web2").fail("install.sh")
        request = make_request(hosts=HOSTS, hooks=WITH_ROLLBACK)
        result = await DeploymentCoordinator(connector).deploy(request)
        assert result.overall_status is OverallStatus.PARTIALLY_FAILED
        assert result.rolled_back_hosts == ("web2",)
        assert "rollback.sh" in connector.runners["web2"].commands
        assert "rollback.sh" not in connector.runners["web1"].commands

    @pytest.mark.asyncio
    async def test_fleet_rollback(self, make_request, connector):
        connector.runner_for("web2").fail("install.sh")
        request = make_request(
            hosts=HOSTS,
            hooks=WITH_ROLLBACK,
            policy=DeploymentPolicy(fleet_rollback=True),
        )
        result = await DeploymentCoordinator(connector).deploy(request)
        assert result.overall_status is OverallStatus.ROLLED_BACK
        assert result.rolled_back_hosts == HOSTS
        assert result.failure_for("web2").phase == "AfterInstall"

    @pytest.mark.asyncio
    async def test_fleet_rollback_not_triggered_by_success(self, make_request, connector):
        request = make_request(
            hosts=HOSTS,
            hooks=WITH_ROLLBACK,
            policy=DeploymentPolicy(fleet_rollback=True),
        )
        result = await DeploymentCoordinator(connector).deploy(request)
        assert result.overall_status is OverallStatus.SUCCEEDED
        assert result.rolled_back_hosts == ()

    @pytest.mark.asyncio
    async def test_failed_rollback_is_not_rolled_back(self, make_request, connector):
        connector.runner_for("web2").fail("install.sh").fail("rollback.sh")
        request = make_request(
            hosts=HOSTS,
            hooks=WITH_ROLLBACK,
            policy=DeploymentPolicy(fleet_rollback=True),
        )
        result = await DeploymentCoordinator(connector).deploy(request)
        assert result.overall_status is OverallStatus.PARTIALLY_FAILED
        assert "web2" not in result.rolled_back_hosts

    @pytest.mark.asyncio
    async def test_ambiguous_host_left_alone(self, make_request):
        probe = AsyncMock()
        probe.running_workloads.return_value = ["c1", "c2"]
        connector = FakeConnector(probe=probe)
        request = make_request(hosts=("web1",), hooks=WITH_ROLLBACK, workload_selector="*")
        result = await DeploymentCoordinator(connector).deploy(request)
        failure = result.failure_for("web1")
        assert failure.reason is FailureReason.AMBIGUOUS_TARGET_STATE
        assert result.rolled_back_hosts == ()
        assert connector.runners["web1"].calls == []


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_skips_undeployed_hosts(self, make_request):
        connector = FakeConnector()
        coordinator = DeploymentCoordinator(connector)

        class CancellingRunner(FakeRunner):
            async def run(self, hook, env):
                coordinator.cancel("operator abort")
                return await super().run(hook, env)

        connector.runners["web1"] = CancellingRunner()
        request = make_request(
            hosts=HOSTS,
            hooks=WITH_ROLLBACK,
            policy=DeploymentPolicy(PolicyKind.ONE_AT_A_TIME),
        )
        result = await coordinator.deploy(request)
        assert result.overall_status is OverallStatus.FAILED
        assert result.failure_for("web1").reason is FailureReason.CANCELLED
        assert result.skipped_hosts == ("web2", "web3")
        assert connector.runners["web1"].commands == ["install.sh"]
        assert result.rolled_back_hosts == ()

    def test_cancel_without_deployment_is_noop(self, connector):
        DeploymentCoordinator(connector).cancel()


class TestHistoryAndEvents:
    @pytest.mark.asyncio
    async def test_history_appended_once(self, make_request, connector):
        history = MagicMock()
        coordinator = DeploymentCoordinator(connector, history=history)
        result = await coordinator.deploy(make_request(hosts=HOSTS))
        history.append.assert_called_once()
        recorded_result, states = history.append.call_args.args
        assert recorded_result is result
        assert [s.host_id for s in states] == list(HOSTS)

    @pytest.mark.asyncio
    async def test_history_failure_does_not_fail_deployment(self, make_request, connector):
        history = MagicMock()
        history.append.side_effect = OSError("disk full")
        result = await DeploymentCoordinator(connector, history=history).deploy(
            make_request()
        )
        assert result.succeeded

    @pytest.mark.asyncio
    async def test_events_published(self, make_request, connector):
        bus = EventBus()
        received: list[DomainEvent] = []

        async def collect(event):
            received.append(event)

        bus.subscribe(DomainEvent, collect)
        connector.runner_for("web2").fail("install.sh")
        request = make_request(hosts=("web1", "web2"), hooks=WITH_ROLLBACK)
        await DeploymentCoordinator(connector, event_bus=bus).deploy(request)

        assert isinstance(received[0], DeploymentStartedEvent)
        assert received[0].host_count == 2
        assert isinstance(received[-1], DeploymentFinishedEvent)
        assert received[-1].overall_status == "PartiallyFailed"
        types = [type(e) for e in received]
        assert types.count(HostSucceededEvent) == 1
        assert types.count(HostFailedEvent) == 1
        assert types.count(HostRolledBackEvent) == 1
        assert types.count(HookCompletedEvent) == 4
        assert all(e.aggregate_id == request.deployment_id for e in received)

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_break_deployment(self, make_request, connector):
        bus = EventBus()
        bus.subscribe(DomainEvent, AsyncMock(side_effect=RuntimeError("boom")))
        result = await DeploymentCoordinator(connector, event_bus=bus).deploy(make_request())
        assert result.succeeded
