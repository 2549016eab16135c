"""
Deployment Request Module

Architectural Intent:
- Immutable request created once by the caller (pipeline trigger, CLI)
- Names the artifact, the host group, the hooks per phase and the rollout policy
- Validation happens here so the coordinator can trust its input
"""

from __future__ import annotations
import uuid
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

from keel.domain.value_objects.deployment_policy import DeploymentPolicy
from keel.domain.value_objects.hook_spec import HookSpec
from keel.domain.value_objects.host import Host
from keel.domain.value_objects.lifecycle_phase import LifecyclePhase


def _new_deployment_id() -> str:
    return f"d-{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class DeploymentRequest:
    artifact_reference: str
    target_group: tuple[Host, ...]
    hooks: Mapping[LifecyclePhase, tuple[HookSpec, ...]] = field(
        default_factory=dict
    )
    policy: DeploymentPolicy = field(default_factory=DeploymentPolicy)
    secret_names: frozenset[str] = frozenset()
    workload_selector: Optional[str] = None
    deployment_id: str = field(default_factory=_new_deployment_id)

    def __post_init__(self) -> None:
        if not self.artifact_reference or not self.artifact_reference.strip():
            raise ValueError("artifact_reference cannot be empty")

        unique: dict[str, Host] = {}
        for host in self.target_group:
            unique.setdefault(host.host_id, host)
        if not unique:
            raise ValueError("target_group cannot be empty")
        object.__setattr__(self, "target_group", tuple(unique.values()))

        hooks: dict[LifecyclePhase, tuple[HookSpec, ...]] = {}
        for phase, specs in self.hooks.items():
            specs = tuple(specs)
            for spec in specs:
                if spec.phase is not phase:
                    raise ValueError(
                        f"Hook {spec.command!r} declares phase {spec.phase} "
                        f"but is filed under {phase}"
                    )
            hooks[phase] = specs
        object.__setattr__(self, "hooks", MappingProxyType(hooks))
        object.__setattr__(self, "secret_names", frozenset(self.secret_names))

        if self.workload_selector is not None and not self.workload_selector.strip():
            object.__setattr__(self, "workload_selector", None)

    def hooks_for(self, phase: LifecyclePhase) -> tuple[HookSpec, ...]:
        return self.hooks.get(phase, ())

    @property
    def has_rollback(self) -> bool:
        return bool(self.hooks_for(LifecyclePhase.ROLLBACK))

    @property
    def host_ids(self) -> tuple[str, ...]:
        return tuple(h.host_id for h in self.target_group)
