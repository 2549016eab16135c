"""
Deployment Policy Value Object

Architectural Intent:
- Declares how a deployment fans out across its target group
- Canary sizing is floor-rounded but never empty
- Fleet-wide rollback is opt-in only
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class PolicyKind(Enum):
    ALL_AT_ONCE = "all-at-once"
    ONE_AT_A_TIME = "one-at-a-time"
    CANARY = "canary"


@dataclass(frozen=True)
class DeploymentPolicy:
    kind: PolicyKind = PolicyKind.ALL_AT_ONCE
    canary_percentage: Optional[int] = None
    max_concurrency: Optional[int] = None
    fleet_rollback: bool = False

    def __post_init__(self) -> None:
        if self.kind is PolicyKind.CANARY:
            if self.canary_percentage is None:
                raise ValueError("Canary policy requires canary_percentage")
            if not (1 <= self.canary_percentage <= 100):
                raise ValueError(
                    f"canary_percentage must be 1-100, got {self.canary_percentage}"
                )
        elif self.canary_percentage is not None:
            raise ValueError("canary_percentage only applies to canary policy")
        if self.max_concurrency is not None and self.max_concurrency < 1:
            raise ValueError(
                f"max_concurrency must be positive, got {self.max_concurrency}"
            )

    def canary_size(self, host_count: int) -> int:
        if self.kind is not PolicyKind.CANARY or host_count == 0:
            return 0
        return max(1, math.floor(host_count * self.canary_percentage / 100))

    @staticmethod
    def parse(text: str, **options) -> "DeploymentPolicy":
        """
        Parses 'all-at-once', 'one-at-a-time', 'canary-<pct>' or
        'canary' (with canary_percentage passed in options).
        """
        value = text.strip().lower()
        if value.startswith("canary-"):
            return DeploymentPolicy(
                PolicyKind.CANARY,
                canary_percentage=int(value[len("canary-"):]),
                **options,
            )
        return DeploymentPolicy(PolicyKind(value), **options)

    def __str__(self) -> str:
        if self.kind is PolicyKind.CANARY:
            return f"canary-{self.canary_percentage}"
        return self.kind.value
