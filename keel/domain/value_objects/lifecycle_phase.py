"""
Lifecycle Phase Value Objects

Architectural Intent:
- Names the deployment phases a lifecycle hook can be bound to
- Defines the single forward order every host walks through
- HostPhase adds the Idle/Succeeded/Failed bookends tracked per host
"""

from enum import Enum


class LifecyclePhase(Enum):
    BEFORE_INSTALL = "BeforeInstall"
    APPLICATION_STOP = "ApplicationStop"
    AFTER_INSTALL = "AfterInstall"
    APPLICATION_START = "ApplicationStart"
    VALIDATE_SERVICE = "ValidateService"
    ROLLBACK = "Rollback"

    @classmethod
    def parse(cls, name: str) -> "LifecyclePhase":
        for phase in cls:
            if phase.value == name:
                return phase
        raise ValueError(f"Unknown lifecycle phase: {name!r}")

    @property
    def is_forward(self) -> bool:
        return self is not LifecyclePhase.ROLLBACK

    def __str__(self) -> str:
        return self.value


FORWARD_PHASES: tuple[LifecyclePhase, ...] = (
    LifecyclePhase.BEFORE_INSTALL,
    LifecyclePhase.APPLICATION_STOP,
    LifecyclePhase.AFTER_INSTALL,
    LifecyclePhase.APPLICATION_START,
    LifecyclePhase.VALIDATE_SERVICE,
)


class HostPhase(Enum):
    IDLE = "Idle"
    BEFORE_INSTALL = "BeforeInstall"
    APPLICATION_STOP = "ApplicationStop"
    AFTER_INSTALL = "AfterInstall"
    APPLICATION_START = "ApplicationStart"
    VALIDATE_SERVICE = "ValidateService"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"

    @classmethod
    def from_lifecycle(cls, phase: LifecyclePhase) -> "HostPhase":
        if not phase.is_forward:
            raise ValueError(f"{phase} is not a forward lifecycle phase")
        return cls(phase.value)

    @property
    def is_terminal(self) -> bool:
        return self in (HostPhase.SUCCEEDED, HostPhase.FAILED)

    @property
    def rank(self) -> int:
        """Position in the forward order; terminal states rank last."""
        return _HOST_PHASE_ORDER.index(self) if self in _HOST_PHASE_ORDER else len(
            _HOST_PHASE_ORDER
        )

    def __str__(self) -> str:
        return self.value


_HOST_PHASE_ORDER: tuple[HostPhase, ...] = (
    HostPhase.IDLE,
    HostPhase.BEFORE_INSTALL,
    HostPhase.APPLICATION_STOP,
    HostPhase.AFTER_INSTALL,
    HostPhase.APPLICATION_START,
    HostPhase.VALIDATE_SERVICE,
)
