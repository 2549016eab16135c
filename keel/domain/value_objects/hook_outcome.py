"""
Hook Outcome Value Object

Architectural Intent:
- Result of running exactly one hook, once
- TIMED_OUT and UNSTARTABLE are distinct from a non-zero exit
- raise_for_status() lets callers outside the state machine use exceptions
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from keel.domain.errors import HookFailed, HookTimedOut, HookUnstartable


class HookStatus(Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    UNSTARTABLE = "unstartable"


@dataclass(frozen=True)
class HookOutcome:
    status: HookStatus
    exit_code: Optional[int] = None
    duration_ms: int = 0
    truncated_output: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status is HookStatus.SUCCEEDED

    @classmethod
    def from_exit_code(
        cls, exit_code: int, duration_ms: int, output: str = ""
    ) -> "HookOutcome":
        status = HookStatus.SUCCEEDED if exit_code == 0 else HookStatus.FAILED
        return cls(status, exit_code, duration_ms, output)

    def with_output(self, output: str) -> "HookOutcome":
        return HookOutcome(self.status, self.exit_code, self.duration_ms, output)

    def raise_for_status(self, command: str = "") -> None:
        if self.status is HookStatus.FAILED:
            raise HookFailed(command, self.exit_code, self.truncated_output)
        if self.status is HookStatus.TIMED_OUT:
            raise HookTimedOut(command, self.truncated_output)
        if self.status is HookStatus.UNSTARTABLE:
            raise HookUnstartable(command, self.truncated_output)


TRUNCATION_MARKER = "...[truncated]\n"


def truncate_output(output: str, limit: int) -> str:
    """Keep the tail of the output, where failures are usually reported."""
    if limit <= 0:
        return ""
    if len(output) <= limit:
        return output
    return TRUNCATION_MARKER + output[-limit:]
