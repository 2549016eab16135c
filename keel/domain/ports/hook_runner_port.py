"""
Hook Runner Port

Architectural Intent:
- Port interface for executing a single lifecycle hook on one host
- Implementations are stateless and never retry
- Implemented by adapters (local subprocess, Fabric/SSH)
"""

from abc import ABC, abstractmethod
from typing import Mapping
from keel.domain.value_objects.hook_spec import HookSpec
from keel.domain.value_objects.hook_outcome import HookOutcome


class HookRunnerPort(ABC):
    """
    Port interface for running one hook under its time budget.
    """

    @abstractmethod
    async def run(self, hook: HookSpec, env: Mapping[str, str]) -> HookOutcome:
        """
        Runs hook with env injected as environment variables (never argv).
        Enforces hook.timeout_seconds by terminating the process tree.
        Returns the outcome; spawn failures are reported as UNSTARTABLE
        rather than raised.
        """
        pass
