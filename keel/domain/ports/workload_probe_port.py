"""
Workload Probe Port

Architectural Intent:
- Port interface for listing running workloads (containers) on a host
- Lets the state machine refuse to stop an ambiguous target
"""

from abc import ABC, abstractmethod


class WorkloadProbePort(ABC):
    @abstractmethod
    async def running_workloads(self, selector: str) -> list[str]:
        """
        Returns ids of running workloads matching selector.
        An empty list means nothing is running.
        """
        pass
