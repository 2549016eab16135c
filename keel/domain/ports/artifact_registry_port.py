"""
Artifact Registry Port

Architectural Intent:
- Port interface for the registry holding versioned container images
- push is used by the build side, pull by ApplicationStart on each host
- Failures are raised as RegistryError subclasses and never retried here
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
from keel.domain.value_objects.credential import RegistryCredential


@dataclass(frozen=True)
class ArtifactHandle:
    reference: str
    digest: Optional[str] = None


class ArtifactRegistryPort(ABC):
    @abstractmethod
    async def push(
        self, artifact_reference: str, credential: RegistryCredential
    ) -> None:
        """
        Pushes artifact_reference. Raises RegistryAuthError or
        RegistryUnreachable.
        """
        pass

    @abstractmethod
    async def pull(self, artifact_reference: str) -> ArtifactHandle:
        """
        Pulls artifact_reference onto the host. Raises ArtifactNotFound,
        RegistryAuthError or RegistryUnreachable.
        """
        pass


def registry_host(artifact_reference: str) -> Optional[str]:
    """Registry host of a reference, or None for Docker Hub shorthand."""
    first = artifact_reference.split("/", 1)[0]
    if "/" in artifact_reference and ("." in first or ":" in first or first == "localhost"):
        return first
    return None
