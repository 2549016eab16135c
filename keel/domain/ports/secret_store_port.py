"""
Secret Store Port

Architectural Intent:
- Port interface for the external key-value secret store
- Names are hierarchical paths (e.g. /app/registry/username)
- Implemented by adapters (SSM Parameter Store, environment, etc.)
"""

from abc import ABC, abstractmethod


class SecretStorePort(ABC):
    """
    Port interface for reading sensitive values by path.
    """

    @abstractmethod
    async def get(self, path: str) -> str:
        """
        Returns the decrypted value stored at path.
        Raises SecretNotFoundError when the path does not exist and
        SecretStoreUnreachable when the store cannot be reached after the
        adapter's own retry policy.
        """
        pass
