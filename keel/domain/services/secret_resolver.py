"""
Secret Resolver

Architectural Intent:
- Resolves logical credential names to values at hook-execution time
- Logical names map to store paths via the build descriptor's parameter-store table
- Every call reads the store fresh so rotated secrets are picked up
- Values are never cached, persisted or logged
"""

import logging
from typing import Iterable, Mapping

from keel.domain.errors import (
    SecretNotFoundError,
    SecretStoreUnreachable,
    SecretUnavailable,
)
from keel.domain.ports.secret_store_port import SecretStorePort
from keel.domain.value_objects.credential import Credential

logger = logging.getLogger(__name__)


class SecretResolver:
    def __init__(
        self, store: SecretStorePort, parameters: Mapping[str, str]
    ) -> None:
        self._store = store
        self._parameters = dict(parameters)

    @property
    def names(self) -> frozenset[str]:
        return frozenset(self._parameters)

    async def resolve(self, names: Iterable[str]) -> dict[str, Credential]:
        resolved: dict[str, Credential] = {}
        for name in sorted(set(names)):
            path = self._parameters.get(name)
            if path is None:
                raise SecretUnavailable(name, "no parameter-store mapping")
            try:
                value = await self._store.get(path)
            except SecretNotFoundError:
                raise SecretUnavailable(name, f"not found at {path}")
            except SecretStoreUnreachable as e:
                raise SecretUnavailable(name, f"store unreachable: {e}") from e
            resolved[name] = Credential(name=name, value=value)
        logger.debug("Resolved %d secret(s): %s", len(resolved), ", ".join(resolved))
        return resolved
