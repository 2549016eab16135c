"""
Environment Secret Store

Architectural Intent:
- SecretStorePort adapter backed by an environment mapping
- Hierarchical paths map to variable names: /app/registry/username -> APP_REGISTRY_USERNAME
- Intended for local runs and CI jobs that already export their secrets
"""

import os
import re
from typing import Mapping, Optional

from keel.domain.errors import SecretNotFoundError
from keel.domain.ports.secret_store_port import SecretStorePort

_NON_WORD_RE = re.compile(r"[^A-Za-z0-9]+")


def path_to_variable(path: str) -> str:
    return _NON_WORD_RE.sub("_", path).strip("_").upper()


class EnvironmentSecretStore(SecretStorePort):
    def __init__(self, environ: Optional[Mapping[str, str]] = None) -> None:
        self._environ = os.environ if environ is None else environ

    async def get(self, path: str) -> str:
        value = self._environ.get(path_to_variable(path))
        if value is None:
            raise SecretNotFoundError(path)
        return value
