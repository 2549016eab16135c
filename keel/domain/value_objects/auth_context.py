"""
Auth Context Value Object

Architectural Intent:
- Opaque authorization context handed to adapters (secret store, hook runner)
- The engine never inspects it; adapters read only the settings they know
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional


@dataclass(frozen=True)
class AuthContext:
    name: str = "default"
    settings: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "settings", MappingProxyType(dict(self.settings)))

    def get(self, key: str) -> Optional[str]:
        return self.settings.get(key) or None
