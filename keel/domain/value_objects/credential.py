"""
Credential Value Objects

Architectural Intent:
- Resolved secret values, scoped to a single hook execution
- repr/str never expose the value so accidental logging stays safe
- RegistryCredential assembles the username/password/url triple used for pushes
"""

from dataclasses import dataclass, field
from typing import Mapping

_MASK = "****"


@dataclass(frozen=True)
class Credential:
    name: str
    value: str = field(repr=False)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Credential name cannot be empty")

    def __str__(self) -> str:
        return f"{self.name}={_MASK}"


@dataclass(frozen=True)
class RegistryCredential:
    username: str
    password: str = field(repr=False)
    url: str = ""

    def __str__(self) -> str:
        return f"{self.username}:{_MASK}@{self.url or 'default'}"

    @classmethod
    def from_resolved(
        cls,
        resolved: Mapping[str, Credential],
        username_key: str,
        password_key: str,
        url_key: str = "",
    ) -> "RegistryCredential":
        """Build the triple from credentials returned by SecretResolver.resolve()."""
        url = resolved[url_key].value if url_key and url_key in resolved else ""
        return cls(
            username=resolved[username_key].value,
            password=resolved[password_key].value,
            url=url,
        )
