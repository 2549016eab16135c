"""
Host Value Object

Architectural Intent:
- Immutable value object naming one target host in a deployment group
- host_id is the stable identifier used in results and history
- Carries the SSH coordinates needed by remote hook runners
- Supports IPv6 bracket notation in parse() (e.g., deploy@[::1]:2222)
"""

import re
from dataclasses import dataclass
from typing import Optional

_HOSTNAME_RE = re.compile(
    r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)(\.[A-Za-z0-9-]{1,63})*$"
)
_IPV4_RE = re.compile(r"^(\d{1,3})\.(\d{1,3})\.(\d{1,3})\.(\d{1,3})$")
_IPV6_RE = re.compile(r"^[0-9a-fA-F:]+$")


def _is_valid_address(address: str) -> bool:
    m = _IPV4_RE.match(address)
    if m:
        return all(0 <= int(g) <= 255 for g in m.groups())
    if ":" in address and _IPV6_RE.match(address):
        return True
    return bool(_HOSTNAME_RE.match(address)) and len(address) <= 253


@dataclass(frozen=True)
class Host:
    """
    Value Object representing a deployment target.
    """
    address: str
    user: Optional[str] = None
    port: int = 22

    def __post_init__(self) -> None:
        if not _is_valid_address(self.address):
            raise ValueError(f"Invalid host address: {self.address!r}")
        if not (1 <= self.port <= 65535):
            raise ValueError(f"Port must be 1-65535, got {self.port}")
        if self.user is not None and not self.user:
            raise ValueError("Host user cannot be empty")

    @property
    def host_id(self) -> str:
        return self.address

    def __str__(self) -> str:
        return self.address

    @staticmethod
    def parse(target: str) -> "Host":
        """
        Parses 'address', 'user@address', 'user@address:port' or
        'user@[v6addr]:port' into a Host.
        """
        user: Optional[str] = None
        port = 22
        address = target.strip()

        if "@" in address:
            user, address = address.split("@", 1)

        if address.startswith("["):
            end = address.find("]")
            if end == -1:
                raise ValueError(f"Unterminated IPv6 bracket in: {target}")
            remainder = address[end + 1:]
            address = address[1:end]
            if remainder.startswith(":"):
                port = int(remainder[1:])
        elif address.count(":") == 1:
            address, _, port_text = address.partition(":")
            port = int(port_text)

        return Host(address=address, user=user, port=port)

    @staticmethod
    def parse_group(targets: str) -> tuple["Host", ...]:
        """Parses a comma-separated target list, dropping blanks."""
        return tuple(Host.parse(t) for t in targets.split(",") if t.strip())
