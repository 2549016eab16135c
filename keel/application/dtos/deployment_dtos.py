"""
Deployment DTOs

Architectural Intent:
- Data Transfer Objects for deployment use case boundaries
- Input validation at the application boundary
- Decouples external representation (CLI flags, file paths) from domain model
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class DeployRevisionRequest:
    appspec_path: str
    artifact_reference: str
    targets: list[str]
    policy: str = "all-at-once"
    max_concurrency: Optional[int] = None
    fleet_rollback: bool = False
    buildspec_path: Optional[str] = None
    secret_names: list[str] = field(default_factory=list)
    workload_selector: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.appspec_path:
            raise ValueError("appspec_path cannot be empty")
        if not self.artifact_reference:
            raise ValueError("artifact_reference cannot be empty")
        if not self.targets:
            raise ValueError("targets cannot be empty")
        if self.secret_names and not self.buildspec_path:
            raise ValueError("secret_names require a buildspec_path")


@dataclass(frozen=True)
class PublishRequest:
    buildspec_path: str
    artifact_reference: str
    username_key: str = "username"
    password_key: str = "password"
    url_key: str = ""

    def __post_init__(self) -> None:
        if not self.buildspec_path:
            raise ValueError("buildspec_path cannot be empty")
        if not self.artifact_reference:
            raise ValueError("artifact_reference cannot be empty")
        if not self.username_key or not self.password_key:
            raise ValueError("username_key and password_key cannot be empty")


@dataclass(frozen=True)
class PublishResponse:
    success: bool
    message: str
    registry: str = ""


@dataclass(frozen=True)
class ValidateResponse:
    success: bool
    message: str
    hook_count: int = 0
    secret_count: int = 0
