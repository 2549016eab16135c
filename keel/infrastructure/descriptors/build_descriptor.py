"""
Build Descriptor (buildspec.yml)

Architectural Intent:
- Reads the build-side document: env.parameter-store plus ordered phase commands
- The parameter-store table (logical name -> secret store path) is exactly
  what SecretResolver consumes
- Build steps themselves are run by the external build provider, not here
"""

from __future__ import annotations
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from keel.domain.errors import DescriptorError

BUILD_PHASES = ("install", "pre_build", "build", "post_build")


@dataclass(frozen=True)
class BuildDescriptor:
    version: Any = 0.2
    parameter_store: Mapping[str, str] = field(default_factory=dict)
    variables: Mapping[str, str] = field(default_factory=dict)
    phases: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    extras: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name in ("parameter_store", "variables", "phases", "extras"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))

    def commands(self, phase: str) -> tuple[str, ...]:
        if phase not in BUILD_PHASES:
            raise DescriptorError(f"Unknown build phase: {phase!r}")
        return self.phases.get(phase, ())


def _string_table(value: Any, where: str) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise DescriptorError(f"{where} must be a mapping")
    table = {}
    for key, item in value.items():
        if not isinstance(item, (str, int, float)) or isinstance(item, bool):
            raise DescriptorError(f"{where}.{key} must be a scalar")
        table[str(key)] = str(item)
    return table


def parse_build_descriptor(payload: Any) -> BuildDescriptor:
    if not isinstance(payload, Mapping):
        raise DescriptorError("Build descriptor must be a mapping")

    env = payload.get("env") or {}
    if not isinstance(env, Mapping):
        raise DescriptorError("'env' must be a mapping")
    parameter_store = _string_table(env.get("parameter-store"), "env.parameter-store")
    for name, path in parameter_store.items():
        if not path.startswith("/"):
            raise DescriptorError(
                f"env.parameter-store.{name} must be an absolute path, got {path!r}"
            )

    raw_phases = payload.get("phases") or {}
    if not isinstance(raw_phases, Mapping):
        raise DescriptorError("'phases' must be a mapping")
    phases: dict[str, tuple[str, ...]] = {}
    for name in raw_phases:
        if name not in BUILD_PHASES:
            raise DescriptorError(f"Unknown build phase: {name!r}")
    for name in BUILD_PHASES:
        if name not in raw_phases:
            continue
        body = raw_phases[name] or {}
        commands = body.get("commands", []) if isinstance(body, Mapping) else None
        if not isinstance(commands, list) or not all(isinstance(c, str) for c in commands):
            raise DescriptorError(f"phases.{name}.commands must be a list of strings")
        phases[name] = tuple(commands)

    return BuildDescriptor(
        version=payload.get("version", 0.2),
        parameter_store=parameter_store,
        variables=_string_table(env.get("variables"), "env.variables"),
        phases=phases,
        extras={k: v for k, v in payload.items() if k not in ("version", "env", "phases")},
    )


def load_build_descriptor(path: str | Path) -> BuildDescriptor:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise DescriptorError(f"Invalid YAML in {path}: {exc}") from exc
    return parse_build_descriptor(payload)
