"""
Lifecycle Descriptor (appspec.yml)

Architectural Intent:
- Loads and serializes the persisted shape of a deployable unit's hooks:
    version, os, hooks: {Phase: [{location, timeout, runas}]}
- Keys the engine does not interpret (files, permissions, ...) are kept
  verbatim so a load/dump cycle loses nothing
- Validation errors are DescriptorError, naming the offending entry
"""

from __future__ import annotations
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from keel.domain.errors import DescriptorError
from keel.domain.value_objects.hook_spec import HookSpec
from keel.domain.value_objects.lifecycle_phase import LifecyclePhase

SUPPORTED_OS = ("linux", "windows")
_HOOK_KEYS = ("location", "timeout", "runas")


@dataclass(frozen=True)
class LifecycleDescriptor:
    os: str
    hooks: Mapping[LifecyclePhase, tuple[HookSpec, ...]] = field(default_factory=dict)
    version: Any = 0.0
    extras: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.os not in SUPPORTED_OS:
            raise DescriptorError(
                f"Unsupported os {self.os!r}; expected one of {', '.join(SUPPORTED_OS)}"
            )
        object.__setattr__(
            self,
            "hooks",
            MappingProxyType({phase: tuple(s) for phase, s in self.hooks.items()}),
        )
        object.__setattr__(self, "extras", MappingProxyType(dict(self.extras)))

    def all_hooks(self) -> list[HookSpec]:
        return [spec for specs in self.hooks.values() for spec in specs]


def _parse_hook(phase: LifecyclePhase, index: int, entry: Any) -> HookSpec:
    where = f"hooks.{phase.value}[{index}]"
    if not isinstance(entry, Mapping):
        raise DescriptorError(f"{where} must be a mapping")
    unknown = set(entry) - set(_HOOK_KEYS)
    if unknown:
        raise DescriptorError(f"{where} has unknown keys: {', '.join(sorted(unknown))}")
    location = entry.get("location")
    if not isinstance(location, str) or not location.strip():
        raise DescriptorError(f"{where} requires a location")
    run_as = entry.get("runas")
    if run_as is not None and not isinstance(run_as, str):
        raise DescriptorError(f"{where}.runas must be a string")
    try:
        if "timeout" in entry:
            return HookSpec(phase, location, entry["timeout"], run_as)
        return HookSpec(phase, location, run_as=run_as)
    except ValueError as e:
        raise DescriptorError(f"{where}: {e}") from e


def parse_lifecycle_descriptor(payload: Any) -> LifecycleDescriptor:
    if not isinstance(payload, Mapping):
        raise DescriptorError("Lifecycle descriptor must be a mapping")
    if "os" not in payload:
        raise DescriptorError("Lifecycle descriptor requires 'os'")

    raw_hooks = payload.get("hooks") or {}
    if not isinstance(raw_hooks, Mapping):
        raise DescriptorError("'hooks' must be a mapping of phase to hook list")

    hooks: dict[LifecyclePhase, tuple[HookSpec, ...]] = {}
    for name, entries in raw_hooks.items():
        try:
            phase = LifecyclePhase.parse(str(name))
        except ValueError as e:
            raise DescriptorError(str(e)) from e
        if entries is None:
            entries = []
        if not isinstance(entries, list):
            raise DescriptorError(f"hooks.{name} must be a list")
        hooks[phase] = tuple(_parse_hook(phase, i, e) for i, e in enumerate(entries))

    extras = {k: v for k, v in payload.items() if k not in ("version", "os", "hooks")}
    return LifecycleDescriptor(
        os=payload["os"],
        hooks=hooks,
        version=payload.get("version", 0.0),
        extras=extras,
    )


def lifecycle_descriptor_to_dict(descriptor: LifecycleDescriptor) -> dict[str, Any]:
    data: dict[str, Any] = {"version": descriptor.version, "os": descriptor.os}
    data.update(descriptor.extras)
    hooks: dict[str, list[dict[str, Any]]] = {}
    for phase, specs in descriptor.hooks.items():
        entries = []
        for spec in specs:
            entry: dict[str, Any] = {
                "location": spec.command,
                "timeout": spec.timeout_seconds,
            }
            if spec.run_as is not None:
                entry["runas"] = spec.run_as
            entries.append(entry)
        hooks[phase.value] = entries
    data["hooks"] = hooks
    return data


def load_lifecycle_descriptor(path: str | Path) -> LifecycleDescriptor:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise DescriptorError(f"Invalid YAML in {path}: {exc}") from exc
    return parse_lifecycle_descriptor(payload)


def dump_lifecycle_descriptor(descriptor: LifecycleDescriptor) -> str:
    return yaml.safe_dump(
        lifecycle_descriptor_to_dict(descriptor), sort_keys=False, default_flow_style=False
    )
