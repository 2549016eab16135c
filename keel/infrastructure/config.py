"""
Configuration Module

Architectural Intent:
- Centralized configuration loading from a JSON file (keel.json)
- Provides typed access to all Keel settings
- Falls back to sensible defaults when config file is absent
- Environment variables override file-based config

Design Decisions:
- Config is a frozen dataclass for immutability after load
- Nested config sections map to sub-dataclasses
- Env keys split on the first underscore after the prefix:
  KEEL_RUNNER_OUTPUT_LIMIT_BYTES -> runner.output_limit_bytes
"""

from __future__ import annotations
import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import json
import logging
import os

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunnerConfig:
    """Hook runner configuration."""
    mode: str = "local"  # "local" or "ssh"
    output_limit_bytes: int = 4096
    kill_grace_seconds: int = 5
    ssh_user: str = ""
    ssh_port: int = 22
    ssh_key_file: str = ""
    connect_timeout: int = 30
    working_dir: str = ""


@dataclass(frozen=True)
class SecretsConfig:
    """Secret store configuration."""
    provider: str = "env"  # "env" or "parameter-store"
    region: str = ""
    profile: str = ""
    max_attempts: int = 3


@dataclass(frozen=True)
class RegistryConfig:
    """Artifact registry configuration."""
    docker_binary: str = "docker"
    pull_before_start: bool = True


@dataclass(frozen=True)
class WorkloadConfig:
    """Running-workload selection for the stop phase."""
    selector: str = ""
    probe: bool = True


@dataclass(frozen=True)
class HistoryConfig:
    """Deployment history log configuration."""
    db_path: str = ""


@dataclass(frozen=True)
class TelemetryConfig:
    """OpenTelemetry configuration."""
    endpoint: str = ""
    insecure: bool = False
    service_name: str = "keel"


@dataclass(frozen=True)
class KeelConfig:
    """Root configuration for the Keel application."""
    runner: RunnerConfig = field(default_factory=RunnerConfig)
    secrets: SecretsConfig = field(default_factory=SecretsConfig)
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    workload: WorkloadConfig = field(default_factory=WorkloadConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    log_level: str = "WARNING"
    log_json: bool = False


_SECTIONS = {
    "runner": RunnerConfig,
    "secrets": SecretsConfig,
    "registry": RegistryConfig,
    "workload": WorkloadConfig,
    "history": HistoryConfig,
    "telemetry": TelemetryConfig,
}


def _env_override(data: dict, prefix: str = "KEEL") -> dict:
    """Override config values with environment variables.

    Environment variables follow the pattern KEEL_SECTION_KEY.
    For example: KEEL_RUNNER_MODE=ssh, KEEL_SECRETS_REGION=eu-west-1
    """
    for key, value in os.environ.items():
        if not key.startswith(f"{prefix}_"):
            continue
        name = key[len(prefix) + 1:].lower()
        section, _, field_name = name.partition("_")
        if section in _SECTIONS and field_name:
            data.setdefault(section, {})
            data[section][field_name] = value
        else:
            data[name] = value
    return data


def _parse_config_file(path: Path) -> dict:
    """Parse a JSON config file. Returns empty dict on failure."""
    try:
        with open(path) as f:
            return json.load(f)
    except FileNotFoundError:
        logger.debug("Config file not found: %s", path)
        return {}
    except json.JSONDecodeError as e:
        logger.warning("Invalid config file %s: %s", path, e)
        return {}


def _coerce(value, type_name: str):
    if not isinstance(value, str):
        return value
    if type_name == "int":
        return int(value)
    if type_name == "bool":
        return value.lower() in ("true", "1", "yes")
    return value


def _build_sub_config(cls, data: dict):
    """Build a sub-config dataclass from a dict, ignoring unknown keys."""
    valid_fields = {f.name: f.type for f in dataclasses.fields(cls)}
    filtered = {
        k: _coerce(v, valid_fields[k]) for k, v in data.items() if k in valid_fields
    }
    return cls(**filtered)


def load_config(
    path: Optional[str] = None,
    env_prefix: str = "KEEL",
) -> KeelConfig:
    """Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (KEEL_SECTION_KEY)
    2. Config file values
    3. Defaults

    Args:
        path: Path to config file (JSON). Defaults to keel.json in CWD.
        env_prefix: Environment variable prefix. Defaults to KEEL.
    """
    config_path = Path(path) if path else Path("keel.json")
    data = _parse_config_file(config_path)
    data = _env_override(data, env_prefix)

    sections = {
        name: _build_sub_config(cls, data.get(name) or {})
        for name, cls in _SECTIONS.items()
    }
    return KeelConfig(
        **sections,
        log_level=str(data.get("log_level", "WARNING")).upper(),
        log_json=_coerce(data.get("log_json", False), "bool"),
    )
