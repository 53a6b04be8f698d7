"""Configuration loading and deterministic merge order."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

from image_bisect.bisect.forkjoin import DEFAULT_MAX_WORKERS

CONFIG_FILE_NAME = "image_bisect.toml"

TIMEOUT_SECONDS_CAP = 3_600
MAX_WORKERS_CAP = 64
TRUNCATE_CAP = 10_000

DEFAULT_TIMEOUT_SECONDS = 10
DEFAULT_TRUNCATE = 100
DEFAULT_DATA_DIR_NAME = ".image_bisect"


@dataclass(slots=True, frozen=True)
class ProbeConfig:
    """Settings for running the command in a container."""

    timeout_seconds: int
    docker_binary: str


@dataclass(slots=True, frozen=True)
class EngineConfig:
    """Bisection engine settings."""

    max_workers: int


@dataclass(slots=True, frozen=True)
class OutputConfig:
    """Report settings; truncate None means terminal width."""

    truncate: int | None


@dataclass(slots=True, frozen=True)
class AuditConfig:
    """JSONL audit log settings."""

    enabled: bool
    data_dir: Path


@dataclass(slots=True, frozen=True)
class BisectConfig:
    """Fully merged run configuration."""

    probe: ProbeConfig
    engine: EngineConfig
    output: OutputConfig
    audit: AuditConfig

    def to_public_dict(self) -> dict[str, object]:
        """Return serializable config snapshot for the audit log."""
        return {
            "probe": {
                "timeout_seconds": self.probe.timeout_seconds,
                "docker_binary": self.probe.docker_binary,
            },
            "engine": {"max_workers": self.engine.max_workers},
            "output": {"truncate": self.output.truncate},
            "audit": {
                "enabled": self.audit.enabled,
                "data_dir": str(self.audit.data_dir),
            },
        }


@dataclass(slots=True, frozen=True)
class CliOverrides:
    """Optional command-line overrides applied at highest precedence."""

    timeout_seconds: int | None = None
    max_workers: int | None = None
    truncate: int | None = None
    docker_binary: str | None = None
    data_dir: Path | None = None
    audit_enabled: bool | None = None


def default_config(work_dir: Path) -> BisectConfig:
    """Build default config relative to a working directory."""
    return BisectConfig(
        probe=ProbeConfig(timeout_seconds=DEFAULT_TIMEOUT_SECONDS, docker_binary="docker"),
        engine=EngineConfig(max_workers=DEFAULT_MAX_WORKERS),
        output=OutputConfig(truncate=None),
        audit=AuditConfig(enabled=True, data_dir=work_dir.resolve() / DEFAULT_DATA_DIR_NAME),
    )


def load_config_file(config_path: Path) -> dict[str, object]:
    """Load an optional TOML config file; a missing file is an empty config."""
    if not config_path.exists():
        return {}
    with config_path.open("rb") as handle:
        payload = tomllib.load(handle)
    if not isinstance(payload, dict):
        raise ValueError(f"{config_path.name} must contain a top-level table.")
    return payload


def _get_table(payload: dict[str, object], key: str) -> dict[str, object]:
    value = payload.get(key, {})
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{key}' must be a table.")
    return value


def merge_config(
    base: BisectConfig,
    file_payload: dict[str, object],
    overrides: CliOverrides,
    work_dir: Path,
) -> BisectConfig:
    """Merge defaults, config file, then CLI overrides."""
    probe_payload = _get_table(file_payload, "probe")
    engine_payload = _get_table(file_payload, "engine")
    output_payload = _get_table(file_payload, "output")
    audit_payload = _get_table(file_payload, "audit")

    timeout_seconds = _optional_positive_int_with_cap(
        probe_payload.get("timeout_seconds"),
        "probe.timeout_seconds",
        base.probe.timeout_seconds,
        TIMEOUT_SECONDS_CAP,
    )
    docker_binary = _optional_non_empty_str(
        probe_payload.get("docker_binary"), "probe.docker_binary", base.probe.docker_binary
    )
    max_workers = _optional_positive_int_with_cap(
        engine_payload.get("max_workers"),
        "engine.max_workers",
        base.engine.max_workers,
        MAX_WORKERS_CAP,
    )
    truncate = base.output.truncate
    if "truncate" in output_payload:
        truncate = _optional_positive_int_with_cap(
            output_payload["truncate"], "output.truncate", DEFAULT_TRUNCATE, TRUNCATE_CAP
        )

    audit_enabled = base.audit.enabled
    if "enabled" in audit_payload:
        raw_enabled = audit_payload["enabled"]
        if not isinstance(raw_enabled, bool):
            raise ValueError("Config field 'audit.enabled' must be a boolean.")
        audit_enabled = raw_enabled
    data_dir = base.audit.data_dir
    if "data_dir" in audit_payload:
        raw_data_dir = _optional_non_empty_str(
            audit_payload["data_dir"], "audit.data_dir", str(base.audit.data_dir)
        )
        data_dir = (work_dir / raw_data_dir).resolve()

    merged = BisectConfig(
        probe=ProbeConfig(timeout_seconds=timeout_seconds, docker_binary=docker_binary),
        engine=EngineConfig(max_workers=max_workers),
        output=OutputConfig(truncate=truncate),
        audit=AuditConfig(enabled=audit_enabled, data_dir=data_dir),
    )
    return apply_cli_overrides(merged, overrides)


def apply_cli_overrides(config: BisectConfig, overrides: CliOverrides) -> BisectConfig:
    """Apply command-line overrides at highest precedence."""
    timeout_seconds = _optional_positive_int_with_cap(
        overrides.timeout_seconds,
        "overrides.timeout_seconds",
        config.probe.timeout_seconds,
        TIMEOUT_SECONDS_CAP,
    )
    max_workers = _optional_positive_int_with_cap(
        overrides.max_workers,
        "overrides.max_workers",
        config.engine.max_workers,
        MAX_WORKERS_CAP,
    )
    truncate = config.output.truncate
    if overrides.truncate is not None:
        truncate = _optional_positive_int_with_cap(
            overrides.truncate, "overrides.truncate", DEFAULT_TRUNCATE, TRUNCATE_CAP
        )
    docker_binary = _optional_non_empty_str(
        overrides.docker_binary, "overrides.docker_binary", config.probe.docker_binary
    )
    data_dir = overrides.data_dir or config.audit.data_dir
    audit_enabled = (
        overrides.audit_enabled if overrides.audit_enabled is not None else config.audit.enabled
    )
    return BisectConfig(
        probe=ProbeConfig(timeout_seconds=timeout_seconds, docker_binary=docker_binary),
        engine=EngineConfig(max_workers=max_workers),
        output=OutputConfig(truncate=truncate),
        audit=AuditConfig(enabled=audit_enabled, data_dir=data_dir.resolve()),
    )


def load_effective_config(
    work_dir: Path,
    config_path: Path | None = None,
    overrides: CliOverrides | None = None,
) -> BisectConfig:
    """Load effective config using merge order defaults -> file -> overrides."""
    resolved_dir = work_dir.resolve()
    base = default_config(resolved_dir)
    payload = load_config_file(config_path or resolved_dir / CONFIG_FILE_NAME)
    return merge_config(base, payload, overrides or CliOverrides(), resolved_dir)


def _optional_non_empty_str(value: object, name: str, default: str) -> str:
    if value is None:
        return default
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Config field '{name}' must be a non-empty string.")
    return value


def _optional_positive_int_with_cap(
    value: object,
    name: str,
    default: int,
    cap: int | None,
) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"Config field '{name}' must be a positive integer.")
    if cap is not None and value > cap:
        raise ValueError(f"Config field '{name}' must be <= {cap}.")
    return value
