"""Configuration loading and deterministic merge order."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

CONFIG_FILE_NAME = "ext_audit.toml"
DEFAULT_RUNTIME_EXECUTABLE = "php"
DEFAULT_INSTALLED_MANIFEST = Path("vendor") / "composer" / "installed.json"
DEFAULT_DATA_DIR_NAME = ".ext_audit"
OUTPUT_FORMATS = ("text", "json")


@dataclass(slots=True, frozen=True)
class RuntimeConfig:
    """Where loaded-module data comes from."""

    executable: str
    snapshot: Path | None


@dataclass(slots=True, frozen=True)
class BinariesConfig:
    """Overrides for the conventional module binary location."""

    directory: Path | None
    suffix: str | None


@dataclass(slots=True, frozen=True)
class ReportConfig:
    """Report rendering settings."""

    show_all: bool
    output_format: str


@dataclass(slots=True, frozen=True)
class AuditLogConfig:
    """Audit log placement."""

    data_dir: Path
    enabled: bool


@dataclass(slots=True, frozen=True)
class AuditSettings:
    """Fully merged configuration for one audit run."""

    work_dir: Path
    runtime: RuntimeConfig
    installed_manifest: Path
    binaries: BinariesConfig
    report: ReportConfig
    audit_log: AuditLogConfig

    def to_public_dict(self) -> dict[str, object]:
        """Return a serializable snapshot of the effective configuration."""
        return {
            "work_dir": str(self.work_dir),
            "runtime": {
                "executable": self.runtime.executable,
                "snapshot": _optional_str(self.runtime.snapshot),
            },
            "installed": {"manifest": str(self.installed_manifest)},
            "binaries": {
                "directory": _optional_str(self.binaries.directory),
                "suffix": self.binaries.suffix,
            },
            "report": {
                "show_all": self.report.show_all,
                "format": self.report.output_format,
            },
            "audit": {
                "data_dir": str(self.audit_log.data_dir),
                "enabled": self.audit_log.enabled,
            },
        }


@dataclass(slots=True, frozen=True)
class CliOverrides:
    """Optional command-line overrides applied at highest precedence."""

    runtime_executable: str | None = None
    runtime_snapshot: Path | None = None
    installed_manifest: Path | None = None
    binary_directory: Path | None = None
    binary_suffix: str | None = None
    show_all: bool | None = None
    output_format: str | None = None
    data_dir: Path | None = None
    audit_log_enabled: bool | None = None


def default_settings(work_dir: Path) -> AuditSettings:
    """Build default settings for a working directory."""
    resolved = work_dir.resolve()
    return AuditSettings(
        work_dir=resolved,
        runtime=RuntimeConfig(executable=DEFAULT_RUNTIME_EXECUTABLE, snapshot=None),
        installed_manifest=resolved / DEFAULT_INSTALLED_MANIFEST,
        binaries=BinariesConfig(directory=None, suffix=None),
        report=ReportConfig(show_all=False, output_format="text"),
        audit_log=AuditLogConfig(data_dir=resolved / DEFAULT_DATA_DIR_NAME, enabled=True),
    )


def load_config_file(config_path: Path) -> dict[str, object]:
    """Load a TOML config file; a missing file yields an empty payload."""
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
    base: AuditSettings,
    file_payload: dict[str, object],
    overrides: CliOverrides,
    config_dir: Path | None = None,
) -> AuditSettings:
    """Merge defaults, config file, then CLI overrides."""
    relative_to = (config_dir or base.work_dir).resolve()
    runtime_payload = _get_table(file_payload, "runtime")
    installed_payload = _get_table(file_payload, "installed")
    binaries_payload = _get_table(file_payload, "binaries")
    report_payload = _get_table(file_payload, "report")
    audit_payload = _get_table(file_payload, "audit")

    executable = _optional_non_empty_str(
        runtime_payload.get("executable"), "runtime.executable", base.runtime.executable
    )
    snapshot = _optional_path(
        runtime_payload.get("snapshot"), "runtime.snapshot", base.runtime.snapshot, relative_to
    )
    manifest = _optional_path(
        installed_payload.get("manifest"),
        "installed.manifest",
        base.installed_manifest,
        relative_to,
    )
    directory = _optional_path(
        binaries_payload.get("directory"),
        "binaries.directory",
        base.binaries.directory,
        relative_to,
    )
    suffix = _optional_suffix(
        binaries_payload.get("suffix"), "binaries.suffix", base.binaries.suffix
    )
    show_all = _optional_bool(
        report_payload.get("show_all"), "report.show_all", base.report.show_all
    )
    output_format = _optional_format(
        report_payload.get("format"), "report.format", base.report.output_format
    )
    data_dir = _optional_path(
        audit_payload.get("data_dir"), "audit.data_dir", base.audit_log.data_dir, relative_to
    )
    enabled = _optional_bool(audit_payload.get("enabled"), "audit.enabled", base.audit_log.enabled)

    merged = AuditSettings(
        work_dir=base.work_dir,
        runtime=RuntimeConfig(executable=executable, snapshot=snapshot),
        installed_manifest=manifest or base.installed_manifest,
        binaries=BinariesConfig(directory=directory, suffix=suffix),
        report=ReportConfig(show_all=show_all, output_format=output_format),
        audit_log=AuditLogConfig(data_dir=data_dir or base.audit_log.data_dir, enabled=enabled),
    )
    return apply_cli_overrides(merged, overrides)


def apply_cli_overrides(settings: AuditSettings, overrides: CliOverrides) -> AuditSettings:
    """Apply command-line overrides at highest precedence."""
    work_dir = settings.work_dir
    executable = _optional_non_empty_str(
        overrides.runtime_executable, "overrides.runtime_executable", settings.runtime.executable
    )
    suffix = _optional_suffix(
        overrides.binary_suffix, "overrides.binary_suffix", settings.binaries.suffix
    )
    output_format = _optional_format(
        overrides.output_format, "overrides.output_format", settings.report.output_format
    )
    return AuditSettings(
        work_dir=work_dir,
        runtime=RuntimeConfig(
            executable=executable,
            snapshot=_resolved(overrides.runtime_snapshot, work_dir) or settings.runtime.snapshot,
        ),
        installed_manifest=(
            _resolved(overrides.installed_manifest, work_dir) or settings.installed_manifest
        ),
        binaries=BinariesConfig(
            directory=(
                _resolved(overrides.binary_directory, work_dir) or settings.binaries.directory
            ),
            suffix=suffix,
        ),
        report=ReportConfig(
            show_all=(
                overrides.show_all if overrides.show_all is not None else settings.report.show_all
            ),
            output_format=output_format,
        ),
        audit_log=AuditLogConfig(
            data_dir=_resolved(overrides.data_dir, work_dir) or settings.audit_log.data_dir,
            enabled=(
                overrides.audit_log_enabled
                if overrides.audit_log_enabled is not None
                else settings.audit_log.enabled
            ),
        ),
    )


def load_effective_config(
    work_dir: Path,
    config_path: Path | None = None,
    overrides: CliOverrides | None = None,
) -> AuditSettings:
    """Load settings using merge order defaults -> config file -> overrides."""
    resolved_dir = work_dir.resolve()
    base = default_settings(resolved_dir)
    if config_path is None:
        path = resolved_dir / CONFIG_FILE_NAME
    else:
        path = config_path if config_path.is_absolute() else resolved_dir / config_path
        if not path.exists():
            raise ValueError(f"Config file does not exist: {path}")
    payload = load_config_file(path)
    return merge_config(base, payload, overrides or CliOverrides(), config_dir=path.parent)


def _resolved(value: Path | None, relative_to: Path) -> Path | None:
    if value is None:
        return None
    return (relative_to / value).resolve() if not value.is_absolute() else value


def _optional_str(value: Path | None) -> str | None:
    return str(value) if value is not None else None


def _optional_non_empty_str(value: object, name: str, default: str) -> str:
    if value is None:
        return default
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Config field '{name}' must be a non-empty string.")
    return value


def _optional_path(
    value: object, name: str, default: Path | None, relative_to: Path
) -> Path | None:
    if value is None:
        return default
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Config field '{name}' must be a non-empty path string.")
    return _resolved(Path(value), relative_to)


def _optional_suffix(value: object, name: str, default: str | None) -> str | None:
    if value is None:
        return default
    if not isinstance(value, str) or not value.startswith(".") or len(value) < 2:
        raise ValueError(f"Config field '{name}' must be a file suffix such as '.so'.")
    return value


def _optional_bool(value: object, name: str, default: bool) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValueError(f"Config field '{name}' must be a boolean.")
    return value


def _optional_format(value: object, name: str, default: str) -> str:
    if value is None:
        return default
    if value not in OUTPUT_FORMATS:
        raise ValueError(f"Config field '{name}' must be one of: {', '.join(OUTPUT_FORMATS)}.")
    return str(value)
