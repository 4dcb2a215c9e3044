"""Command-line entrypoint for the extension audit."""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from ext_audit.config import OUTPUT_FORMATS, AuditSettings, CliOverrides, load_effective_config
from ext_audit.index import (
    IndexLoadError,
    InstalledPackageIndex,
    RuntimeSnapshot,
    load_installed_packages,
    load_runtime_snapshot,
    query_runtime,
)
from ext_audit.logging import AuditEvent, JsonlAuditLogger, new_run_id, utc_timestamp
from ext_audit.platform import library_suffix
from ext_audit.reconcile import ReconciliationResult, reconcile
from ext_audit.report import render_text, result_to_dict, status_counts

EXIT_OK = 0
EXIT_MISMATCH = 1
EXIT_ERROR = 2
AUDIT_LOG_FILE_NAME = "audit.jsonl"


@dataclass(slots=True, frozen=True)
class AuditRun:
    """Inputs resolved for one audit and the resulting classification."""

    snapshot: RuntimeSnapshot
    installed: InstalledPackageIndex
    binary_directory: Path
    binary_suffix: str
    result: ReconciliationResult


def build_arg_parser() -> argparse.ArgumentParser:
    """Build argument parser for audit configuration."""
    parser = argparse.ArgumentParser(
        prog="ext-audit",
        description="List loaded runtime extensions and verify package-managed binaries.",
    )
    parser.add_argument("--work-dir", required=False, default=".")
    parser.add_argument("--config", required=False, default=None)
    parser.add_argument("--runtime", required=False, default=None, help="runtime executable")
    parser.add_argument("--runtime-snapshot", required=False, default=None)
    parser.add_argument("--installed", required=False, default=None)
    parser.add_argument("--binary-dir", required=False, default=None)
    parser.add_argument("--binary-suffix", required=False, default=None)
    parser.add_argument(
        "--all",
        dest="show_all",
        action="store_true",
        default=None,
        help="include loaded extensions the package manager does not manage",
    )
    parser.add_argument("--format", choices=OUTPUT_FORMATS, required=False, default=None)
    parser.add_argument("--data-dir", required=False, default=None)
    parser.add_argument(
        "--no-audit-log", dest="audit_log_enabled", action="store_false", default=None
    )
    parser.add_argument("--fail-on-mismatch", action="store_true", default=False)
    parser.add_argument(
        "--history",
        type=int,
        required=False,
        default=None,
        metavar="N",
        help="print the N most recent audit log events instead of auditing",
    )
    return parser


def run_audit(settings: AuditSettings) -> AuditRun:
    """Load both indexes and reconcile them."""
    if settings.runtime.snapshot is not None:
        snapshot = load_runtime_snapshot(settings.runtime.snapshot)
    else:
        snapshot = query_runtime(settings.runtime.executable)
    installed = load_installed_packages(settings.installed_manifest)

    binary_directory = settings.binaries.directory or snapshot.extension_dir
    if binary_directory is None:
        raise IndexLoadError(
            reason="No extension directory is known for this runtime.",
            hint="Pass --binary-dir or set [binaries] directory in the config file.",
        )
    binary_suffix = settings.binaries.suffix or library_suffix()
    result = reconcile(
        runtime_modules=snapshot.modules,
        installed_packages=installed,
        binary_directory=binary_directory,
        binary_file_extension=binary_suffix,
    )
    return AuditRun(
        snapshot=snapshot,
        installed=installed,
        binary_directory=binary_directory,
        binary_suffix=binary_suffix,
        result=result,
    )


def write_report(run: AuditRun, settings: AuditSettings, out_stream: TextIO) -> None:
    """Write the report in the configured format."""
    if settings.report.output_format == "json":
        payload = result_to_dict(run.result)
        payload["binary_directory"] = str(run.binary_directory)
        payload["binary_suffix"] = run.binary_suffix
        out_stream.write(f"{json.dumps(payload, sort_keys=True)}\n")
        return
    lines = [f"Using installed package record: {settings.installed_manifest}"]
    if not settings.report.show_all:
        lines.append("Tip: to include extensions the package manager does not manage, use --all.")
    lines.append("")
    lines.extend(
        render_text(
            run.result,
            show_all=settings.report.show_all,
            runtime_order=run.snapshot.modules.keys(),
        )
    )
    out_stream.write("\n".join(lines) + "\n")


def run_metadata(run: AuditRun) -> dict[str, object]:
    """Summarize a run for the audit log without module names or checksums."""
    return {
        "loaded_count": len(run.snapshot.modules),
        "installed_count": len(run.installed),
        "matched_count": len(run.result.matched),
        "unmanaged_loaded_count": len(run.result.unmanaged_loaded),
        "installed_not_loaded_count": len(run.result.installed_not_loaded),
        "status_counts": status_counts(run.result),
    }


def main(argv: list[str] | None = None) -> int:
    """Entrypoint for the ext-audit command."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    overrides = CliOverrides(
        runtime_executable=args.runtime,
        runtime_snapshot=_optional_path(args.runtime_snapshot),
        installed_manifest=_optional_path(args.installed),
        binary_directory=_optional_path(args.binary_dir),
        binary_suffix=args.binary_suffix,
        show_all=args.show_all,
        output_format=args.format,
        data_dir=_optional_path(args.data_dir),
        audit_log_enabled=args.audit_log_enabled,
    )
    try:
        settings = load_effective_config(
            Path(args.work_dir),
            config_path=_optional_path(args.config),
            overrides=overrides,
        )
    except ValueError as error:
        _write_error(sys.stderr, str(error), "Fix the configuration and run again.")
        return EXIT_ERROR

    if args.history is not None:
        return write_history(settings, args.history, sys.stdout)

    logger: JsonlAuditLogger | None = None
    if settings.audit_log.enabled:
        logger = _open_audit_logger(settings.audit_log.data_dir / AUDIT_LOG_FILE_NAME)
    run_id = new_run_id()

    try:
        run = run_audit(settings)
    except IndexLoadError as error:
        _log_run(logger, run_id, ok=False, error_code="INDEX_LOAD_ERROR", metadata={})
        _write_error(sys.stderr, error.reason, error.hint)
        return EXIT_ERROR

    write_report(run, settings, sys.stdout)
    _log_run(logger, run_id, ok=True, error_code=None, metadata=run_metadata(run))
    if args.fail_on_mismatch and run.result.has_checksum_mismatch():
        return EXIT_MISMATCH
    return EXIT_OK


def write_history(settings: AuditSettings, limit: int, out_stream: TextIO) -> int:
    """Print the most recent audit events as JSON lines."""
    if limit < 1:
        _write_error(sys.stderr, "--history must be >= 1.", "Pass the number of runs to show.")
        return EXIT_ERROR
    path = settings.audit_log.data_dir / AUDIT_LOG_FILE_NAME
    if not path.exists():
        return EXIT_OK
    try:
        events = JsonlAuditLogger(path=path).read(limit=limit)
    except OSError as error:
        _write_error(sys.stderr, f"Audit log is not readable: {path}", str(error))
        return EXIT_ERROR
    for event in events:
        out_stream.write(f"{json.dumps(event, sort_keys=True)}\n")
    return EXIT_OK


def _open_audit_logger(path: Path) -> JsonlAuditLogger | None:
    try:
        return JsonlAuditLogger(path=path)
    except OSError as error:
        _write_warning(sys.stderr, f"audit log disabled, cannot create {path.parent}: {error}")
        return None


def _log_run(
    logger: JsonlAuditLogger | None,
    run_id: str,
    ok: bool,
    error_code: str | None,
    metadata: dict[str, object],
) -> None:
    if logger is None:
        return
    event = AuditEvent(
        timestamp=utc_timestamp(),
        run_id=run_id,
        command="reconcile",
        ok=ok,
        error_code=error_code,
        metadata=metadata,
    )
    try:
        logger.append(event)
    except OSError as error:
        _write_warning(sys.stderr, f"audit log not written to {logger.path}: {error}")


def _write_warning(err_stream: TextIO, message: str) -> None:
    err_stream.write(f"warning: {message}\n")


def _write_error(err_stream: TextIO, reason: str, hint: str) -> None:
    err_stream.write(f"error: {reason}\nhint: {hint}\n")


def _optional_path(value: str | None) -> Path | None:
    return Path(value) if value is not None else None


if __name__ == "__main__":
    raise SystemExit(main())
