"""Runtime module index sources: JSON snapshots and live runtime queries."""

from __future__ import annotations

import json
import subprocess
from pathlib import Path

from ext_audit.index.models import (
    IndexLoadError,
    RuntimeSnapshot,
    normalize_module_name,
    runtime_module_index,
)

# Prints {"extension_dir": ..., "extensions": {name: version}} for the running interpreter.
RUNTIME_PROBE = (
    "$e = [];"
    " foreach (get_loaded_extensions() as $n) {"
    " $v = phpversion($n);"
    " $e[strtolower($n)] = $v === false ? '0' : (string) $v;"
    " }"
    " echo json_encode(['extension_dir' => ini_get('extension_dir'), 'extensions' => $e]);"
)


def parse_runtime_payload(payload: object) -> RuntimeSnapshot:
    """Validate a decoded runtime payload and build its snapshot."""
    if not isinstance(payload, dict):
        raise IndexLoadError(
            reason="Runtime payload must be a JSON object.",
            hint='Expected {"extension_dir": "...", "extensions": {"name": "version"}}.',
        )
    raw_extensions = payload.get("extensions", {})
    if not isinstance(raw_extensions, dict):
        raise IndexLoadError(
            reason="Runtime payload field 'extensions' must be an object.",
            hint="Map each loaded module name to its version string.",
        )
    versions: dict[str, str] = {}
    for name, version in raw_extensions.items():
        if not isinstance(name, str) or not name.strip():
            raise IndexLoadError(
                reason="Runtime module names must be non-empty strings.",
                hint="Check the runtime snapshot for empty keys.",
            )
        if isinstance(version, (int, float)) and not isinstance(version, bool):
            version = str(version)
        if not isinstance(version, str):
            raise IndexLoadError(
                reason=f"Runtime module '{name}' has a non-string version.",
                hint="Report module versions as strings.",
            )
        key = normalize_module_name(name)
        if key in versions:
            raise IndexLoadError(
                reason=f"Runtime module '{name}' is reported more than once.",
                hint="Module names are compared case-insensitively; remove the duplicate.",
            )
        versions[key] = version

    extension_dir: Path | None = None
    raw_dir = payload.get("extension_dir")
    if isinstance(raw_dir, str) and raw_dir:
        extension_dir = Path(raw_dir)
    elif raw_dir not in (None, "", False):
        raise IndexLoadError(
            reason="Runtime payload field 'extension_dir' must be a string.",
            hint="Use the runtime's configured extension directory or omit the field.",
        )
    return RuntimeSnapshot(extension_dir=extension_dir, modules=runtime_module_index(versions))


def load_runtime_snapshot(path: Path) -> RuntimeSnapshot:
    """Load loaded-module data previously captured from a runtime."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as error:
        raise IndexLoadError(
            reason=f"Runtime snapshot is not readable: {path}",
            hint=f"Check the --runtime-snapshot path ({error.strerror or error}).",
        ) from error
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as error:
        raise IndexLoadError(
            reason=f"Runtime snapshot is not valid JSON: {path}",
            hint=f"Line {error.lineno}, column {error.colno}: {error.msg}.",
        ) from error
    return parse_runtime_payload(payload)


def query_runtime(executable: str) -> RuntimeSnapshot:
    """Ask a runtime executable for its loaded modules."""
    try:
        completed = subprocess.run(
            [executable, "-r", RUNTIME_PROBE],
            check=False,
            capture_output=True,
            text=True,
        )
    except OSError as error:
        raise IndexLoadError(
            reason=f"Runtime executable could not be started: {executable}",
            hint="Pass --runtime with the path of the interpreter to audit.",
        ) from error
    if completed.returncode != 0:
        raise IndexLoadError(
            reason=f"Runtime executable exited with status {completed.returncode}.",
            hint=completed.stderr.strip() or "Run the interpreter by hand to inspect the failure.",
        )
    try:
        payload = json.loads(completed.stdout)
    except json.JSONDecodeError as error:
        raise IndexLoadError(
            reason="Runtime executable did not print a JSON module list.",
            hint="Check that --runtime points at a PHP CLI binary.",
        ) from error
    return parse_runtime_payload(payload)
