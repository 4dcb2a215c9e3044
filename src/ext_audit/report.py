"""Text and JSON rendering of reconciliation results."""

from __future__ import annotations

from collections.abc import Iterable

from ext_audit.binary import short_checksum
from ext_audit.index.models import InstalledPackageEntry
from ext_audit.reconcile import IntegrityStatus, MatchedModule, ReconciliationResult


def render_text(
    result: ReconciliationResult,
    show_all: bool = False,
    runtime_order: Iterable[str] | None = None,
) -> list[str]:
    """Render the report as plain text lines.

    ``runtime_order`` lists module names as the runtime reported them so that
    managed and unmanaged modules interleave; without it, managed modules are
    listed first.
    """
    lines = ["All loaded extensions:" if show_all else "Loaded managed extensions:"]
    matched_by_name = {item.runtime.module_name: item for item in result.matched}
    unmanaged_by_name = {entry.module_name: entry for entry in result.unmanaged_loaded}
    if runtime_order is None:
        names = [*matched_by_name, *unmanaged_by_name]
    else:
        names = list(runtime_order)

    listed = 0
    for name in names:
        item = matched_by_name.get(name)
        if item is not None:
            lines.append(_matched_line(item))
            listed += 1
            continue
        unmanaged = unmanaged_by_name.get(name)
        if show_all and unmanaged is not None:
            lines.append(f"  {unmanaged.module_name}:{unmanaged.reported_version}")
            listed += 1

    if not show_all and listed == 0:
        lines.append("(none)")

    if result.installed_not_loaded:
        lines.append("")
        lines.append("Installed but not loaded:")
        lines.append("These extensions were installed by the package manager but are not enabled.")
        for entry in result.installed_not_loaded:
            lines.append(f" - {entry.display_name_and_version}")
    return lines


def _matched_line(item: MatchedModule) -> str:
    runtime = item.runtime
    return (
        f"  {runtime.module_name}:{runtime.reported_version} "
        f"(from {item.installed.display_name_and_version}){_status_suffix(item)}"
    )


def _status_suffix(item: MatchedModule) -> str:
    if item.status is IntegrityStatus.VERIFIED:
        return " [verified]"
    if (
        item.status is IntegrityStatus.CHECKSUM_MISMATCH
        and item.actual_checksum is not None
        and item.expected_checksum is not None
    ):
        return (
            f" [mismatch] was {short_checksum(item.actual_checksum)}..., "
            f"expected {short_checksum(item.expected_checksum)}..."
        )
    return ""


def status_counts(result: ReconciliationResult) -> dict[str, int]:
    """Count matched modules per status, listing every status."""
    counts = {status.value: 0 for status in IntegrityStatus}
    for item in result.matched:
        counts[item.status.value] += 1
    return counts


def result_to_dict(result: ReconciliationResult) -> dict[str, object]:
    """Return a JSON-serializable payload with full checksums."""
    return {
        "matched": [
            {
                "module": item.runtime.module_name,
                "version": item.runtime.reported_version,
                "package": _installed_to_dict(item.installed),
                "status": item.status.value,
                "conventional_path": str(item.conventional_path),
                "actual_checksum": item.actual_checksum,
                "expected_checksum": item.expected_checksum,
            }
            for item in result.matched
        ],
        "unmanaged_loaded": [
            {"module": entry.module_name, "version": entry.reported_version}
            for entry in result.unmanaged_loaded
        ],
        "installed_not_loaded": [
            _installed_to_dict(entry) for entry in result.installed_not_loaded
        ],
        "status_counts": status_counts(result),
    }


def _installed_to_dict(entry: InstalledPackageEntry) -> dict[str, object]:
    expected = entry.expected_binary
    return {
        "module": entry.module_name,
        "label": entry.display_name_and_version,
        "name": entry.package_name,
        "version": entry.version,
        "expected_binary": (
            None
            if expected is None
            else {"path": str(expected.path), "checksum": expected.checksum}
        ),
    }
