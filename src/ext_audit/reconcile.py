"""Reconciliation of loaded runtime modules against installed packages.

Every runtime module lands in exactly one of ``matched`` or
``unmanaged_loaded``; every installed entry lands in exactly one of
``matched`` or ``installed_not_loaded``. Output order follows the iteration
order of the index each element came from.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ext_audit.binary import BinaryDescriptor, ChecksumMismatchError
from ext_audit.index.models import (
    InstalledPackageEntry,
    InstalledPackageIndex,
    RuntimeModuleEntry,
    RuntimeModuleIndex,
)


class IntegrityStatus(Enum):
    """Outcome of checking one loaded, package-managed module binary."""

    NOT_VERIFIABLE = "not_verifiable"
    NO_EXPECTED_RECORD = "no_expected_record"
    PATH_MISMATCH = "path_mismatch"
    VERIFIED = "verified"
    CHECKSUM_MISMATCH = "checksum_mismatch"


@dataclass(slots=True, frozen=True)
class MatchedModule:
    """A module both loaded by the runtime and installed by the package manager."""

    runtime: RuntimeModuleEntry
    installed: InstalledPackageEntry
    status: IntegrityStatus
    conventional_path: Path
    actual_checksum: str | None = None
    expected_checksum: str | None = None


@dataclass(slots=True, frozen=True)
class ReconciliationResult:
    """Classified view of runtime modules versus installed packages."""

    matched: tuple[MatchedModule, ...]
    unmanaged_loaded: tuple[RuntimeModuleEntry, ...]
    installed_not_loaded: tuple[InstalledPackageEntry, ...]

    def has_checksum_mismatch(self) -> bool:
        return any(item.status is IntegrityStatus.CHECKSUM_MISMATCH for item in self.matched)


def conventional_binary_path(
    binary_directory: Path, module_name: str, binary_file_extension: str
) -> Path:
    """Return where a module binary resolves from by convention."""
    return Path(binary_directory) / f"{module_name}{binary_file_extension}"


def reconcile(
    runtime_modules: RuntimeModuleIndex,
    installed_packages: InstalledPackageIndex,
    binary_directory: Path,
    binary_file_extension: str,
) -> ReconciliationResult:
    """Join both indexes and verify each matched module's binary on disk."""
    matched: list[MatchedModule] = []
    unmanaged: list[RuntimeModuleEntry] = []
    for name, runtime_entry in runtime_modules.items():
        installed_entry = installed_packages.get(name)
        if installed_entry is None:
            unmanaged.append(runtime_entry)
            continue
        matched.append(
            check_module(
                runtime_entry,
                installed_entry,
                conventional_binary_path(
                    binary_directory,
                    installed_entry.binary_name or name,
                    binary_file_extension,
                ),
            )
        )

    not_loaded = tuple(
        entry for name, entry in installed_packages.items() if name not in runtime_modules
    )
    return ReconciliationResult(
        matched=tuple(matched),
        unmanaged_loaded=tuple(unmanaged),
        installed_not_loaded=not_loaded,
    )


def check_module(
    runtime_entry: RuntimeModuleEntry,
    installed_entry: InstalledPackageEntry,
    conventional_path: Path,
) -> MatchedModule:
    """Classify one matched module; never raises for filesystem problems."""

    def classified(
        status: IntegrityStatus, actual: str | None = None, expected: str | None = None
    ) -> MatchedModule:
        return MatchedModule(
            runtime=runtime_entry,
            installed=installed_entry,
            status=status,
            conventional_path=conventional_path,
            actual_checksum=actual,
            expected_checksum=expected,
        )

    # Modules may be loaded by absolute path from runtime configuration instead.
    if not conventional_path.exists():
        return classified(IntegrityStatus.NOT_VERIFIABLE)

    expected = installed_entry.expected_binary
    if expected is None:
        return classified(IntegrityStatus.NO_EXPECTED_RECORD)
    if expected.path != conventional_path:
        return classified(IntegrityStatus.PATH_MISMATCH)

    # The file may vanish between the exists() check and this read.
    try:
        actual = BinaryDescriptor.from_file(conventional_path)
    except OSError:
        return classified(IntegrityStatus.NOT_VERIFIABLE)

    try:
        expected.verify_against(actual)
    except ChecksumMismatchError as error:
        return classified(
            IntegrityStatus.CHECKSUM_MISMATCH, actual=error.actual, expected=error.expected
        )
    return classified(IntegrityStatus.VERIFIED, actual=actual.checksum, expected=expected.checksum)
