"""Typed models for runtime and installed-package indexes."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

from ext_audit.binary import BinaryDescriptor


class IndexLoadError(Exception):
    """Raised when a module index cannot be built from its source."""

    def __init__(self, reason: str, hint: str) -> None:
        super().__init__(reason)
        self.reason = reason
        self.hint = hint


@dataclass(slots=True, frozen=True)
class RuntimeModuleEntry:
    """A module the live runtime reports as loaded."""

    module_name: str
    reported_version: str


@dataclass(slots=True, frozen=True)
class InstalledPackageEntry:
    """A package the package manager installed, keyed by the module it provides."""

    module_name: str
    display_name_and_version: str
    expected_binary: BinaryDescriptor | None = None
    package_name: str = ""
    version: str = ""
    binary_name: str = ""


@dataclass(slots=True, frozen=True)
class RuntimeSnapshot:
    """Loaded modules plus the runtime's configured extension directory."""

    extension_dir: Path | None
    modules: dict[str, RuntimeModuleEntry]


RuntimeModuleIndex = dict[str, RuntimeModuleEntry]
InstalledPackageIndex = dict[str, InstalledPackageEntry]


def runtime_module_index(versions: Mapping[str, str]) -> RuntimeModuleIndex:
    """Build a runtime index from a name -> version mapping, keeping its order."""
    return {
        name: RuntimeModuleEntry(module_name=name, reported_version=version)
        for name, version in versions.items()
    }


def installed_package_index(entries: Iterable[InstalledPackageEntry]) -> InstalledPackageIndex:
    """Key installed entries by module name, rejecting duplicates."""
    index: InstalledPackageIndex = {}
    for entry in entries:
        existing = index.get(entry.module_name)
        if existing is not None:
            raise IndexLoadError(
                reason=(
                    f"Module '{entry.module_name}' is provided by both "
                    f"'{existing.display_name_and_version}' and "
                    f"'{entry.display_name_and_version}'."
                ),
                hint="Remove one of the conflicting packages from the install record.",
            )
        index[entry.module_name] = entry
    return index


def normalize_module_name(name: str) -> str:
    """Return the index key for a module; runtimes match module names case-insensitively."""
    return name.strip().lower()
