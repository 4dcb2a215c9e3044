"""Installed package index built from a Composer-style installed.json."""

from __future__ import annotations

import json
from pathlib import Path

from ext_audit.binary import BinaryDescriptor
from ext_audit.index.models import (
    IndexLoadError,
    InstalledPackageEntry,
    InstalledPackageIndex,
    installed_package_index,
    normalize_module_name,
)

EXTENSION_PACKAGE_TYPES = ("php-ext", "php-ext-zend")
INSTALLED_BINARY_KEY = "pie-installed-binary"
BINARY_CHECKSUM_KEY = "pie-installed-binary-checksum"
CHECKSUM_ALGORITHM_KEY = "pie-installed-binary-checksum-algorithm"
SUPPORTED_CHECKSUM_ALGORITHM = "sha256"


def load_installed_packages(path: Path) -> InstalledPackageIndex:
    """Read installed.json and index extension packages by module name."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as error:
        raise IndexLoadError(
            reason=f"Installed package record is not readable: {path}",
            hint=f"Check the --installed path ({error.strerror or error}).",
        ) from error
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as error:
        raise IndexLoadError(
            reason=f"Installed package record is not valid JSON: {path}",
            hint=f"Line {error.lineno}, column {error.colno}: {error.msg}.",
        ) from error
    return parse_installed_packages(payload)


def parse_installed_packages(payload: object) -> InstalledPackageIndex:
    """Index extension packages from a decoded installed.json payload."""
    packages = payload.get("packages") if isinstance(payload, dict) else payload
    if not isinstance(packages, list):
        raise IndexLoadError(
            reason="Installed package record must be a list or an object with 'packages'.",
            hint="Point --installed at vendor/composer/installed.json.",
        )
    entries: list[InstalledPackageEntry] = []
    for package in packages:
        if not isinstance(package, dict):
            continue
        if package.get("type") not in EXTENSION_PACKAGE_TYPES:
            continue
        entry = installed_entry_from_package(package)
        if entry is not None:
            entries.append(entry)
    return installed_package_index(entries)


def installed_entry_from_package(package: dict[str, object]) -> InstalledPackageEntry | None:
    """Build one entry, or None when the package has no usable name."""
    name = package.get("name")
    if not isinstance(name, str) or not name:
        return None
    declared_name = extension_name(package)
    if not declared_name:
        return None
    raw_version = package.get("version")
    version = raw_version if isinstance(raw_version, str) else ""
    label = f"{name} {version}" if version else name
    return InstalledPackageEntry(
        module_name=normalize_module_name(declared_name),
        binary_name=declared_name,
        display_name_and_version=label,
        expected_binary=expected_binary(package),
        package_name=name,
        version=version,
    )


def extension_name(package: dict[str, object]) -> str:
    """Return the module a package provides, in its declared case."""
    php_ext = package.get("php-ext")
    if isinstance(php_ext, dict):
        declared = php_ext.get("extension-name")
        if isinstance(declared, str) and declared:
            return declared
    name = package.get("name")
    if not isinstance(name, str):
        return ""
    return name.rsplit("/", 1)[-1]


def expected_binary(package: dict[str, object]) -> BinaryDescriptor | None:
    """Read the install-time binary record, failing closed on anything unexpected."""
    extra = package.get("extra")
    if not isinstance(extra, dict):
        return None
    recorded_path = extra.get(INSTALLED_BINARY_KEY)
    recorded_checksum = extra.get(BINARY_CHECKSUM_KEY)
    if not isinstance(recorded_path, str) or not recorded_path:
        return None
    if not isinstance(recorded_checksum, str) or not recorded_checksum:
        return None

    algorithm = extra.get(CHECKSUM_ALGORITHM_KEY, SUPPORTED_CHECKSUM_ALGORITHM)
    if ":" in recorded_checksum:
        prefix, recorded_checksum = recorded_checksum.split(":", 1)
        tagged = extra.get(CHECKSUM_ALGORITHM_KEY)
        if tagged is not None and (
            not isinstance(tagged, str) or tagged.lower() != prefix.lower()
        ):
            return None
        algorithm = prefix
    if not isinstance(algorithm, str) or algorithm.lower() != SUPPORTED_CHECKSUM_ALGORITHM:
        return None
    if not recorded_checksum:
        return None
    return BinaryDescriptor.from_recorded_metadata(recorded_path, recorded_checksum)
