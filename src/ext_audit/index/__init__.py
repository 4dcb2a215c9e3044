"""Runtime and installed-package module indexes."""

from .installed import (
    EXTENSION_PACKAGE_TYPES,
    load_installed_packages,
    parse_installed_packages,
)
from .models import (
    IndexLoadError,
    InstalledPackageEntry,
    InstalledPackageIndex,
    RuntimeModuleEntry,
    RuntimeModuleIndex,
    RuntimeSnapshot,
    installed_package_index,
    normalize_module_name,
    runtime_module_index,
)
from .runtime import load_runtime_snapshot, parse_runtime_payload, query_runtime

__all__ = [
    "EXTENSION_PACKAGE_TYPES",
    "IndexLoadError",
    "InstalledPackageEntry",
    "InstalledPackageIndex",
    "RuntimeModuleEntry",
    "RuntimeModuleIndex",
    "RuntimeSnapshot",
    "installed_package_index",
    "load_installed_packages",
    "load_runtime_snapshot",
    "normalize_module_name",
    "parse_installed_packages",
    "parse_runtime_payload",
    "query_runtime",
    "runtime_module_index",
]
