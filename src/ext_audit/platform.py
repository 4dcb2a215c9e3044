"""Host platform details needed to locate module binaries."""

from __future__ import annotations

import platform

WINDOWS_LIBRARY_SUFFIX = ".dll"
POSIX_LIBRARY_SUFFIX = ".so"


def library_suffix(system: str | None = None) -> str:
    """Return the dynamic-library suffix for ``system`` (default: this host)."""
    name = system if system is not None else platform.system()
    if name.lower().startswith(("windows", "cygwin_nt", "msys_nt")):
        return WINDOWS_LIBRARY_SUFFIX
    return POSIX_LIBRARY_SUFFIX
