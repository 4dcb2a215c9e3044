from __future__ import annotations

import hashlib
from pathlib import Path

from ext_audit.binary import BinaryDescriptor
from ext_audit.index import InstalledPackageEntry, installed_package_index, runtime_module_index
from ext_audit.reconcile import reconcile


def _fixture(tmp_path: Path) -> tuple[dict, dict]:
    content = b"opcache-like"
    (tmp_path / "zeta.so").write_bytes(content)
    (tmp_path / "alpha.so").write_bytes(b"alpha")
    runtime = runtime_module_index(
        {"zeta": "1.0", "core": "8.3.1", "alpha": "2.0", "json": "8.3.1", "mid": "0.1"}
    )
    installed = installed_package_index(
        [
            InstalledPackageEntry(
                module_name="mid",
                display_name_and_version="acme/mid 0.1",
            ),
            InstalledPackageEntry(
                module_name="zeta",
                display_name_and_version="acme/zeta 1.0",
                expected_binary=BinaryDescriptor.from_recorded_metadata(
                    tmp_path / "zeta.so", hashlib.sha256(content).hexdigest()
                ),
            ),
            InstalledPackageEntry(module_name="ghost", display_name_and_version="acme/ghost 9"),
            InstalledPackageEntry(
                module_name="alpha",
                display_name_and_version="acme/alpha 2.0",
                expected_binary=BinaryDescriptor.from_recorded_metadata(
                    tmp_path / "alpha.so", "f" * 64
                ),
            ),
            InstalledPackageEntry(module_name="absent", display_name_and_version="acme/absent 1"),
        ]
    )
    return runtime, installed


def test_every_module_lands_in_exactly_one_bucket(tmp_path: Path) -> None:
    runtime, installed = _fixture(tmp_path)

    result = reconcile(runtime, installed, tmp_path, ".so")

    matched = [item.runtime.module_name for item in result.matched]
    unmanaged = [entry.module_name for entry in result.unmanaged_loaded]
    not_loaded = [entry.module_name for entry in result.installed_not_loaded]
    assert sorted(matched + unmanaged) == sorted(runtime)
    assert not set(matched) & set(unmanaged)
    assert sorted(matched + not_loaded) == sorted(installed)
    assert not set(matched) & set(not_loaded)


def test_output_preserves_source_order(tmp_path: Path) -> None:
    runtime, installed = _fixture(tmp_path)

    result = reconcile(runtime, installed, tmp_path, ".so")

    assert [item.runtime.module_name for item in result.matched] == ["zeta", "alpha", "mid"]
    assert [entry.module_name for entry in result.unmanaged_loaded] == ["core", "json"]
    assert [entry.module_name for entry in result.installed_not_loaded] == ["ghost", "absent"]


def test_repeated_calls_yield_identical_results(tmp_path: Path) -> None:
    runtime, installed = _fixture(tmp_path)

    first = reconcile(runtime, installed, tmp_path, ".so")
    second = reconcile(runtime, installed, tmp_path, ".so")

    assert first == second
