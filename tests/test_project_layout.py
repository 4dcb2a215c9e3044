from __future__ import annotations

from pathlib import Path


def test_required_package_paths_exist() -> None:
    root = Path(__file__).resolve().parents[1]
    required = [
        "src/ext_audit/cli.py",
        "src/ext_audit/reconcile.py",
        "src/ext_audit/report.py",
        "src/ext_audit/binary/__init__.py",
        "src/ext_audit/index/__init__.py",
        "src/ext_audit/logging/__init__.py",
    ]
    for rel in required:
        assert (root / rel).exists(), rel
