from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

from ext_audit.binary import BinaryDescriptor, ChecksumMismatchError, short_checksum


def test_from_file_hashes_full_content(tmp_path: Path) -> None:
    target = tmp_path / "xdebug.so"
    content = b"\x7fELF" + b"\x00" * 300_000
    target.write_bytes(content)

    descriptor = BinaryDescriptor.from_file(target)

    assert descriptor.path == target
    assert descriptor.checksum == hashlib.sha256(content).hexdigest()
    assert len(descriptor.checksum) == 64
    assert descriptor.checksum == descriptor.checksum.lower()


def test_from_file_missing_raises_os_error(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        BinaryDescriptor.from_file(tmp_path / "absent.so")


def test_from_recorded_metadata_does_not_validate_or_touch_disk(tmp_path: Path) -> None:
    descriptor = BinaryDescriptor.from_recorded_metadata(str(tmp_path / "nope.so"), "NOT-HEX")

    assert descriptor.path == tmp_path / "nope.so"
    assert descriptor.checksum == "NOT-HEX"


def test_self_comparison_always_verifies(tmp_path: Path) -> None:
    target = tmp_path / "redis.so"
    target.write_bytes(b"binary payload")

    BinaryDescriptor.from_file(target).verify_against(BinaryDescriptor.from_file(target))


def test_verify_against_mismatch_carries_both_checksums(tmp_path: Path) -> None:
    expected = BinaryDescriptor.from_recorded_metadata(tmp_path / "a.so", "a" * 64)
    actual = BinaryDescriptor.from_recorded_metadata(tmp_path / "a.so", "b" * 64)

    with pytest.raises(ChecksumMismatchError) as excinfo:
        expected.verify_against(actual)

    assert excinfo.value.expected == "a" * 64
    assert excinfo.value.actual == "b" * 64
    assert excinfo.value.expected_short == "aaaaaaaa"
    assert excinfo.value.actual_short == "bbbbbbbb"
    assert "was bbbbbbbb..., expected aaaaaaaa..." in str(excinfo.value)


def test_short_checksum_defaults_to_eight_characters() -> None:
    assert short_checksum("0123456789abcdef") == "01234567"
    assert short_checksum("0123456789abcdef", length=4) == "0123"
