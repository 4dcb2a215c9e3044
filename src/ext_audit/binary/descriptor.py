"""Binary module descriptors and SHA-256 verification."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path

SHORT_CHECKSUM_LENGTH = 8
_READ_CHUNK_BYTES = 1024 * 128


def short_checksum(checksum: str, length: int = SHORT_CHECKSUM_LENGTH) -> str:
    """Return the display prefix of a checksum."""
    return checksum[:length]


class ChecksumMismatchError(Exception):
    """Raised when two binary descriptors carry different checksums."""

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(
            f"Checksum mismatch: was {short_checksum(actual)}..., "
            f"expected {short_checksum(expected)}..."
        )
        self.expected = expected
        self.actual = actual

    @property
    def expected_short(self) -> str:
        return short_checksum(self.expected)

    @property
    def actual_short(self) -> str:
        return short_checksum(self.actual)


@dataclass(slots=True, frozen=True)
class BinaryDescriptor:
    """A module binary path and the SHA-256 of its content."""

    path: Path
    checksum: str

    @classmethod
    def from_file(cls, path: Path | str) -> BinaryDescriptor:
        """Hash the file at ``path``; raises OSError when it cannot be read."""
        file_path = Path(path)
        return cls(path=file_path, checksum=sha256_file(file_path))

    @classmethod
    def from_recorded_metadata(cls, path: Path | str, checksum: str) -> BinaryDescriptor:
        """Build a descriptor from install-time metadata without touching disk."""
        return cls(path=Path(path), checksum=checksum)

    def verify_against(self, other: BinaryDescriptor) -> None:
        """Raise ChecksumMismatchError unless both checksums are equal.

        ``self`` is treated as the expected side and ``other`` as the actual one.
        """
        if self.checksum != other.checksum:
            raise ChecksumMismatchError(expected=self.checksum, actual=other.checksum)


def sha256_file(path: Path) -> str:
    """Compute SHA-256 hash in deterministic chunked reads."""
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        while True:
            chunk = handle.read(_READ_CHUNK_BYTES)
            if not chunk:
                break
            digest.update(chunk)
    return digest.hexdigest()
