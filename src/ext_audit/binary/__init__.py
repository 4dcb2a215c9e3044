"""Binary checksum primitives."""

from .descriptor import (
    SHORT_CHECKSUM_LENGTH,
    BinaryDescriptor,
    ChecksumMismatchError,
    sha256_file,
    short_checksum,
)

__all__ = [
    "BinaryDescriptor",
    "ChecksumMismatchError",
    "SHORT_CHECKSUM_LENGTH",
    "sha256_file",
    "short_checksum",
]
