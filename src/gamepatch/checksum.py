"""CRC-32 helpers used to gate patch application."""

from __future__ import annotations

import zlib
from pathlib import Path

from .errors import MalformedContainer

__all__ = [
    "FOOTER_SIZE",
    "checksum",
    "expected_checksum",
    "file_checksum",
    "format_checksum",
    "verify",
]

# Footer layout: source CRC, target CRC, patch CRC (uint32 LE each).
FOOTER_SIZE = 12


def checksum(data: bytes) -> int:
    """Return the CRC-32/ISO-HDLC checksum of ``data`` as an unsigned int."""
    return zlib.crc32(data) & 0xFFFFFFFF


def file_checksum(path: Path) -> int:
    """Read ``path`` fresh and return its checksum."""
    return checksum(Path(path).read_bytes())


def expected_checksum(container: bytes) -> int:
    """Return the source checksum recorded in a patch container footer."""

    if len(container) < FOOTER_SIZE:
        raise MalformedContainer(
            f"Patch container is {len(container)} bytes; at least {FOOTER_SIZE} are required.",
            details={"size": len(container)},
        )
    start = len(container) - FOOTER_SIZE
    return int.from_bytes(container[start : start + 4], "little")


def verify(source: bytes, container: bytes) -> bool:
    """Return ``True`` when ``source`` has the checksum ``container`` expects."""
    return checksum(source) == expected_checksum(container)


def format_checksum(value: int) -> str:
    return f"0x{value:08X}"
