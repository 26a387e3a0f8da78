"""Decoder for the BPS1 binary delta format.

A BPS patch is laid out as::

    "BPS1" | varint source_size | varint target_size | varint metadata_size
    | metadata | actions ... | source_crc | target_crc | patch_crc

Every action is a varint whose two low bits select the command and whose
remaining bits hold ``length - 1``. ``SourceCopy`` and ``TargetCopy`` are
followed by a signed relative offset (low bit is the sign).
"""

from __future__ import annotations

from dataclasses import dataclass

from .checksum import FOOTER_SIZE, checksum, format_checksum
from .errors import DecodeError

__all__ = ["MAGIC", "decode", "encode_number"]

MAGIC = b"BPS1"

_SOURCE_READ = 0
_TARGET_READ = 1
_SOURCE_COPY = 2
_TARGET_COPY = 3


def encode_number(value: int) -> bytes:
    """Encode ``value`` with the BPS variable-length number scheme."""

    if value < 0:
        raise ValueError("BPS numbers are unsigned")
    out = bytearray()
    while True:
        chunk = value & 0x7F
        value >>= 7
        if value == 0:
            out.append(0x80 | chunk)
            return bytes(out)
        out.append(chunk)
        value -= 1


@dataclass(slots=True)
class _Reader:
    """Cursor over the patch body, bounded by the start of the footer."""

    data: bytes
    end: int
    offset: int = 0

    def remaining(self) -> int:
        return self.end - self.offset

    def read_bytes(self, length: int) -> bytes:
        if length > self.remaining():
            raise DecodeError(
                "Patch data ends before the requested read.",
                details={"offset": self.offset, "length": length},
            )
        chunk = self.data[self.offset : self.offset + length]
        self.offset += length
        return chunk

    def read_number(self) -> int:
        number = 0
        shift = 1
        while True:
            if self.offset >= self.end:
                raise DecodeError("Truncated variable-length number in patch.", details={"offset": self.offset})
            byte = self.data[self.offset]
            self.offset += 1
            number += (byte & 0x7F) * shift
            if byte & 0x80:
                return number
            shift <<= 7
            number += shift


def _signed(value: int) -> int:
    return -(value >> 1) if value & 1 else value >> 1


def _footer_value(patch: bytes, index: int) -> int:
    start = len(patch) - FOOTER_SIZE + 4 * index
    return int.from_bytes(patch[start : start + 4], "little")


def decode(patch: bytes, source: bytes) -> bytes:
    """Apply a BPS ``patch`` to ``source`` and return the target bytes."""

    patch = bytes(patch)
    if len(patch) < len(MAGIC) + FOOTER_SIZE:
        raise DecodeError("Patch is too short to be a BPS container.", details={"size": len(patch)})
    if patch[: len(MAGIC)] != MAGIC:
        raise DecodeError("Patch does not start with the BPS1 signature.")

    expected_source = _footer_value(patch, 0)
    expected_target = _footer_value(patch, 1)
    expected_patch = _footer_value(patch, 2)

    actual_patch = checksum(patch[:-4])
    if actual_patch != expected_patch:
        raise DecodeError(
            f"Patch checksum {format_checksum(actual_patch)} does not match {format_checksum(expected_patch)}.",
            details={"expected": expected_patch, "actual": actual_patch},
        )

    reader = _Reader(patch, len(patch) - FOOTER_SIZE, len(MAGIC))
    source_size = reader.read_number()
    target_size = reader.read_number()
    metadata_size = reader.read_number()
    reader.read_bytes(metadata_size)

    if source_size != len(source):
        raise DecodeError(
            f"Source is {len(source)} bytes but the patch expects {source_size}.",
            details={"expected": source_size, "actual": len(source)},
        )
    actual_source = checksum(source)
    if actual_source != expected_source:
        raise DecodeError(
            f"Source checksum {format_checksum(actual_source)} does not match {format_checksum(expected_source)}.",
            details={"expected": expected_source, "actual": actual_source},
        )

    target = bytearray()
    source_offset = 0
    target_offset = 0

    while reader.remaining() > 0:
        data = reader.read_number()
        command = data & 0b11
        length = (data >> 2) + 1
        if len(target) + length > target_size:
            raise DecodeError(
                "Patch writes beyond the declared target size.",
                details={"target_size": target_size, "position": len(target), "length": length},
            )

        if command == _SOURCE_READ:
            start = len(target)
            if start + length > len(source):
                raise DecodeError("SourceRead beyond the end of the source.", details={"position": start})
            target += source[start : start + length]
        elif command == _TARGET_READ:
            target += reader.read_bytes(length)
        elif command == _SOURCE_COPY:
            source_offset += _signed(reader.read_number())
            if source_offset < 0 or source_offset + length > len(source):
                raise DecodeError("SourceCopy outside the source bounds.", details={"offset": source_offset})
            target += source[source_offset : source_offset + length]
            source_offset += length
        else:
            target_offset += _signed(reader.read_number())
            if target_offset < 0 or target_offset >= len(target):
                raise DecodeError("TargetCopy outside the written target.", details={"offset": target_offset})
            # Ranges may overlap the bytes being written, so copy one byte at a time.
            for _ in range(length):
                target.append(target[target_offset])
                target_offset += 1

    if len(target) != target_size:
        raise DecodeError(
            f"Patch produced {len(target)} bytes but declares {target_size}.",
            details={"expected": target_size, "actual": len(target)},
        )
    actual_target = checksum(bytes(target))
    if actual_target != expected_target:
        raise DecodeError(
            f"Target checksum {format_checksum(actual_target)} does not match {format_checksum(expected_target)}.",
            details={"expected": expected_target, "actual": actual_target},
        )
    return bytes(target)
