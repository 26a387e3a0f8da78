from __future__ import annotations

import sys
import zlib
from pathlib import Path
from typing import Callable

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from gamepatch.bps import MAGIC, encode_number  # noqa: E402


def _crc(data: bytes) -> bytes:
    return (zlib.crc32(data) & 0xFFFFFFFF).to_bytes(4, "little")


def build_bps_patch(source: bytes, target: bytes, *, metadata: bytes = b"") -> bytes:
    """Encode a BPS patch using a shared-prefix SourceRead and a TargetRead tail."""

    body = bytearray(MAGIC)
    body += encode_number(len(source))
    body += encode_number(len(target))
    body += encode_number(len(metadata))
    body += metadata

    prefix = 0
    while prefix < min(len(source), len(target)) and source[prefix] == target[prefix]:
        prefix += 1
    if prefix:
        body += encode_number(((prefix - 1) << 2) | 0)
    tail = target[prefix:]
    if tail:
        body += encode_number(((len(tail) - 1) << 2) | 1)
        body += tail

    body += _crc(source)
    body += _crc(target)
    body += _crc(bytes(body))
    return bytes(body)


def seal_bps_patch(body: bytes, source: bytes, target: bytes) -> bytes:
    """Append the checksum footer to a hand-written action stream."""

    payload = bytearray(body)
    payload += _crc(source)
    payload += _crc(target)
    payload += _crc(bytes(payload))
    return bytes(payload)


@pytest.fixture()
def make_patch() -> Callable[..., bytes]:
    return build_bps_patch


@pytest.fixture()
def seal_patch() -> Callable[[bytes, bytes, bytes], bytes]:
    return seal_bps_patch


@pytest.fixture()
def game_tree(tmp_path: Path) -> tuple[Path, Path]:
    """Return ``(patch_root, game_root)`` directories under ``tmp_path``."""

    patch_root = tmp_path / "patch_files"
    game_root = tmp_path / "game"
    patch_root.mkdir()
    game_root.mkdir()
    return patch_root, game_root
