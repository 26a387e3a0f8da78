"""Binary patch containers and their application."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from . import bps
from .checksum import checksum, expected_checksum
from .errors import DecodeError, PatchApplicationError

__all__ = ["PatchContainer"]


@dataclass(frozen=True, slots=True)
class PatchContainer:
    """Immutable BPS patch payload."""

    data: bytes
    origin: Path | None = None

    @classmethod
    def load(cls, path: Path) -> "PatchContainer":
        path = Path(path)
        return cls(data=path.read_bytes(), origin=path)

    @property
    def expected_checksum(self) -> int:
        """Checksum the pre-patch source must have (raises ``MalformedContainer``)."""
        return expected_checksum(self.data)

    def matches(self, source: bytes) -> bool:
        return checksum(source) == self.expected_checksum

    def apply(self, source: bytes) -> bytes:
        """Return the patched bytes for ``source``."""

        try:
            return bps.decode(self.data, source)
        except DecodeError as error:
            label = self.origin.as_posix() if self.origin else "<memory>"
            raise PatchApplicationError(
                f"Unable to apply patch {label}: {error}",
                details={"patch": label, **error.details},
            ) from error
