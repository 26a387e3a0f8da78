"""Exception hierarchy shared by the install and uninstall flows."""

from __future__ import annotations

from typing import Any, Mapping


class GamePatchError(RuntimeError):
    """Base error for every failure surfaced by ``gamepatch``."""

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = dict(details or {})


class ConfigError(GamePatchError):
    """Raised when the configuration file cannot be parsed or validated."""


class ManifestError(GamePatchError):
    """Raised when the patch index cannot be fetched or understood."""


class DownloadError(GamePatchError):
    """Raised when the patch archive cannot be downloaded or extracted."""


class MalformedContainer(GamePatchError):
    """Raised when a patch container is too short to hold its checksum footer."""


class VerificationMismatch(GamePatchError):
    """Raised when a source file does not match the checksum a patch expects."""


class MissingPatchFile(GamePatchError):
    """Raised when a patch listed in the index is absent from the archive."""


class MissingSourceFile(GamePatchError):
    """Raised when a file to patch is absent from the game directory."""


class DecodeError(GamePatchError):
    """Raised by the BPS decoder when a delta cannot be applied."""


class PatchApplicationError(GamePatchError):
    """Raised when applying a patch or writing its output fails."""


class BackupError(GamePatchError):
    """Base class for backup and restore failures."""


class BackupCreationFailed(BackupError):
    """Raised when a copy-based backup cannot be written."""


class BackupRenameFailed(BackupError):
    """Raised when a rename-based backup cannot be made."""


class RestoreFailed(BackupError):
    """Raised when a file cannot be restored from its backup."""


class UninstallError(GamePatchError):
    """Raised when an uninstall run cannot start or finishes with errors."""
