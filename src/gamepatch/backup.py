"""Reversible file mutation based on ``.bak`` siblings.

Two strategies coexist. Ancillary files are backed up by *renaming* the
destination before a new file is copied over it. Patched files are backed up
by *copying* because the delta decoder still reads the original in place.
Both produce ``<file name>.bak`` which the uninstall flow consumes.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from .errors import BackupCreationFailed, BackupRenameFailed, RestoreFailed

__all__ = [
    "BACKUP_SUFFIX",
    "BackupManager",
    "backup_path_for",
    "is_backup_path",
    "original_path_for",
]

LOGGER = logging.getLogger(__name__)

BACKUP_SUFFIX = ".bak"


def backup_path_for(path: Path) -> Path:
    """Return the backup location for ``path`` (``game.exe`` -> ``game.exe.bak``)."""
    path = Path(path)
    return path.with_name(path.name + BACKUP_SUFFIX)


def is_backup_path(path: Path) -> bool:
    return Path(path).name.endswith(BACKUP_SUFFIX)


def original_path_for(bak_path: Path) -> Path:
    """Strip exactly one trailing ``.bak``.

    Returns ``bak_path`` unchanged when no original name can be derived, e.g.
    for a file literally named ``.bak``.
    """

    bak_path = Path(bak_path)
    if not is_backup_path(bak_path):
        return bak_path
    stem = bak_path.name[: -len(BACKUP_SUFFIX)]
    if stem in ("", ".", ".."):
        return bak_path
    return bak_path.with_name(stem)


class BackupManager:
    """Create and restore ``.bak`` backups next to target files."""

    def backup_path(self, target: Path) -> Path:
        return backup_path_for(target)

    def backup_by_rename(self, target: Path) -> Path:
        """Move ``target`` aside, replacing any previous backup."""

        target = Path(target)
        backup = self.backup_path(target)
        # Backups are not versioned; the newest one wins.
        try:
            backup.unlink(missing_ok=True)
        except OSError as error:
            # The rename below reports the failure if the stale backup is still in the way.
            LOGGER.debug("Unable to remove previous backup %s: %s", backup, error)
        try:
            target.rename(backup)
        except OSError as error:
            raise BackupRenameFailed(
                f"Unable to rename {target} to {backup}: {error}",
                details={"target": target.as_posix(), "backup": backup.as_posix()},
            ) from error
        LOGGER.debug("Moved %s to %s", target, backup)
        return backup

    def backup_by_copy(self, target: Path) -> Path:
        """Copy ``target`` to its backup path, leaving the original in place."""

        target = Path(target)
        backup = self.backup_path(target)
        try:
            shutil.copy2(target, backup)
        except OSError as error:
            raise BackupCreationFailed(
                f"Unable to create backup {backup}: {error}",
                details={"target": target.as_posix(), "backup": backup.as_posix()},
            ) from error
        LOGGER.debug("Copied %s to %s", target, backup)
        return backup

    def restore(self, target: Path) -> Path:
        """Copy the backup of ``target`` back over it."""

        target = Path(target)
        backup = self.backup_path(target)
        if not backup.is_file():
            raise RestoreFailed(
                f"Backup {backup} not found; cannot restore {target}.",
                details={"target": target.as_posix(), "backup": backup.as_posix()},
            )
        try:
            shutil.copy2(backup, target)
        except OSError as error:
            raise RestoreFailed(
                f"Unable to restore {target} from {backup}: {error}",
                details={"target": target.as_posix(), "backup": backup.as_posix()},
            ) from error
        LOGGER.debug("Restored %s from %s", target, backup)
        return target
