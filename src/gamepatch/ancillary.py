"""Copy non-patch files from the extracted archive into the game directory."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from .backup import BackupManager
from .errors import BackupRenameFailed, GamePatchError
from .reporting import EventReporter

__all__ = ["AncillaryReport", "copy_ancillary_files"]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class AncillaryReport:
    copied: list[Path] = field(default_factory=list)
    backed_up: list[Path] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def copy_ancillary_files(
    extract_dir: Path,
    game_dir: Path,
    *,
    patch_extension: str = ".bps",
    backups: BackupManager | None = None,
    reporter: EventReporter | None = None,
) -> AncillaryReport:
    """Copy every non-patch file below ``extract_dir`` to ``game_dir``.

    Existing destinations are moved aside to ``<name>.bak`` first. A file whose
    backup or copy fails is logged and skipped; creating parent directories is
    not recoverable and propagates.
    """

    extract_dir = Path(extract_dir)
    game_dir = Path(game_dir)
    backups = backups or BackupManager()
    reporter = reporter or EventReporter()
    report = AncillaryReport()

    for path in sorted(extract_dir.rglob("*")):
        if not path.is_file():
            continue
        if path.suffix.lower() == patch_extension.lower():
            continue

        relative = path.relative_to(extract_dir)
        destination = game_dir / relative
        LOGGER.info("Copying %s -> %s", path, destination)

        if not destination.parent.exists():
            LOGGER.info("Creating directory %s", destination.parent)
            try:
                destination.parent.mkdir(parents=True, exist_ok=True)
            except OSError as error:
                raise GamePatchError(
                    f"Unable to create directory {destination.parent}: {error}",
                    details={"directory": destination.parent.as_posix()},
                ) from error

        if destination.exists():
            try:
                backup = backups.backup_by_rename(destination)
            except BackupRenameFailed as error:
                LOGGER.error("%s. Skipping this file.", error)
                report.errors.append(str(error))
                reporter.emit("ancillary.skipped", path=relative, error=str(error))
                continue
            LOGGER.info("Existing file saved as %s", backup)
            report.backed_up.append(backup)

        try:
            shutil.copy2(path, destination)
        except OSError as error:
            LOGGER.error("Unable to copy %s to %s: %s", path, destination, error)
            report.errors.append(f"{relative.as_posix()}: {error}")
            reporter.emit("ancillary.skipped", path=relative, error=str(error))
            continue
        report.copied.append(destination)
        reporter.emit("ancillary.copied", path=relative)

    return report
