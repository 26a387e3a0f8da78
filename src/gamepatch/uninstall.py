"""Reverse an installation from the ``.bak`` files left on disk."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator

from .backup import is_backup_path, original_path_for
from .errors import UninstallError
from .reporting import EventReporter

__all__ = ["UninstallEngine", "UninstallEntry", "UninstallOutcome", "UninstallSummary"]

LOGGER = logging.getLogger(__name__)


class UninstallOutcome(str, Enum):
    """Result of restoring a single backup."""

    RESTORED = "RESTORED"
    RESTORED_NO_CURRENT = "RESTORED_NO_CURRENT"
    AMBIGUOUS_NAME = "AMBIGUOUS_NAME"
    CANNOT_REMOVE_CURRENT = "CANNOT_REMOVE_CURRENT"
    CANNOT_RENAME_BACKUP = "CANNOT_RENAME_BACKUP"


_RESTORED = frozenset({UninstallOutcome.RESTORED, UninstallOutcome.RESTORED_NO_CURRENT})


@dataclass(slots=True)
class UninstallEntry:
    backup: Path
    original: Path | None
    outcome: UninstallOutcome
    message: str = ""


@dataclass(slots=True)
class UninstallSummary:
    """Counts of restored files and errors for one uninstall run."""

    root: Path
    entries: list[UninstallEntry] = field(default_factory=list)

    @property
    def restored(self) -> int:
        return sum(1 for entry in self.entries if entry.outcome in _RESTORED)

    @property
    def errors(self) -> int:
        return sum(1 for entry in self.entries if entry.outcome not in _RESTORED)

    @property
    def ok(self) -> bool:
        return self.errors == 0

    def raise_for_errors(self) -> None:
        if self.errors:
            raise UninstallError(
                f"{self.errors} error(s) occurred during uninstall.",
                details={"restored": self.restored, "errors": self.errors},
            )


class UninstallEngine:
    """Restore every original file for which a ``.bak`` sibling exists."""

    def __init__(self, root: Path, *, reporter: EventReporter | None = None) -> None:
        self.root = Path(root)
        self.reporter = reporter or EventReporter()

    def iter_backups(self) -> Iterator[Path]:
        """Yield backup files below the root in a stable order."""
        for path in sorted(self.root.rglob("*")):
            if path.is_file() and is_backup_path(path):
                yield path

    def run(self) -> UninstallSummary:
        if not self.root.is_dir():
            raise UninstallError(
                f"Game directory {self.root} does not exist or is not a directory.",
                details={"root": self.root.as_posix()},
            )

        summary = UninstallSummary(root=self.root)
        self.reporter.emit("uninstall.started", root=self.root)
        # Materialise the listing first; restoring renames files under the root.
        for backup in list(self.iter_backups()):
            entry = self._restore(backup)
            summary.entries.append(entry)
            self.reporter.emit(
                "uninstall.entry",
                backup=backup,
                original=entry.original,
                outcome=entry.outcome,
                message=entry.message or None,
            )

        LOGGER.info("Restored %d file(s) with %d error(s).", summary.restored, summary.errors)
        self.reporter.emit("uninstall.finished", restored=summary.restored, errors=summary.errors)
        return summary

    def _restore(self, backup: Path) -> UninstallEntry:
        original = original_path_for(backup)
        if original == backup:
            LOGGER.warning("Cannot determine the original name for %s; skipping.", backup)
            return UninstallEntry(backup, None, UninstallOutcome.AMBIGUOUS_NAME, "ambiguous backup name")

        LOGGER.info("Found backup %s", backup)
        outcome = UninstallOutcome.RESTORED
        if original.exists():
            LOGGER.info("Removing patched file %s", original)
            try:
                original.unlink()
            except OSError as error:
                LOGGER.error("Unable to remove %s: %s. Keeping %s.", original, error, backup)
                return UninstallEntry(backup, original, UninstallOutcome.CANNOT_REMOVE_CURRENT, str(error))
        else:
            LOGGER.info("Note: %s did not exist before restoring.", original)
            outcome = UninstallOutcome.RESTORED_NO_CURRENT

        try:
            backup.rename(original)
        except OSError as error:
            # The patched file may already be gone while the backup stays in place.
            LOGGER.error("Unable to rename %s to %s: %s. The backup is kept.", backup, original, error)
            return UninstallEntry(backup, original, UninstallOutcome.CANNOT_RENAME_BACKUP, str(error))

        LOGGER.info("Restored %s", original)
        return UninstallEntry(backup, original, outcome)
