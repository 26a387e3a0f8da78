"""Sequential verify -> backup -> apply pipeline over a list of patches."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, Sequence

from .backup import BackupManager
from .checksum import checksum, format_checksum
from .container import PatchContainer
from .errors import (
    BackupCreationFailed,
    GamePatchError,
    MalformedContainer,
    MissingPatchFile,
    MissingSourceFile,
    PatchApplicationError,
    RestoreFailed,
    VerificationMismatch,
)
from .reporting import EventReporter

__all__ = [
    "ApplicationOutcome",
    "FileReport",
    "PatchApplicationEngine",
    "PatchEntry",
    "PatchRunReport",
]

LOGGER = logging.getLogger(__name__)


class ApplicationOutcome(str, Enum):
    """Terminal state of one patch entry."""

    APPLIED = "APPLIED"
    VERIFIED = "VERIFIED"
    SKIPPED_MISSING_PATCH = "SKIPPED_MISSING_PATCH"
    SKIPPED_MISSING_SOURCE = "SKIPPED_MISSING_SOURCE"
    VERIFICATION_FAILED = "VERIFICATION_FAILED"
    APPLY_FAILED_RESTORED = "APPLY_FAILED_RESTORED"
    APPLY_FAILED_UNRESTORABLE = "APPLY_FAILED_UNRESTORABLE"


# Outcomes that stop the run; everything else continues with the next entry.
_ABORTING = frozenset(
    {
        ApplicationOutcome.VERIFICATION_FAILED,
        ApplicationOutcome.APPLY_FAILED_RESTORED,
        ApplicationOutcome.APPLY_FAILED_UNRESTORABLE,
    }
)


@dataclass(frozen=True, slots=True)
class PatchEntry:
    """Relative patch path inside the archive and the game file it targets."""

    patch_path: str
    source_path: str


@dataclass(slots=True)
class FileReport:
    """Result of running one entry through the pipeline."""

    entry: PatchEntry
    patch_file: Path
    source_file: Path
    outcome: ApplicationOutcome
    backup: Path | None = None
    expected_checksum: int | None = None
    actual_checksum: int | None = None
    error: GamePatchError | None = None
    restore_error: GamePatchError | None = None

    @property
    def aborts_run(self) -> bool:
        return self.outcome in _ABORTING


@dataclass(slots=True)
class PatchRunReport:
    """Aggregate of every processed entry plus the error that aborted the run."""

    files: list[FileReport] = field(default_factory=list)
    error: GamePatchError | None = None

    @property
    def aborted(self) -> bool:
        return self.error is not None

    @property
    def ok(self) -> bool:
        if self.aborted:
            return False
        return not any(report.outcome == ApplicationOutcome.VERIFICATION_FAILED for report in self.files)

    def counts(self) -> dict[ApplicationOutcome, int]:
        return dict(Counter(report.outcome for report in self.files))

    def outcomes(self) -> list[ApplicationOutcome]:
        return [report.outcome for report in self.files]

    def raise_for_abort(self) -> None:
        """Re-raise the error that aborted the run, if any."""
        if self.error is not None:
            raise self.error


class PatchApplicationEngine:
    """Apply BPS patches from an extracted archive onto a game directory.

    Entries are processed strictly in order. Missing files are skipped, while a
    checksum mismatch or a failed application stops the run so that later
    patches are never applied on top of unknown state.
    """

    def __init__(
        self,
        patch_root: Path,
        source_root: Path,
        *,
        backups: BackupManager | None = None,
        reporter: EventReporter | None = None,
    ) -> None:
        self.patch_root = Path(patch_root)
        self.source_root = Path(source_root)
        self.backups = backups or BackupManager()
        self.reporter = reporter or EventReporter()

    def run(self, entries: Iterable[PatchEntry], *, dry_run: bool = False) -> PatchRunReport:
        """Process ``entries`` and return the run report.

        With ``dry_run`` only the checksum gate is evaluated; nothing is backed
        up or written and mismatches do not stop the remaining checks.
        """

        ordered: Sequence[PatchEntry] = list(entries)
        run = PatchRunReport()
        self.reporter.emit("run.started", entries=len(ordered), dry_run=dry_run)
        for index, entry in enumerate(ordered, start=1):
            LOGGER.info("[%d/%d] Patch '%s' for source '%s'", index, len(ordered), entry.patch_path, entry.source_path)
            report = self._process(entry, dry_run=dry_run)
            run.files.append(report)
            if report.aborts_run and not dry_run:
                run.error = report.error
                remaining = len(ordered) - index
                LOGGER.error("Stopping after %s; %d remaining patch(es) not attempted.", entry.patch_path, remaining)
                self.reporter.emit("run.aborted", patch=entry.patch_path, outcome=report.outcome, remaining=remaining)
                break
        else:
            self.reporter.emit("run.finished", counts={key.value: value for key, value in run.counts().items()})
        return run

    # ----------------------------------------------------------------- stages
    def _process(self, entry: PatchEntry, *, dry_run: bool) -> FileReport:
        patch_file = self.patch_root / entry.patch_path
        source_file = self.source_root / entry.source_path
        self.reporter.emit("patch.pending", patch=patch_file, source=source_file)

        if not patch_file.is_file():
            LOGGER.error("Patch file %s is missing from the extracted archive; skipping.", patch_file)
            error = MissingPatchFile(f"Patch file not found: {patch_file}", details={"patch": patch_file.as_posix()})
            return self._finish(entry, patch_file, source_file, ApplicationOutcome.SKIPPED_MISSING_PATCH, error=error)
        if not source_file.is_file():
            LOGGER.error("Source file %s is missing from the game directory; skipping.", source_file)
            error = MissingSourceFile(f"Source file not found: {source_file}", details={"source": source_file.as_posix()})
            return self._finish(entry, patch_file, source_file, ApplicationOutcome.SKIPPED_MISSING_SOURCE, error=error)

        self.reporter.emit("patch.verifying", patch=patch_file, source=source_file)
        try:
            container = PatchContainer.load(patch_file)
            source = source_file.read_bytes()
            expected = container.expected_checksum
        except MalformedContainer as error:
            LOGGER.error("Patch %s is malformed: %s", patch_file, error)
            return self._finish(entry, patch_file, source_file, ApplicationOutcome.VERIFICATION_FAILED, error=error)
        except OSError as error:
            LOGGER.error("Unable to read %s or %s: %s", patch_file, source_file, error)
            wrapped = GamePatchError(f"Unable to read patch inputs: {error}")
            wrapped.__cause__ = error
            return self._finish(entry, patch_file, source_file, ApplicationOutcome.VERIFICATION_FAILED, error=wrapped)

        actual = checksum(source)
        if actual != expected:
            LOGGER.error(
                "Source %s has checksum %s but patch %s expects %s.",
                source_file,
                format_checksum(actual),
                patch_file,
                format_checksum(expected),
            )
            error = VerificationMismatch(
                f"Source file {source_file} does not match patch {patch_file}.",
                details={"expected": format_checksum(expected), "actual": format_checksum(actual)},
            )
            return self._finish(
                entry,
                patch_file,
                source_file,
                ApplicationOutcome.VERIFICATION_FAILED,
                expected=expected,
                actual=actual,
                error=error,
            )
        LOGGER.info("Source checksum %s matches the patch.", format_checksum(actual))

        if dry_run:
            return self._finish(
                entry, patch_file, source_file, ApplicationOutcome.VERIFIED, expected=expected, actual=actual
            )

        self.reporter.emit("patch.backing_up", source=source_file)
        backup: Path | None = None
        try:
            backup = self.backups.backup_by_copy(source_file)
            LOGGER.info("Backup created at %s", backup)
        except BackupCreationFailed as error:
            # Patching continues without a safety copy.
            LOGGER.warning("%s; continuing without a backup.", error)
            self.reporter.emit("patch.backup_failed", source=source_file, error=str(error))

        self.reporter.emit("patch.applying", patch=patch_file, source=source_file)
        try:
            output = container.apply(source)
            _write_output(source_file, output)
        except PatchApplicationError as error:
            return self._recover(entry, patch_file, source_file, backup, error, expected=expected, actual=actual)

        LOGGER.info("Patched %s", source_file)
        return self._finish(
            entry,
            patch_file,
            source_file,
            ApplicationOutcome.APPLIED,
            backup=backup,
            expected=expected,
            actual=actual,
        )

    def _recover(
        self,
        entry: PatchEntry,
        patch_file: Path,
        source_file: Path,
        backup: Path | None,
        error: PatchApplicationError,
        *,
        expected: int,
        actual: int,
    ) -> FileReport:
        LOGGER.error("Applying %s to %s failed: %s", patch_file, source_file, error)
        self.reporter.emit("patch.restoring", source=source_file, backup=backup)
        if backup is None:
            LOGGER.critical("No backup of %s was made during this run; it cannot be restored.", source_file)
            restore_error: GamePatchError = RestoreFailed(
                f"No backup available for {source_file}.", details={"source": source_file.as_posix()}
            )
            return self._finish(
                entry,
                patch_file,
                source_file,
                ApplicationOutcome.APPLY_FAILED_UNRESTORABLE,
                expected=expected,
                actual=actual,
                error=error,
                restore_error=restore_error,
            )
        try:
            self.backups.restore(source_file)
        except RestoreFailed as restore_failure:
            LOGGER.critical("Unable to restore %s from %s: %s", source_file, backup, restore_failure)
            return self._finish(
                entry,
                patch_file,
                source_file,
                ApplicationOutcome.APPLY_FAILED_UNRESTORABLE,
                backup=backup,
                expected=expected,
                actual=actual,
                error=error,
                restore_error=restore_failure,
            )
        LOGGER.warning("Restored %s from %s", source_file, backup)
        return self._finish(
            entry,
            patch_file,
            source_file,
            ApplicationOutcome.APPLY_FAILED_RESTORED,
            backup=backup,
            expected=expected,
            actual=actual,
            error=error,
        )

    def _finish(
        self,
        entry: PatchEntry,
        patch_file: Path,
        source_file: Path,
        outcome: ApplicationOutcome,
        *,
        backup: Path | None = None,
        expected: int | None = None,
        actual: int | None = None,
        error: GamePatchError | None = None,
        restore_error: GamePatchError | None = None,
    ) -> FileReport:
        report = FileReport(
            entry=entry,
            patch_file=patch_file,
            source_file=source_file,
            outcome=outcome,
            backup=backup,
            expected_checksum=expected,
            actual_checksum=actual,
            error=error,
            restore_error=restore_error,
        )
        self.reporter.emit(
            "patch.finished",
            patch=patch_file,
            source=source_file,
            outcome=outcome,
            expected=format_checksum(expected) if expected is not None else None,
            actual=format_checksum(actual) if actual is not None else None,
            error=str(error) if error else None,
        )
        return report


def _write_output(target: Path, payload: bytes) -> None:
    try:
        with target.open("wb") as handle:
            handle.write(payload)
    except OSError as error:
        raise PatchApplicationError(
            f"Unable to write patched output to {target}: {error}",
            details={"target": target.as_posix()},
        ) from error
