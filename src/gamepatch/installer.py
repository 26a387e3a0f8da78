"""End-to-end install flow: index -> archive -> patches -> ancillary files."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .ancillary import AncillaryReport, copy_ancillary_files
from .archive import download_file, extract_archive
from .backup import BackupManager
from .config import Settings
from .engine import PatchApplicationEngine, PatchRunReport
from .errors import GamePatchError
from .manifest import PlatformInfo, fetch_patch_index, select_platform
from .reporting import EventReporter

__all__ = ["InstallSummary", "prepare_patch_files", "run_check", "run_install"]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class InstallSummary:
    platform: str
    extract_dir: Path
    patches: PatchRunReport
    ancillary: AncillaryReport | None = None


def _require_game_dir(game_dir: Path) -> Path:
    game_dir = Path(game_dir)
    if not game_dir.is_dir():
        raise GamePatchError(f"{game_dir} is not a valid directory.", details={"game_dir": game_dir.as_posix()})
    return game_dir


def prepare_patch_files(game_dir: Path, settings: Settings) -> tuple[str, PlatformInfo, Path]:
    """Resolve the platform, then download and extract its archive."""

    index = fetch_patch_index(settings.index_url, timeout=settings.timeout)
    platform = select_platform(game_dir, override=settings.platform)
    info = index.platform(platform)
    LOGGER.info("Patch archive for platform '%s': %s", platform, info.file_url)

    try:
        settings.work_dir.mkdir(parents=True, exist_ok=True)
    except OSError as error:
        raise GamePatchError(
            f"Unable to create working directory {settings.work_dir}: {error}",
            details={"work_dir": settings.work_dir.as_posix()},
        ) from error
    archive = download_file(info.file_url, settings.archive_path, timeout=settings.timeout)
    extract_dir = extract_archive(archive, settings.extract_dir)
    return platform, info, extract_dir


def run_install(game_dir: Path, settings: Settings, *, reporter: EventReporter | None = None) -> InstallSummary:
    """Install the patch set into ``game_dir``.

    Raises the error that aborted patch application; ancillary files are only
    copied once every patch went through.
    """

    game_dir = _require_game_dir(game_dir)
    reporter = reporter or EventReporter()
    LOGGER.info("Game directory: %s", game_dir)

    platform, info, extract_dir = prepare_patch_files(game_dir, settings)

    backups = BackupManager()
    engine = PatchApplicationEngine(extract_dir, game_dir, backups=backups, reporter=reporter)
    report = engine.run(info.entries())
    report.raise_for_abort()

    ancillary = copy_ancillary_files(
        extract_dir,
        game_dir,
        patch_extension=settings.patch_extension,
        backups=backups,
        reporter=reporter,
    )
    return InstallSummary(platform=platform, extract_dir=extract_dir, patches=report, ancillary=ancillary)


def run_check(game_dir: Path, settings: Settings, *, reporter: EventReporter | None = None) -> InstallSummary:
    """Verify that every patch matches the game files without modifying anything."""

    game_dir = _require_game_dir(game_dir)
    platform, info, extract_dir = prepare_patch_files(game_dir, settings)
    engine = PatchApplicationEngine(extract_dir, game_dir, reporter=reporter)
    report = engine.run(info.entries(), dry_run=True)
    return InstallSummary(platform=platform, extract_dir=extract_dir, patches=report)
