"""Install and uninstall BPS patch sets against a local game directory."""

from .backup import BackupManager, backup_path_for, original_path_for
from .checksum import checksum, expected_checksum, verify
from .container import PatchContainer
from .engine import ApplicationOutcome, FileReport, PatchApplicationEngine, PatchEntry, PatchRunReport
from .uninstall import UninstallEngine, UninstallOutcome, UninstallSummary

__all__ = [
    "ApplicationOutcome",
    "BackupManager",
    "FileReport",
    "PatchApplicationEngine",
    "PatchContainer",
    "PatchEntry",
    "PatchRunReport",
    "UninstallEngine",
    "UninstallOutcome",
    "UninstallSummary",
    "backup_path_for",
    "checksum",
    "expected_checksum",
    "original_path_for",
    "verify",
]
