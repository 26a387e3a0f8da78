"""CLI commands for installing and uninstalling a game patch set."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import NoReturn, Optional

import typer

from .config import Settings, load_settings
from .engine import ApplicationOutcome, PatchRunReport
from .errors import GamePatchError
from .installer import InstallSummary, run_check, run_install
from .reporting import TELEMETRY_LOGGER
from .uninstall import UninstallEngine, UninstallSummary

APP_HELP = "Download, install and uninstall a BPS patch set for a game directory."

app = typer.Typer(help=APP_HELP)

GAME_DIR_OPTION = typer.Option(
    ...,
    "--game-dir",
    "-d",
    help="Directory containing the game executable.",
)
CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    help="Optional YAML configuration file.",
)
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Show debug output and telemetry events.")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    TELEMETRY_LOGGER.setLevel(logging.INFO if verbose else logging.WARNING)


def _load(config: Optional[Path]) -> Settings:
    try:
        return load_settings(config)
    except GamePatchError as error:
        _fail(error)


def _fail(error: BaseException) -> NoReturn:
    """Print ``error`` with its cause chain and exit with status 1."""

    typer.echo("\n--- ERROR ---", err=True)
    typer.echo(str(error), err=True)
    cause = error.__cause__
    while cause is not None:
        typer.echo(f"  caused by: {cause}", err=True)
        cause = cause.__cause__
    typer.echo("-------------", err=True)
    raise typer.Exit(code=1)


def _render_patch_report(report: PatchRunReport) -> None:
    """Print a concise per-file summary of a patch run."""
    typer.echo("Patch summary:")
    for file_report in report.files:
        typer.echo(f"- {file_report.entry.source_path}: {file_report.outcome.value}")
        if file_report.error is not None and file_report.outcome != ApplicationOutcome.APPLIED:
            typer.echo(f"    ! {file_report.error}")
        if file_report.restore_error is not None:
            typer.echo(f"    ! {file_report.restore_error}")
    if report.aborted:
        typer.echo("Outcome: aborted")
    else:
        typer.echo(f"Outcome: {'ok' if report.ok else 'failed'}")


def _render_install(summary: InstallSummary) -> None:
    typer.echo(f"Platform: {summary.platform}")
    _render_patch_report(summary.patches)
    if summary.ancillary is not None:
        ancillary = summary.ancillary
        typer.echo(
            f"Ancillary files: {len(ancillary.copied)} copied, "
            f"{len(ancillary.backed_up)} backed up, {len(ancillary.errors)} error(s)"
        )
        for entry in ancillary.errors:
            typer.echo(f"  - {entry}")


def _render_uninstall(summary: UninstallSummary) -> None:
    for entry in summary.entries:
        typer.echo(f"- {entry.backup.as_posix()}: {entry.outcome.value}")
    typer.echo(f"Files restored: {summary.restored}")
    if summary.errors:
        typer.echo(f"Errors: {summary.errors}")


@app.command()
def install(
    game_dir: Path = GAME_DIR_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Download and install the latest patch set."""
    _configure_logging(verbose)
    settings = _load(config)
    typer.echo(f"Installing into {game_dir}")
    try:
        summary = run_install(game_dir, settings)
    except GamePatchError as error:
        _fail(error)
    _render_install(summary)
    typer.echo("Installation complete.")


@app.command()
def check(
    game_dir: Path = GAME_DIR_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Verify that the game files match the patch set without modifying them."""
    _configure_logging(verbose)
    settings = _load(config)
    try:
        summary = run_check(game_dir, settings)
    except GamePatchError as error:
        _fail(error)
    _render_patch_report(summary.patches)
    if not summary.patches.ok:
        raise typer.Exit(code=1)


@app.command()
def uninstall(
    game_dir: Path = GAME_DIR_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Restore the original files from their ``.bak`` backups."""
    _configure_logging(verbose)
    # Uninstall only needs the game directory; the configuration is still validated.
    _load(config)
    typer.echo(f"Uninstalling from {game_dir}")
    try:
        summary = UninstallEngine(game_dir).run()
        _render_uninstall(summary)
        summary.raise_for_errors()
    except GamePatchError as error:
        _fail(error)
    typer.echo("Uninstall complete.")


if __name__ == "__main__":
    app()
