from __future__ import annotations

import shutil
import zipfile
from pathlib import Path

import pytest

from gamepatch.config import load_settings
from gamepatch.engine import ApplicationOutcome
from gamepatch.errors import GamePatchError, VerificationMismatch
from gamepatch.installer import run_check, run_install
from gamepatch.manifest import parse_patch_index
from gamepatch.uninstall import UninstallEngine


@pytest.fixture()
def published(tmp_path: Path, make_patch, monkeypatch: pytest.MonkeyPatch):
    """Serve a patch index and archive from local files instead of HTTP."""

    archive = tmp_path / "served.zip"
    with zipfile.ZipFile(archive, "w") as bundle:
        bundle.writestr("data.bps", make_patch(b"english data", b"donnees francaises"))
        bundle.writestr("lang/fr.json", '{"yes": "oui"}')

    index = parse_patch_index(
        {
            "itch": {
                "fileUrl": "https://example.com/itch.zip",
                "patchs": [{"patchPath": "data.bps", "sourcePath": "data.win"}],
            },
            "steam": {"fileUrl": "https://example.com/steam.zip", "patchs": []},
        }
    )
    requested: list[str] = []

    def fake_fetch(url: str, *, timeout: float):
        requested.append(url)
        return index

    def fake_download(url: str, destination: Path, *, timeout: float) -> Path:
        requested.append(url)
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(archive, destination)
        return destination

    monkeypatch.setattr("gamepatch.installer.fetch_patch_index", fake_fetch)
    monkeypatch.setattr("gamepatch.installer.download_file", fake_download)
    return requested


def _game(tmp_path: Path, content: bytes = b"english data") -> Path:
    game_dir = tmp_path / "Deltarune"
    (game_dir / "lang").mkdir(parents=True)
    (game_dir / "data.win").write_bytes(content)
    (game_dir / "lang" / "fr.json").write_text("{}", encoding="utf-8")
    return game_dir


def test_install_applies_patches_and_copies_files(tmp_path: Path, published) -> None:
    game_dir = _game(tmp_path)
    settings = load_settings(None, work_dir=tmp_path / "work", index_url="https://example.com/index.json")

    summary = run_install(game_dir, settings)

    assert summary.platform == "itch"
    assert published == ["https://example.com/index.json", "https://example.com/itch.zip"]
    assert summary.patches.outcomes() == [ApplicationOutcome.APPLIED]
    assert (game_dir / "data.win").read_bytes() == b"donnees francaises"
    assert (game_dir / "data.win.bak").read_bytes() == b"english data"
    assert (game_dir / "lang" / "fr.json").read_text(encoding="utf-8") == '{"yes": "oui"}'
    assert summary.ancillary is not None
    assert summary.ancillary.backed_up == [game_dir / "lang" / "fr.json.bak"]
    assert not (game_dir / "data.bps").exists()

    uninstall = UninstallEngine(game_dir).run()
    assert uninstall.ok
    assert (game_dir / "data.win").read_bytes() == b"english data"
    assert (game_dir / "lang" / "fr.json").read_text(encoding="utf-8") == "{}"


def test_install_aborts_on_mismatch_without_copying(tmp_path: Path, published) -> None:
    game_dir = _game(tmp_path, b"modded data!")
    settings = load_settings(None, work_dir=tmp_path / "work")

    with pytest.raises(VerificationMismatch):
        run_install(game_dir, settings)

    assert (game_dir / "data.win").read_bytes() == b"modded data!"
    assert (game_dir / "lang" / "fr.json").read_text(encoding="utf-8") == "{}"
    assert not list(game_dir.rglob("*.bak"))


def test_install_requires_game_directory(tmp_path: Path, published) -> None:
    settings = load_settings(None, work_dir=tmp_path / "work")

    with pytest.raises(GamePatchError):
        run_install(tmp_path / "missing", settings)

    assert published == []


def test_check_leaves_game_untouched(tmp_path: Path, published) -> None:
    game_dir = _game(tmp_path)
    settings = load_settings(None, work_dir=tmp_path / "work")

    summary = run_check(game_dir, settings)

    assert summary.patches.outcomes() == [ApplicationOutcome.VERIFIED]
    assert summary.ancillary is None
    assert (game_dir / "data.win").read_bytes() == b"english data"
    assert not list(game_dir.rglob("*.bak"))


def test_install_reports_unusable_work_dir(tmp_path: Path, published) -> None:
    game_dir = _game(tmp_path)
    (tmp_path / "blocker").write_text("not a directory", encoding="utf-8")
    settings = load_settings(None, work_dir=tmp_path / "blocker" / "work")

    with pytest.raises(GamePatchError, match="Unable to create working directory"):
        run_install(game_dir, settings)

    assert (game_dir / "data.win").read_bytes() == b"english data"
