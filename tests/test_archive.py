from __future__ import annotations

import zipfile
from pathlib import Path

import pytest
import requests

from gamepatch.archive import download_file, extract_archive
from gamepatch.errors import DownloadError


def _zip(path: Path, members: dict[str, bytes]) -> Path:
    with zipfile.ZipFile(path, "w") as bundle:
        for name, payload in members.items():
            bundle.writestr(name, payload)
    return path


def test_extract_archive_replaces_previous_content(tmp_path: Path) -> None:
    archive = _zip(tmp_path / "patch.zip", {"data.bps": b"BPS1", "lang/fr.json": b"{}"})
    target = tmp_path / "patch_files"
    target.mkdir()
    (target / "stale.txt").write_text("old", encoding="utf-8")

    extract_archive(archive, target)

    assert (target / "data.bps").read_bytes() == b"BPS1"
    assert (target / "lang" / "fr.json").read_bytes() == b"{}"
    assert not (target / "stale.txt").exists()


def test_extract_archive_rejects_path_traversal(tmp_path: Path) -> None:
    archive = _zip(tmp_path / "evil.zip", {"../evil.txt": b"boom"})

    with pytest.raises(DownloadError):
        extract_archive(archive, tmp_path / "out")

    assert not (tmp_path / "evil.txt").exists()


def test_extract_archive_rejects_bad_zip(tmp_path: Path) -> None:
    archive = tmp_path / "broken.zip"
    archive.write_bytes(b"not a zip")

    with pytest.raises(DownloadError):
        extract_archive(archive, tmp_path / "out")


def test_extract_archive_wraps_cleanup_failure(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    archive = _zip(tmp_path / "patch.zip", {"data.bps": b"BPS1"})
    target = tmp_path / "patch_files"
    target.mkdir()

    def refuse(path, *args, **kwargs):
        raise PermissionError("in use")

    monkeypatch.setattr("gamepatch.archive.shutil.rmtree", refuse)

    with pytest.raises(DownloadError, match="Unable to prepare extraction directory") as excinfo:
        extract_archive(archive, target)

    assert isinstance(excinfo.value.__cause__, PermissionError)


def test_extract_archive_wraps_write_failure(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    archive = _zip(tmp_path / "patch.zip", {"data.bps": b"BPS1"})

    def refuse(self, *args, **kwargs):
        raise OSError("No space left on device")

    monkeypatch.setattr(zipfile.ZipFile, "extractall", refuse)

    with pytest.raises(DownloadError, match="No space left on device"):
        extract_archive(archive, tmp_path / "out")


class _FakeResponse:
    def __init__(self, chunks: list[bytes], *, error: Exception | None = None) -> None:
        self.chunks = chunks
        self.error = error

    def __enter__(self) -> "_FakeResponse":
        return self

    def __exit__(self, *exc_info) -> None:
        return None

    def raise_for_status(self) -> None:
        if self.error is not None:
            raise self.error

    def iter_content(self, chunk_size: int):
        yield from self.chunks


def test_download_file_streams_to_disk(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    seen: dict[str, object] = {}

    def fake_get(url: str, *, stream: bool, timeout: float) -> _FakeResponse:
        seen.update(url=url, stream=stream, timeout=timeout)
        return _FakeResponse([b"PK", b"", b"\x03\x04"])

    monkeypatch.setattr("gamepatch.archive.requests.get", fake_get)

    destination = download_file("https://example.com/p.zip", tmp_path / "dl" / "p.zip", timeout=7)

    assert destination.read_bytes() == b"PK\x03\x04"
    assert seen == {"url": "https://example.com/p.zip", "stream": True, "timeout": 7}


def test_download_file_http_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        "gamepatch.archive.requests.get",
        lambda url, stream, timeout: _FakeResponse([], error=requests.HTTPError("500 Server Error")),
    )

    with pytest.raises(DownloadError):
        download_file("https://example.com/p.zip", tmp_path / "p.zip")


def test_download_file_wraps_directory_failure(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "blocker").write_text("not a directory", encoding="utf-8")
    monkeypatch.setattr(
        "gamepatch.archive.requests.get",
        lambda url, stream, timeout: _FakeResponse([b"PK"]),
    )

    with pytest.raises(DownloadError):
        download_file("https://example.com/p.zip", tmp_path / "blocker" / "dl" / "p.zip")
