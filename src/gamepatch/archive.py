"""Download and extraction of the patch archive."""

from __future__ import annotations

import logging
import shutil
import zipfile
from pathlib import Path

import requests

from .errors import DownloadError

__all__ = ["download_file", "extract_archive"]

LOGGER = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 1024 * 1024


def download_file(url: str, destination: Path, *, timeout: float = 60) -> Path:
    """Stream ``url`` into ``destination``."""

    destination = Path(destination)
    LOGGER.info("Downloading %s to %s", url, destination)
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        with requests.get(url, stream=True, timeout=timeout) as response:
            response.raise_for_status()
            with destination.open("wb") as handle:
                for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    if chunk:
                        handle.write(chunk)
    except requests.RequestException as error:
        raise DownloadError(f"Unable to download {url}: {error}", details={"url": url}) from error
    except OSError as error:
        raise DownloadError(f"Unable to write {destination}: {error}", details={"url": url}) from error
    LOGGER.info("Downloaded %s", url)
    return destination


def extract_archive(archive: Path, target_dir: Path) -> Path:
    """Extract ``archive`` into a freshly emptied ``target_dir``."""

    archive = Path(archive)
    target_dir = Path(target_dir)
    try:
        if target_dir.exists():
            LOGGER.info("Cleaning extraction directory %s", target_dir)
            shutil.rmtree(target_dir)
        target_dir.mkdir(parents=True)
    except OSError as error:
        raise DownloadError(
            f"Unable to prepare extraction directory {target_dir}: {error}",
            details={"target_dir": target_dir.as_posix()},
        ) from error

    root = target_dir.resolve()
    LOGGER.info("Extracting %s to %s", archive, target_dir)
    try:
        with zipfile.ZipFile(archive) as bundle:
            for member in bundle.infolist():
                resolved = (root / member.filename).resolve()
                if resolved != root and root not in resolved.parents:
                    raise DownloadError(
                        f"Archive member escapes the extraction directory: {member.filename}",
                        details={"member": member.filename},
                    )
            bundle.extractall(target_dir)
    except zipfile.BadZipFile as error:
        raise DownloadError(f"{archive} is not a valid zip archive: {error}") from error
    except OSError as error:
        raise DownloadError(
            f"Unable to extract {archive} to {target_dir}: {error}",
            details={"archive": archive.as_posix(), "target_dir": target_dir.as_posix()},
        ) from error
    return target_dir
