"""Patch index models, retrieval and platform selection."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List

import requests
from pydantic import BaseModel, ConfigDict, Field, RootModel, ValidationError

from .engine import PatchEntry
from .errors import ManifestError

__all__ = [
    "PatchDetail",
    "PatchIndex",
    "PlatformInfo",
    "fetch_patch_index",
    "parse_patch_index",
    "select_platform",
]

LOGGER = logging.getLogger(__name__)

STEAM_MARKER = "steam_api.dll"


class PatchDetail(BaseModel):
    """One BPS patch inside the archive and the game file it targets."""

    model_config = ConfigDict(populate_by_name=True)

    patch_path: str = Field(alias="patchPath")
    source_path: str = Field(alias="sourcePath")

    def to_entry(self) -> PatchEntry:
        return PatchEntry(patch_path=self.patch_path, source_path=self.source_path)


class PlatformInfo(BaseModel):
    """Archive location and ordered patch list for one platform."""

    model_config = ConfigDict(populate_by_name=True)

    file_url: str = Field(alias="fileUrl")
    patches: List[PatchDetail] = Field(default_factory=list, alias="patchs")

    def entries(self) -> List[PatchEntry]:
        return [detail.to_entry() for detail in self.patches]


class PatchIndex(RootModel[Dict[str, PlatformInfo]]):
    """Mapping of platform keys (``steam``, ``itch``) to platform details."""

    def platform(self, key: str) -> PlatformInfo:
        try:
            return self.root[key]
        except KeyError as error:
            raise ManifestError(
                f"Platform '{key}' not found in the patch index.",
                details={"platform": key, "available": sorted(self.root)},
            ) from error


def parse_patch_index(payload: Any) -> PatchIndex:
    try:
        return PatchIndex.model_validate(payload)
    except ValidationError as error:
        raise ManifestError(f"Invalid patch index: {error}") from error


def fetch_patch_index(url: str, *, timeout: float = 60) -> PatchIndex:
    """Download and validate the patch index published at ``url``."""

    LOGGER.info("Downloading patch index from %s", url)
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
        payload = response.json()
    except requests.RequestException as error:
        raise ManifestError(f"Unable to download patch index from {url}: {error}", details={"url": url}) from error
    except ValueError as error:
        raise ManifestError(f"Patch index at {url} is not valid JSON: {error}", details={"url": url}) from error
    index = parse_patch_index(payload)
    LOGGER.info("Patch index lists %d platform(s).", len(index.root))
    return index


def select_platform(game_dir: Path, *, override: str | None = None) -> str:
    """Return ``steam`` when the Steam API library ships with the game, else ``itch``."""

    if override:
        LOGGER.info("Using configured platform '%s'.", override)
        return override
    marker = Path(game_dir) / STEAM_MARKER
    if marker.is_file():
        LOGGER.info("Found %s; selecting the Steam patch.", STEAM_MARKER)
        return "steam"
    LOGGER.info("%s not found; selecting the itch patch.", STEAM_MARKER)
    return "itch"
