"""YAML configuration for the installer."""

from __future__ import annotations

import copy
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError

__all__ = ["DEFAULT_CONFIG_NAME", "DEFAULT_CONFIG_TEMPLATE", "Settings", "load_settings"]

DEFAULT_CONFIG_NAME = "gamepatch.yaml"

DEFAULT_CONFIG_TEMPLATE: Dict[str, Any] = {
    "index_url": "https://deltarune-fr.com/patch-files/linux/patch_index.json",
    "work_dir": str(Path(tempfile.gettempdir()) / "gamepatch"),
    "archive_name": "patch_download.zip",
    "extract_dir_name": "patch_files",
    "timeout": 60,
    "platform": None,
    "patch_extension": ".bps",
}


class Settings(BaseModel):
    """Validated installer settings."""

    model_config = ConfigDict(extra="forbid")

    index_url: str
    work_dir: Path
    archive_name: str = "patch_download.zip"
    extract_dir_name: str = "patch_files"
    timeout: float = Field(default=60, gt=0)
    platform: Optional[str] = None
    patch_extension: str = ".bps"

    @property
    def archive_path(self) -> Path:
        return self.work_dir / self.archive_name

    @property
    def extract_dir(self) -> Path:
        return self.work_dir / self.extract_dir_name


def _copy_config_template() -> Dict[str, Any]:
    """Return a deep copy of the default configuration template."""
    return copy.deepcopy(DEFAULT_CONFIG_TEMPLATE)


def load_settings(config_path: Path | None = None, **overrides: Any) -> Settings:
    """Merge the YAML file (if any) and ``overrides`` over the defaults."""

    data = _copy_config_template()
    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        try:
            with config_path.open("r", encoding="utf-8") as handle:
                loaded = yaml.safe_load(handle) or {}
        except yaml.YAMLError as error:
            raise ConfigError(f"Failed to parse config: {error}") from error
        if not isinstance(loaded, dict):
            raise ConfigError("Configuration must be a mapping at the top level.")
        data.update(loaded)

    data.update({key: value for key, value in overrides.items() if value is not None})
    try:
        return Settings.model_validate(data)
    except ValidationError as error:
        raise ConfigError(f"Invalid configuration: {error}") from error
