"""
Configuration management for code-manager.

Loads configuration from TOML files in the following priority:
1. Path specified via --config flag
2. .cmrc.toml in current directory
3. ~/.config/code-manager/config.toml
4. ~/.cmrc
"""

import logging
from pathlib import Path
from typing import Optional

import toml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

DEFAULT_BASE_PATH = "~/Code"
DEFAULT_STATUS_FILE = "~/.cm/status.json"


def expand_path(value: str) -> str:
    """Expand ~ and make the path absolute."""
    return str(Path(value).expanduser().absolute())


class Config(BaseModel):
    """Main configuration model for code-manager."""

    model_config = ConfigDict(validate_default=True)

    base_path: str = Field(
        default=DEFAULT_BASE_PATH,
        description="Root directory for everything code-manager creates",
    )
    repositories_dir: Optional[str] = Field(
        default=None,
        description="Directory clones and worktrees live under (default: <base_path>/repos)",
    )
    workspaces_dir: Optional[str] = Field(
        default=None,
        description="Directory branch workspace files are written to (default: <base_path>/workspaces)",
    )
    status_file: str = Field(
        default=DEFAULT_STATUS_FILE,
        description="Path of the JSON status registry",
    )

    @field_validator("base_path", "status_file")
    @classmethod
    def _expand(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("path must not be empty")
        return expand_path(value)

    @model_validator(mode="after")
    def _fill_directories(self) -> "Config":
        if self.repositories_dir:
            self.repositories_dir = expand_path(self.repositories_dir)
        else:
            self.repositories_dir = str(Path(self.base_path) / "repos")
        if self.workspaces_dir:
            self.workspaces_dir = expand_path(self.workspaces_dir)
        else:
            self.workspaces_dir = str(Path(self.base_path) / "workspaces")
        return self


def get_search_paths(config_path: Optional[str] = None) -> list[Path]:
    """Config file locations in lookup order."""
    paths = [
        Path(config_path) if config_path else None,
        Path.cwd() / ".cmrc.toml",
        get_default_config_path(),
        Path.home() / ".cmrc",
    ]
    return [path for path in paths if path is not None]


def load_config(config_path: Optional[str] = None) -> Config:
    """
    Load configuration from file or use defaults.

    Args:
        config_path: Optional explicit path to config file.

    Returns:
        Config instance with loaded or default values.
    """
    for path in get_search_paths(config_path):
        if path.exists():
            try:
                data = toml.load(path)
                return Config(**data)
            except (OSError, toml.TomlDecodeError, ValueError) as e:
                logger.warning(f"Ignoring invalid config file {path}: {e}")
                continue

    return Config()


def save_config(config: Config, path: Path) -> None:
    """
    Save configuration to a TOML file.

    Args:
        config: Configuration to save.
        path: Path to save the config file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        toml.dump(config.model_dump(exclude_none=True), f)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".config" / "code-manager" / "config.toml"
