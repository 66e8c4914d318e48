"""TOML configuration loader for reverse sync.

Loads SyncConfig from the [sync] table of defaults.toml shipped with the
package, or from a project file such as .specsync.toml.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

from pydantic import ValidationError

from specsync.schemas.sync import SyncConfig

# Default config directory relative to the specsync package
_CONFIG_DIR = Path(__file__).parent / "config"

# Project-level override picked up from the working directory
PROJECT_CONFIG = ".specsync.toml"


def default_config_path() -> Path:
    return _CONFIG_DIR / "defaults.toml"


def load_sync_config(config_path: Path | None = None) -> SyncConfig:
    """Load reverse sync settings from a TOML file.

    Args:
        config_path: Path to a TOML file with a [sync] table. Defaults to
            specsync/config/defaults.toml.

    Returns:
        SyncConfig with values from the file; missing keys keep defaults.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ValueError: If the TOML or one of its values is invalid.
    """
    path = config_path or default_config_path()
    if not path.exists():
        raise FileNotFoundError(f"Sync config not found: {path}")

    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {path}: {e}") from e

    section = raw.get("sync", {})
    if not isinstance(section, dict):
        raise ValueError(f"[sync] in {path} must be a table")

    try:
        return SyncConfig(**section)
    except ValidationError as e:
        raise ValueError(f"Invalid sync config in {path}: {e}") from e


def resolve_config_path(explicit: Path | None = None, cwd: Path | None = None) -> Path:
    """Pick the config file: explicit path, then ./.specsync.toml, then defaults."""
    if explicit is not None:
        return explicit
    project = (cwd or Path.cwd()) / PROJECT_CONFIG
    if project.exists():
        return project
    return default_config_path()
