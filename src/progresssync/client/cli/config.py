"""Configuration utilities for ProgressSync CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import json
import os
from pathlib import Path


def get_config_dir() -> Path:
    """Get the configuration directory for ProgressSync.

    Returns:
        Path to $PROGRESSSYNC_HOME, or ~/.progresssync by default.
    """
    override = os.environ.get("PROGRESSSYNC_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".progresssync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def get_cache_path() -> Path:
    """Get the path to the local document cache."""
    return get_config_dir() / "cache.db"


def load_config() -> dict[str, str]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, str]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))
