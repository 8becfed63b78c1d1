"""
Locations of files querybuilder keeps between runs.
"""

import os
import platform
from pathlib import Path


APP_NAME = "querybuilder"

# Overrides the data directory, e.g. for tests or portable installs
DATA_DIR_ENV = "QUERYBUILDER_DATA_DIR"


def get_persistent_data_directory() -> Path:
    """
    Get the persistent data directory for the application (cross-platform).

    Returns:
        Path to the persistent data directory, created if missing.

    Platform-specific locations:
        - Windows: %APPDATA%/querybuilder
        - macOS: ~/Library/Application Support/querybuilder
        - Linux: $XDG_CONFIG_HOME/querybuilder or ~/.config/querybuilder
    """
    override = os.environ.get(DATA_DIR_ENV)
    if override:
        data_dir = Path(override)
    else:
        system = platform.system()
        if system == "Windows":
            base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
        elif system == "Darwin":
            base = Path.home() / "Library" / "Application Support"
        else:
            base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
        data_dir = base / APP_NAME

    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def get_settings_file_path() -> Path:
    return get_persistent_data_directory() / "settings.json"


def get_log_file_path() -> Path:
    return get_persistent_data_directory() / "log.txt"


def get_old_log_file_path() -> Path:
    return get_persistent_data_directory() / "log.old.txt"


def get_presets_directory() -> Path:
    """
    Get the directory holding saved filter presets.

    Returns:
        Path to the presets directory, created if missing.
    """
    presets_dir = get_persistent_data_directory() / "presets"
    presets_dir.mkdir(parents=True, exist_ok=True)
    return presets_dir
