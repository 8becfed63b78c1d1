"""
Application settings and configuration.

Settings are stored as JSON in the persistent data directory
(see querybuilder.infrastructure.paths) and loaded on first access.

Example:
    from querybuilder.config.settings import get_settings, get_settings_manager

    settings = get_settings()
    print(settings.default_field)

    # Update settings (auto-saves)
    manager = get_settings_manager()
    manager.update(theme="light_blue", debounce_ms=400)

    # Remember a preset (auto-saves)
    manager.add_recent_preset("aws-only")
"""

import json
import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Optional

from ..core.debounce import DEFAULT_DEBOUNCE_MS
from ..core.editors import DEFAULT_GROUP_ORDER
from ..core.models import BuilderMode
from ..infrastructure.paths import get_settings_file_path


@dataclass
class AppSettings:
    """Application-wide settings."""

    # Logging settings
    log_level: int = logging.INFO
    log_to_file: bool = True

    # UI settings
    window_width: int = 1000
    window_height: int = 640
    theme: str = "dark_blue"  # Any qt-material theme, e.g. dark_teal, light_blue

    # Builder settings
    default_mode: str = BuilderMode.STRUCTURED.value
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    default_field: str = "cos_provider"
    exempt_field_names: list[str] = field(default_factory=list)
    group_order: list[str] = field(default_factory=lambda: list(DEFAULT_GROUP_ORDER))
    field_catalog_path: Optional[str] = None

    # Recent presets
    recent_presets: list[str] = field(default_factory=list)
    max_recent_items: int = 10

    @property
    def builder_mode(self) -> BuilderMode:
        try:
            return BuilderMode(self.default_mode)
        except ValueError:
            return BuilderMode.STRUCTURED


class SettingsManager:
    """
    Manages loading and saving application settings.
    """

    def __init__(self, config_file: Optional[Path] = None):
        """
        Initialize the settings manager.

        Args:
            config_file: Path to configuration file. If None, uses default location.
        """
        self.config_file = config_file if config_file is not None else get_settings_file_path()
        self._settings = AppSettings()
        self._logger = logging.getLogger(__name__)

    def load(self) -> AppSettings:
        """
        Load settings from the configuration file.

        Unknown keys are ignored; a missing or unreadable file leaves the
        defaults in place.

        Returns:
            The loaded settings object.
        """
        if not self.config_file.exists():
            self._logger.info(f"Settings file not found at {self.config_file}, using defaults")
            return self._settings

        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            self._logger.error(f"Failed to parse settings file: {e}. Using defaults.")
            return self._settings
        except OSError as e:
            self._logger.error(f"Failed to load settings: {e}. Using defaults.")
            return self._settings

        if not isinstance(data, dict):
            self._logger.error("Settings file does not hold an object. Using defaults.")
            return self._settings

        known = {f.name for f in fields(AppSettings)}
        for key, value in data.items():
            if key in known:
                setattr(self._settings, key, value)
            else:
                self._logger.debug(f"Ignoring unknown setting in file: {key}")

        self._logger.info(f"Settings loaded from {self.config_file}")
        return self._settings

    def save(self, settings: Optional[AppSettings] = None) -> None:
        """
        Save settings to the configuration file.

        Args:
            settings: Settings object to save. If None, saves current settings.
        """
        if settings is not None:
            self._settings = settings

        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)

            # Atomic write: write to temp file, then rename
            temp_file = self.config_file.with_suffix('.tmp')
            with open(temp_file, 'w', encoding='utf-8') as f:
                json.dump(asdict(self._settings), f, indent=2, ensure_ascii=False)
            temp_file.replace(self.config_file)

            self._logger.info(f"Settings saved to {self.config_file}")
        except OSError as e:
            self._logger.error(f"Failed to save settings: {e}", exc_info=True)

    def get(self) -> AppSettings:
        return self._settings

    def update(self, **kwargs) -> None:
        """
        Update specific settings and auto-save.

        Args:
            **kwargs: Setting names and values to update.
        """
        for key, value in kwargs.items():
            if hasattr(self._settings, key):
                setattr(self._settings, key, value)
            else:
                self._logger.warning(f"Ignoring unknown setting: {key}")

        self.save()

    def add_recent_preset(self, name: str) -> None:
        """
        Move a preset name to the front of the recent presets list.

        Args:
            name: Name of the preset that was saved or loaded.
        """
        recent = [n for n in self._settings.recent_presets if n != name]
        recent.insert(0, name)
        self._settings.recent_presets = recent[:self._settings.max_recent_items]

        self.save()

    def remove_recent_preset(self, name: str) -> None:
        if name in self._settings.recent_presets:
            self._settings.recent_presets.remove(name)
            self.save()

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values and save."""
        self._settings = AppSettings()
        self.save()


# Global settings instance
_settings_manager: Optional[SettingsManager] = None


def get_settings_manager() -> SettingsManager:
    """
    Get the global settings manager instance.

    Returns:
        The global SettingsManager.
    """
    global _settings_manager
    if _settings_manager is None:
        _settings_manager = SettingsManager()
        _settings_manager.load()
    return _settings_manager


def get_settings() -> AppSettings:
    """Get the current application settings."""
    return get_settings_manager().get()
