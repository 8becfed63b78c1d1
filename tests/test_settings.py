"""
Tests for the SettingsManager persistence behaviour.

These tests verify that settings are saved and loaded correctly and that the
global settings manager uses the persistent data directory when no custom
config_file is provided.
"""
from __future__ import annotations

from pathlib import Path
import json

import pytest

from querybuilder.config import settings as settings_mod
from querybuilder.config.settings import AppSettings, SettingsManager
from querybuilder.core.models import BuilderMode


@pytest.fixture
def fresh_global_manager():
    """Make sure every test starts without a cached global manager."""
    settings_mod._settings_manager = None
    yield
    settings_mod._settings_manager = None


def test_save_and_load(tmp_path: Path):
    config_file = tmp_path / "settings.json"

    # Create a manager with a custom file path
    manager = SettingsManager(config_file=config_file)
    manager.load()

    # Update and remember presets (auto-saves)
    manager.update(theme="light_blue", window_width=1400, debounce_ms=300)
    manager.add_recent_preset("aws-only")
    manager.add_recent_preset("eu-regions")

    # File should be created
    assert config_file.exists()

    # Load again using a new manager instance to verify persistence
    new_manager = SettingsManager(config_file=config_file)
    settings = new_manager.load()

    assert settings.theme == "light_blue"
    assert settings.window_width == 1400
    assert settings.debounce_ms == 300
    assert settings.recent_presets == ["eu-regions", "aws-only"]

    # Check contents on disk match expectations
    with open(config_file, "r", encoding="utf-8") as f:
        data = json.load(f)

    assert data["theme"] == "light_blue"
    assert data["group_order"][0] == "billing"
    assert not config_file.with_suffix(".tmp").exists()


def test_defaults_without_file(tmp_path: Path):
    manager = SettingsManager(config_file=tmp_path / "missing.json")

    settings = manager.load()

    assert settings == AppSettings()
    assert settings.builder_mode is BuilderMode.STRUCTURED
    assert settings.debounce_ms == 600
    assert settings.default_field == "cos_provider"


def test_unreadable_file_keeps_defaults(tmp_path: Path):
    config_file = tmp_path / "settings.json"
    config_file.write_text("{not json", encoding="utf-8")

    assert SettingsManager(config_file=config_file).load() == AppSettings()

    config_file.write_text("[1, 2]", encoding="utf-8")

    assert SettingsManager(config_file=config_file).load() == AppSettings()


def test_unknown_keys_are_ignored(tmp_path: Path):
    config_file = tmp_path / "settings.json"
    config_file.write_text(json.dumps({"theme": "dark_teal", "recent_datasets": []}), encoding="utf-8")

    settings = SettingsManager(config_file=config_file).load()

    assert settings.theme == "dark_teal"
    assert not hasattr(settings, "recent_datasets")


def test_update_ignores_unknown_settings(tmp_path: Path):
    manager = SettingsManager(config_file=tmp_path / "settings.json")

    manager.update(nonexistent=1, theme="light_teal")

    assert manager.get().theme == "light_teal"
    assert not hasattr(manager.get(), "nonexistent")


def test_recent_presets_are_unique_and_capped(tmp_path: Path):
    manager = SettingsManager(config_file=tmp_path / "settings.json")
    manager.update(max_recent_items=3)

    for name in ["a", "b", "c", "a", "d"]:
        manager.add_recent_preset(name)

    assert manager.get().recent_presets == ["d", "a", "c"]

    manager.remove_recent_preset("a")

    assert manager.get().recent_presets == ["d", "c"]


def test_invalid_mode_falls_back_to_structured():
    assert AppSettings(default_mode="visual").builder_mode is BuilderMode.STRUCTURED
    assert AppSettings(default_mode="textual").builder_mode is BuilderMode.TEXTUAL


def test_reset_to_defaults(tmp_path: Path):
    manager = SettingsManager(config_file=tmp_path / "settings.json")
    manager.update(theme="light_blue")

    manager.reset_to_defaults()

    assert manager.get() == AppSettings()
    assert SettingsManager(config_file=tmp_path / "settings.json").load().theme == "dark_blue"


def test_get_settings_manager_uses_default_path(data_dir: Path, fresh_global_manager):
    # The data directory comes from QUERYBUILDER_DATA_DIR (see conftest)
    manager = settings_mod.get_settings_manager()

    assert manager.config_file.parent == data_dir
    assert manager.config_file.name == "settings.json"
    assert settings_mod.get_settings_manager() is manager

    manager.save()
    assert manager.config_file.exists()
