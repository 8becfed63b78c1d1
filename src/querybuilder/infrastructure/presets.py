"""
Saved filter presets.

A preset is one RuleGroup stored as JSON (RuleGroup.to_dict) under
<data dir>/presets/<name>.json.
"""

import json
import re
from pathlib import Path
from typing import Optional

from ..core.errors import QueryBuilderError
from ..core.models import RuleGroup
from .logging_config import get_logger
from .paths import get_presets_directory


logger = get_logger(__name__)

PRESET_SUFFIX = ".json"
PRESET_FORMAT_VERSION = "1.0"

_UNSAFE_CHARS = re.compile(r'[^A-Za-z0-9 _.-]')


class PresetError(QueryBuilderError):
    """Raised when a preset cannot be stored or read back."""


def preset_file_name(name: str) -> str:
    """
    Turn a preset name into a file name that is valid on every platform.

    Raises:
        PresetError: If nothing usable remains of the name.
    """
    stem = _UNSAFE_CHARS.sub('_', name.strip()).strip('. ')
    if not stem:
        raise PresetError(f"Invalid preset name: {name!r}")
    return stem + PRESET_SUFFIX


def _preset_path(name: str, directory: Optional[Path]) -> Path:
    return (directory or get_presets_directory()) / preset_file_name(name)


def save_preset(name: str, query: RuleGroup, directory: Optional[Path] = None) -> Path:
    """
    Save a query under a preset name, replacing any preset of that name.

    Returns:
        Path of the written file.
    """
    path = _preset_path(name, directory)
    data = {'version': PRESET_FORMAT_VERSION, 'name': name, 'query': query.to_dict()}

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_file = path.with_suffix('.tmp')
        with open(temp_file, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        temp_file.replace(path)
    except OSError as e:
        logger.error(f"Failed to save preset {name!r}: {e}", exc_info=True)
        raise PresetError(f"Could not save preset {name!r}: {e}") from e

    logger.info(f"Saved preset {name!r} to {path}")
    return path


def load_preset(name: str, directory: Optional[Path] = None) -> RuleGroup:
    """
    Load the query saved under a preset name.

    Raises:
        PresetError: If the preset is missing or unreadable.
    """
    path = _preset_path(name, directory)
    if not path.exists():
        raise PresetError(f"No preset named {name!r}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        query = RuleGroup.from_dict(data['query'])
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse preset {path}: {e}")
        raise PresetError(f"Preset {name!r} is not valid JSON") from e
    except (KeyError, TypeError, ValueError) as e:
        logger.error(f"Preset {path} does not hold a query: {e}")
        raise PresetError(f"Preset {name!r} does not hold a query") from e
    except OSError as e:
        logger.error(f"Failed to read preset {path}: {e}", exc_info=True)
        raise PresetError(f"Could not read preset {name!r}: {e}") from e

    logger.info(f"Loaded preset {name!r}")
    return query


def list_presets(directory: Optional[Path] = None) -> list[str]:
    """
    List saved preset names, sorted case-insensitively.

    Files that cannot be read are skipped.
    """
    directory = directory or get_presets_directory()
    if not directory.exists():
        return []

    names = []
    for path in directory.glob('*' + PRESET_SUFFIX):
        try:
            with open(path, 'r', encoding='utf-8') as f:
                names.append(json.load(f).get('name') or path.stem)
        except (OSError, json.JSONDecodeError, AttributeError) as e:
            logger.warning(f"Skipping unreadable preset {path.name}: {e}")
    return sorted(names, key=str.lower)


def delete_preset(name: str, directory: Optional[Path] = None) -> bool:
    """
    Delete a preset.

    Returns:
        True if a preset was deleted, False if none had this name.
    """
    path = _preset_path(name, directory)
    if not path.exists():
        return False
    try:
        path.unlink()
    except OSError as e:
        logger.error(f"Failed to delete preset {name!r}: {e}", exc_info=True)
        raise PresetError(f"Could not delete preset {name!r}: {e}") from e
    logger.info(f"Deleted preset {name!r}")
    return True
