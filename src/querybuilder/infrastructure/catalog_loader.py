"""
Field catalog loading.

A catalog file is JSON: either a list of field objects or an object with a
"fields" list. Each field object accepts the keys of Field.from_dict, e.g.

    {"name": "cos_provider", "label": "Provider", "group": "billing",
     "valueOptions": ["AWS", "GCP"], "defaultOperator": "in"}
"""

import json
from pathlib import Path
from typing import Union

from ..core.models import Field
from ..core.operators import STANDARD_OPERATORS
from .logging_config import get_logger


logger = get_logger(__name__)


class CatalogError(ValueError):
    """Raised when a catalog file is not a list of field definitions."""


def parse_field_catalog(data: Union[list, dict]) -> list[Field]:
    """
    Build fields from decoded catalog JSON.

    Raises:
        CatalogError: If the data is not shaped like a catalog, two fields
            share a name, or a field declares an operator with no textual
            form.
    """
    if isinstance(data, dict):
        data = data.get('fields')
    if not isinstance(data, list):
        raise CatalogError("Field catalog must be a list of fields or an object with a 'fields' list")

    catalog = []
    seen = set()
    for index, entry in enumerate(data):
        if not isinstance(entry, dict) or not entry.get('name'):
            raise CatalogError(f"Catalog entry {index} has no field name")
        field_def = Field.from_dict(entry)
        if field_def.name in seen:
            raise CatalogError(f"Duplicate field name in catalog: {field_def.name}")
        unknown = [op.name for op in field_def.operators if op.name not in STANDARD_OPERATORS]
        if field_def.default_operator and field_def.default_operator not in STANDARD_OPERATORS:
            unknown.append(field_def.default_operator)
        if unknown:
            raise CatalogError(f"Field {field_def.name!r} declares unknown operators: {', '.join(unknown)}")
        seen.add(field_def.name)
        catalog.append(field_def)
    return catalog


def load_field_catalog(path: Path) -> list[Field]:
    """
    Load a field catalog from a JSON file.

    Args:
        path: Path to the catalog file.

    Returns:
        The fields, in file order.

    Raises:
        OSError: If the file cannot be read.
        CatalogError: If the content is not a valid catalog.
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse field catalog {path}: {e}")
        raise CatalogError(f"Invalid JSON in {path}: {e}") from e
    except OSError as e:
        logger.error(f"Failed to read field catalog {path}: {e}", exc_info=True)
        raise

    try:
        catalog = parse_field_catalog(data)
    except CatalogError as e:
        logger.error(f"Invalid field catalog {path}: {e}")
        raise

    logger.info(f"Loaded {len(catalog)} fields from {path}")
    return catalog
