"""
Tests for field catalog loading.
"""

import json

import pytest

from querybuilder.core.models import Option
from querybuilder.infrastructure.catalog_loader import CatalogError, load_field_catalog, parse_field_catalog


class TestParseFieldCatalog:
    """Tests for building fields from decoded JSON."""

    def test_list_of_fields(self, catalog):
        assert [f.name for f in catalog][:3] == ["cos_provider", "cos_service", "region"]
        assert catalog[0].default_operator == "in"
        assert catalog[2].value_options[0] == Option(name="eu-west-1", label="Ireland")

    def test_object_with_fields_key(self):
        fields = parse_field_catalog({"fields": [{"name": "a"}, {"name": "b", "groupTitle": "aws"}]})

        assert [f.name for f in fields] == ["a", "b"]
        assert fields[1].group == "aws"

    def test_missing_name_raises(self):
        with pytest.raises(CatalogError):
            parse_field_catalog([{"label": "No name"}])

    def test_duplicate_names_raise(self):
        with pytest.raises(CatalogError):
            parse_field_catalog([{"name": "a"}, {"name": "a"}])

    def test_unknown_operator_raises(self):
        with pytest.raises(CatalogError, match="between"):
            parse_field_catalog([{"name": "cost", "operators": ["between", "="]}])

        with pytest.raises(CatalogError, match="around"):
            parse_field_catalog([{"name": "cost", "defaultOperator": "around"}])

    def test_declared_operators_are_kept(self):
        fields = parse_field_catalog([{"name": "cost", "operators": [{"name": "<", "label": "below"}, "notNull"]}])

        assert [op.name for op in fields[0].operators] == ["<", "notNull"]
        assert fields[0].operators[0].label == "below"

    def test_wrong_shape_raises(self):
        with pytest.raises(CatalogError):
            parse_field_catalog({"items": []})

        with pytest.raises(CatalogError):
            parse_field_catalog(["a"])


class TestLoadFieldCatalog:
    """Tests for reading catalog files."""

    def test_load(self, tmp_path):
        path = tmp_path / "fields.json"
        path.write_text(json.dumps([{"name": "region", "values": ["eu"]}]), encoding="utf-8")

        fields = load_field_catalog(path)

        assert fields[0].name == "region"
        assert fields[0].value_options == (Option(name="eu", label="eu"),)

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "fields.json"
        path.write_text("[", encoding="utf-8")

        with pytest.raises(CatalogError):
            load_field_catalog(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            load_field_catalog(tmp_path / "missing.json")

    def test_catalog_error_is_value_error(self):
        assert issubclass(CatalogError, ValueError)
