"""
Tests for the core data models.

These tests verify field catalog entries, rule/group serialization and the
value normalization every mutation relies on.
"""

import pytest

from querybuilder.core.models import (
    DEFAULT_OPERATORS,
    Field,
    Option,
    Rule,
    RuleGroup,
    dedupe,
    normalize_value,
)
from querybuilder.core.operators import get_operator_label, is_membership, is_no_operand


class TestField:
    """Tests for Field definitions."""

    def test_from_dict_accepts_plain_string_options(self):
        """Option entries may be plain strings or name/label objects."""
        field_def = Field.from_dict({
            "name": "region",
            "valueOptions": ["us-east-1", {"name": "eu-west-1", "label": "Ireland"}],
        })

        assert field_def.value_options == (
            Option(name="us-east-1", label="us-east-1"),
            Option(name="eu-west-1", label="Ireland"),
        )

    def test_defaults_to_standard_operators(self):
        field_def = Field.from_dict({"name": "service"})

        assert field_def.operators == DEFAULT_OPERATORS
        assert field_def.get_default_operator() == "="

    def test_declared_operators_get_standard_labels(self):
        field_def = Field.from_dict({"name": "cost", "operators": ["<", "notNull"]})

        assert [op.name for op in field_def.operators] == ["<", "notNull"]
        assert field_def.operators[1].label == "is not null"
        assert field_def.get_default_operator() == "<"
        assert field_def.supports_operator("notNull")
        assert not field_def.supports_operator("=")

    def test_explicit_default_operator(self):
        field_def = Field.from_dict({"name": "cos_provider", "defaultOperator": "in"})

        assert field_def.get_default_operator() == "in"

    def test_group_title_alias(self):
        field_def = Field.from_dict({"name": "team", "groupTitle": "labels"})

        assert field_def.group == "labels"
        assert field_def.display == "team"

    def test_to_dict_round_trip(self):
        field_def = Field.from_dict({
            "name": "cos_provider",
            "label": "Provider",
            "group": "billing",
            "valueOptions": ["AWS"],
            "defaultOperator": "in",
            "allowEmpty": True,
        })

        assert Field.from_dict(field_def.to_dict()) == field_def


class TestRuleAndGroup:
    """Tests for rules and rule groups."""

    def test_ids_are_unique(self):
        assert Rule().id != Rule().id
        assert RuleGroup().id != RuleGroup().id

    def test_equality_ignores_ids(self):
        """Two trees with the same content are equal whatever their ids."""
        first = RuleGroup(rules=[Rule(field="a", operator="=", value="1")])
        second = RuleGroup(rules=[Rule(field="a", operator="=", value="1")])

        assert first == second
        assert first.id != second.id

    def test_negation_is_part_of_equality(self):
        assert RuleGroup(negated=True) != RuleGroup()

    def test_serialization(self, sample_query):
        data = sample_query.to_dict()

        assert data["combinator"] == "and"
        assert data["not"] is False
        assert data["rules"][0] == {
            "id": sample_query.rules[0].id,
            "field": "cos_provider",
            "operator": "in",
            "value": ["AWS", "GCP"],
        }
        assert data["rules"][1]["rules"][1]["not"] is True

        restored = RuleGroup.from_dict(data)
        assert restored == sample_query
        assert restored.id == sample_query.id
        assert restored.rules[0].id == sample_query.rules[0].id

    def test_from_dict_normalizes_values(self):
        group = RuleGroup.from_dict({
            "combinator": "OR",
            "rules": [
                {"field": "a", "operator": "in", "value": "x"},
                {"field": "b", "operator": "null", "value": "ignored"},
            ],
        })

        assert group.combinator == "or"
        assert group.rules[0].value == ["x"]
        assert group.rules[1].value == ""

    def test_from_dict_rejects_unknown_combinator(self):
        with pytest.raises(ValueError):
            RuleGroup.from_dict({"combinator": "xor", "rules": []})


class TestNormalizeValue:
    """Tests for value normalization."""

    def test_no_operand_operators_hold_empty_string(self):
        assert normalize_value("null", "x") == ""
        assert normalize_value("notNull", ["x"]) == ""

    def test_membership_operators_hold_deduplicated_lists(self):
        assert normalize_value("in", ["a", "b", "a"]) == ["a", "b"]
        assert normalize_value("notIn", "a") == ["a"]
        assert normalize_value("in", "") == []
        assert normalize_value("in", None) == []

    def test_scalar_operators_hold_strings(self):
        assert normalize_value("=", 5) == "5"
        assert normalize_value("contains", None) == ""
        assert normalize_value("=", ["a", "b"]) == "a, b"

    def test_dedupe_keeps_first_occurrence(self):
        assert dedupe(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]


class TestOperators:
    """Tests for operator classification."""

    def test_classes(self):
        assert is_no_operand("null") and is_no_operand("notNull")
        assert is_membership("in") and is_membership("notIn")
        assert not is_no_operand("=") and not is_membership("contains")

    def test_labels(self):
        assert get_operator_label("beginsWith") == "begins with"
        assert get_operator_label("custom") == "custom"
