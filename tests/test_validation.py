"""
Tests for rule validation.
"""

from querybuilder.core.models import Rule, RuleGroup
from querybuilder.core.validation import (
    EMPTY_SELECTION,
    EMPTY_VALUE,
    UNKNOWN_FIELD,
    UNSUPPORTED_OPERATOR,
    is_valid,
    validate,
    validate_rule,
)


def _fields(catalog):
    return {f.name: f for f in catalog}


class TestValidateRule:
    """Tests for single-rule validation."""

    def test_unknown_field(self, catalog):
        result = validate_rule(Rule(field="nope", operator="=", value="x"), _fields(catalog))

        assert not result.valid
        assert result.reasons == (UNKNOWN_FIELD,)

    def test_unsupported_operator(self, catalog):
        result = validate_rule(Rule(field="cost", operator="contains", value="1"), _fields(catalog))

        assert not result.valid
        assert result.reasons == (UNSUPPORTED_OPERATOR,)

    def test_no_operand_is_always_valid(self, catalog):
        assert validate_rule(Rule(field="region", operator="null", value=""), _fields(catalog)).valid

    def test_membership_requires_a_selection(self, catalog):
        fields = _fields(catalog)

        empty = validate_rule(Rule(field="cos_provider", operator="in", value=[]), fields)
        selected = validate_rule(Rule(field="cos_provider", operator="in", value=["AWS"]), fields)

        assert not empty.valid
        assert empty.reasons == (EMPTY_SELECTION,)
        assert selected.valid

    def test_membership_with_scalar_value_is_invalid(self, catalog):
        result = validate_rule(Rule(field="cos_provider", operator="notIn", value="AWS"), _fields(catalog))

        assert not result.valid

    def test_scalar_requires_text(self, catalog):
        fields = _fields(catalog)

        assert not validate_rule(Rule(field="region", operator="=", value=""), fields).valid
        assert validate_rule(Rule(field="region", operator="=", value="eu"), fields).valid

    def test_scalar_with_list_value_is_invalid(self, catalog):
        result = validate_rule(Rule(field="region", operator="=", value=["eu"]), _fields(catalog))

        assert result.reasons == (EMPTY_VALUE,)

    def test_field_allowing_empty_values(self, catalog):
        assert validate_rule(Rule(field="team", operator="=", value=""), _fields(catalog)).valid

    def test_exempt_fields_always_validate(self, catalog):
        rule = Rule(field="nope", operator="=", value="")

        assert validate_rule(rule, _fields(catalog), exempt_field_names={"nope"}).valid


class TestValidateTree:
    """Tests for whole-tree validation."""

    def test_results_cover_nested_rules(self, catalog, sample_query):
        results = validate(sample_query, _fields(catalog))

        nested = sample_query.rules[1]
        assert set(results) == {
            sample_query.rules[0].id,
            nested.rules[0].id,
            nested.rules[1].rules[0].id,
        }
        assert is_valid(results)

    def test_one_invalid_rule_makes_the_tree_invalid(self, catalog):
        bad = Rule(field="region", operator="=", value="")
        root = RuleGroup(rules=[Rule(field="region", operator="=", value="eu"), RuleGroup(rules=[bad])])

        results = validate(root, _fields(catalog))

        assert not results[bad.id].valid
        assert not is_valid(results)

    def test_empty_tree_is_valid(self, catalog):
        assert is_valid(validate(RuleGroup(), _fields(catalog)))

    def test_validation_is_pure(self, catalog, sample_query):
        before = sample_query.to_dict()

        validate(sample_query, _fields(catalog))

        assert sample_query.to_dict() == before
