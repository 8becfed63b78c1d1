"""
Rule validation.

Validation is a pure function of the tree and the field catalog. It is
re-run in full after every mutation; trees are small enough that no
incremental bookkeeping is needed.
"""

from typing import Iterable, Mapping

from .models import Field, Rule, RuleGroup, ValidationResult
from .operators import is_membership, is_no_operand


UNKNOWN_FIELD = "unknown field"
UNSUPPORTED_OPERATOR = "unsupported operator"
EMPTY_SELECTION = "select at least one value"
EMPTY_VALUE = "value is required"

VALID = ValidationResult(valid=True)


def validate_rule(rule: Rule, fields: Mapping[str, Field], exempt_field_names: Iterable[str] = ()) -> ValidationResult:
    """
    Validate a single rule against the field catalog.

    Args:
        rule: The rule to check.
        fields: Field catalog keyed by field name.
        exempt_field_names: Fields that always validate.

    Returns:
        The validation result for the rule.
    """
    if rule.field in exempt_field_names:
        return VALID

    field_def = fields.get(rule.field)
    if field_def is None:
        return ValidationResult(valid=False, reasons=(UNKNOWN_FIELD,))

    if not field_def.supports_operator(rule.operator):
        return ValidationResult(valid=False, reasons=(UNSUPPORTED_OPERATOR,))

    if is_no_operand(rule.operator):
        return VALID

    if is_membership(rule.operator):
        if isinstance(rule.value, list) and len(rule.value) > 0:
            return VALID
        return ValidationResult(valid=False, reasons=(EMPTY_SELECTION,))

    if not isinstance(rule.value, str):
        return ValidationResult(valid=False, reasons=(EMPTY_VALUE,))
    if rule.value == '' and not field_def.allow_empty:
        return ValidationResult(valid=False, reasons=(EMPTY_VALUE,))
    return VALID


def validate(
    root: RuleGroup,
    fields: Mapping[str, Field],
    exempt_field_names: Iterable[str] = (),
) -> dict[str, ValidationResult]:
    """
    Validate every rule of a tree, depth-first.

    Args:
        root: Root group of the query.
        fields: Field catalog keyed by field name.
        exempt_field_names: Fields whose rules are always valid, for fields
            checked elsewhere.

    Returns:
        Validation results keyed by rule id.
    """
    exempt = frozenset(exempt_field_names)
    results: dict[str, ValidationResult] = {}

    def visit(group: RuleGroup):
        for child in group.rules:
            if isinstance(child, RuleGroup):
                visit(child)
            else:
                results[child.id] = validate_rule(child, fields, exempt)

    visit(root)
    return results


def is_valid(results: Mapping[str, ValidationResult]) -> bool:
    """Check whether every rule of a validation pass is valid."""
    return all(result.valid for result in results.values())
