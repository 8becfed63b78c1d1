"""
Comparison operator configuration.

This module provides a centralized mapping of operator names to their display
labels, and the operator classes that drive value editing and validation.
"""

# Mapping of operator names to display labels
STANDARD_OPERATORS = {
    '=': '=',
    '!=': '!=',
    '<': '<',
    '>': '>',
    '<=': '<=',
    '>=': '>=',
    'contains': 'contains',
    'beginsWith': 'begins with',
    'endsWith': 'ends with',
    'doesNotContain': 'does not contain',
    'doesNotBeginWith': 'does not begin with',
    'doesNotEndWith': 'does not end with',
    'null': 'is null',
    'notNull': 'is not null',
    'in': 'in',
    'notIn': 'not in',
}

# Operators that take no operand
NO_OPERAND_OPERATORS = frozenset({'null', 'notNull'})

# Operators whose operand is a set of values
MEMBERSHIP_OPERATORS = frozenset({'in', 'notIn'})


def get_operator_label(operator_name: str) -> str:
    """
    Get the display label for an operator name.

    Args:
        operator_name: The operator name (e.g., '=', 'beginsWith', 'notIn').

    Returns:
        The display label of the operator. If the operator is not recognized,
        returns the name itself.
    """
    return STANDARD_OPERATORS.get(operator_name, operator_name)


def is_no_operand(operator_name: str) -> bool:
    """Check whether an operator ignores its value."""
    return operator_name in NO_OPERAND_OPERATORS


def is_membership(operator_name: str) -> bool:
    """Check whether an operator takes a list of values."""
    return operator_name in MEMBERSHIP_OPERATORS
