"""
Core domain models for the query builder.

This module contains the pure data models of the rule tree and of the field
catalog it is built against. These models are GUI-agnostic and should not
import any UI frameworks.
"""

import dataclasses
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from .operators import STANDARD_OPERATORS, get_operator_label, is_membership, is_no_operand


COMBINATOR_AND = 'and'
COMBINATOR_OR = 'or'
COMBINATORS = (COMBINATOR_AND, COMBINATOR_OR)


def new_node_id() -> str:
    """Generate a fresh identifier for a tree node."""
    return str(uuid.uuid4())


class BuilderMode(str, Enum):
    """Authoring surface currently shown to the user."""

    STRUCTURED = 'structured'
    TEXTUAL = 'textual'


@dataclass(frozen=True)
class Option:
    """A selectable (name, label) pair."""

    name: str
    label: str = ''

    @property
    def display(self) -> str:
        return self.label or self.name


@dataclass(frozen=True)
class Operator:
    """A comparison operator offered for a field."""

    name: str
    """Operator name stored in rules (e.g., '=', 'in', 'notNull')."""

    label: str = ''
    """Label shown in the operator selector."""


DEFAULT_OPERATORS: tuple[Operator, ...] = tuple(
    Operator(name=name, label=label) for name, label in STANDARD_OPERATORS.items()
)


@dataclass(frozen=True)
class Field:
    """A filterable field from the field catalog."""

    name: str
    """Unique field identifier used in rules and expressions."""

    label: str = ''
    """Display label."""

    group: str = ''
    """Source category used to group fields in the field selector."""

    value_options: tuple[Option, ...] = ()
    """Known values offered by the multi-value editor."""

    operators: tuple[Operator, ...] = DEFAULT_OPERATORS
    """Operators legal for this field."""

    default_operator: Optional[str] = None
    """Operator selected when the field is picked. Defaults to the first legal operator."""

    allow_empty: bool = False
    """Whether scalar operators accept an empty value."""

    @property
    def display(self) -> str:
        return self.label or self.name

    def get_default_operator(self) -> str:
        """Get the operator a rule switches to when this field is selected."""
        if self.default_operator:
            return self.default_operator
        if self.operators:
            return self.operators[0].name
        return '='

    def supports_operator(self, operator_name: str) -> bool:
        return any(op.name == operator_name for op in self.operators)

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'label': self.label,
            'group': self.group,
            'valueOptions': [{'name': o.name, 'label': o.label} for o in self.value_options],
            'operators': [{'name': o.name, 'label': o.label} for o in self.operators],
            'defaultOperator': self.default_operator,
            'allowEmpty': self.allow_empty,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Field':
        """
        Deserialize a field definition from a catalog entry.

        Args:
            data: Dictionary with at least a 'name' key. Option and operator
                entries may be plain strings or {name, label} objects.

        Returns:
            Field instance.
        """
        value_options = tuple(_option_from(o) for o in data.get('valueOptions') or data.get('values') or [])
        operators = data.get('operators')
        if operators:
            operator_objs = tuple(_operator_from(op) for op in operators)
        else:
            operator_objs = DEFAULT_OPERATORS
        return cls(
            name=data['name'],
            label=data.get('label', ''),
            group=data.get('group') or data.get('groupTitle') or '',
            value_options=value_options,
            operators=operator_objs,
            default_operator=data.get('defaultOperator'),
            allow_empty=bool(data.get('allowEmpty', False)),
        )


def _option_from(entry: Union[str, dict]) -> Option:
    if isinstance(entry, str):
        return Option(name=entry, label=entry)
    return Option(name=entry['name'], label=entry.get('label', entry['name']))


def _operator_from(entry: Union[str, dict]) -> Operator:
    if isinstance(entry, str):
        return Operator(name=entry, label=get_operator_label(entry))
    return Operator(name=entry['name'], label=entry.get('label') or get_operator_label(entry['name']))


RuleValue = Union[str, list[str]]


@dataclass
class Rule:
    """A single field/operator/value condition (a tree leaf)."""

    field: str = ''
    """Name of the field the rule applies to."""

    operator: str = '='
    """Operator name."""

    value: RuleValue = ''
    """A string, or a duplicate-free list of strings for membership operators."""

    # `field` is shadowed by the attribute above inside this class body
    id: str = dataclasses.field(default_factory=new_node_id, compare=False)

    def to_dict(self) -> dict:
        value = list(self.value) if isinstance(self.value, list) else self.value
        return {
            'id': self.id,
            'field': self.field,
            'operator': self.operator,
            'value': value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Rule':
        operator = data.get('operator', '=')
        return cls(
            field=data.get('field', ''),
            operator=operator,
            value=normalize_value(operator, data.get('value', '')),
            id=data.get('id') or new_node_id(),
        )


@dataclass
class RuleGroup:
    """
    A combinator over an ordered sequence of rules and nested groups.

    Groups only ever gain children created below them, so the tree is
    acyclic by construction.
    """

    combinator: str = COMBINATOR_AND
    """Boolean operator joining the children: 'and' or 'or'."""

    rules: list[Union[Rule, 'RuleGroup']] = field(default_factory=list)
    """Child rules and nested groups, in display order."""

    negated: bool = False
    """Whether the whole group is negated (the 'not' flag)."""

    id: str = field(default_factory=new_node_id, compare=False)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'combinator': self.combinator,
            'not': self.negated,
            'rules': [child.to_dict() for child in self.rules],
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'RuleGroup':
        """
        Deserialize a rule group from dictionary.

        Args:
            data: Dictionary representation.

        Returns:
            RuleGroup instance.
        """
        rules: list[Union[Rule, RuleGroup]] = []
        for child in data.get('rules', []):
            if 'rules' in child:
                rules.append(RuleGroup.from_dict(child))
            else:
                rules.append(Rule.from_dict(child))

        combinator = str(data.get('combinator', COMBINATOR_AND)).lower()
        if combinator not in COMBINATORS:
            raise ValueError(f"Unknown combinator: {combinator}")

        return cls(
            combinator=combinator,
            rules=rules,
            negated=bool(data.get('not', False)),
            id=data.get('id') or new_node_id(),
        )


Node = Union[Rule, RuleGroup]


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one rule."""

    valid: bool
    reasons: tuple[str, ...] = ()


def dedupe(values) -> list[str]:
    """Remove duplicate entries from a sequence while keeping first-seen order."""
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def normalize_value(operator_name: str, value) -> RuleValue:
    """
    Coerce a value to the shape required by an operator.

    No-operand operators hold an empty string, membership operators a
    duplicate-free list of strings and every other operator a string.

    Args:
        operator_name: The operator the value belongs to.
        value: A string, a sequence of strings or None.

    Returns:
        The normalized value.
    """
    if is_no_operand(operator_name):
        return ''

    if is_membership(operator_name):
        if value is None or value == '':
            return []
        if isinstance(value, str):
            return [value]
        return dedupe(str(v) for v in value)

    if value is None:
        return ''
    if isinstance(value, (list, tuple)):
        return ', '.join(str(v) for v in value)
    return str(value)
