"""
Editor logic shared by the field, operator and value controls.

These functions translate between the rule tree's primitive values and the
option lists the widgets display. They hold no state and import no GUI code,
so every control behaves the same whichever toolkit renders it.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

from .models import Field, Option, Rule, ValidationResult, dedupe
from .operators import is_membership, is_no_operand


# Default display order of field groups (source categories)
DEFAULT_GROUP_ORDER = (
    'billing',
    'aws',
    'gcp',
    'azure',
    'kubernetes',
    'labels',
    'virtual_dimensions',
)


class ValueEditorKind(str, Enum):
    """Which value control a rule needs, given its operator."""

    DISABLED = 'disabled'
    TEXT = 'text'
    MULTI_SELECT = 'multi_select'


@dataclass
class OptionGroup:
    """Options sharing one display group."""

    group: str
    items: list[Option] = field(default_factory=list)


def group_rank(group: str, group_order: Sequence[str] = DEFAULT_GROUP_ORDER) -> int:
    """
    Get the display rank of a field group.

    Unknown groups rank after every known group.
    """
    try:
        return list(group_order).index(group)
    except ValueError:
        return len(group_order)


def field_options(fields: Sequence[Field], group_order: Sequence[str] = DEFAULT_GROUP_ORDER) -> list[OptionGroup]:
    """
    Build the grouped option list of the field selector.

    Fields are grouped by their group name; groups are ordered by
    ``group_order`` (stable, unknown groups last) and fields keep catalog
    order inside a group.
    """
    groups: dict[str, OptionGroup] = {}
    for f in fields:
        if f.group not in groups:
            groups[f.group] = OptionGroup(group=f.group)
        groups[f.group].items.append(Option(name=f.name, label=f.display))
    return sorted(groups.values(), key=lambda g: group_rank(g.group, group_order))


def operator_options(field_def: Optional[Field]) -> list[Option]:
    """Get the operators a rule on this field may use."""
    if field_def is None:
        return []
    return [Option(name=op.name, label=op.label or op.name) for op in field_def.operators]


def value_editor_kind(operator_name: str) -> ValueEditorKind:
    if is_no_operand(operator_name):
        return ValueEditorKind.DISABLED
    if is_membership(operator_name):
        return ValueEditorKind.MULTI_SELECT
    return ValueEditorKind.TEXT


def selected_values(rule: Rule) -> list[str]:
    """Get the values a multi-select shows as selected for a rule."""
    if is_no_operand(rule.operator):
        return []
    if isinstance(rule.value, list):
        return list(rule.value)
    return [rule.value] if rule.value else []


def membership_options(field_def: Optional[Field], rule: Rule) -> list[Option]:
    """
    Build the option list of the multi-value editor.

    The field's declared options come first, followed by values already in
    the rule that the catalog does not know, so custom values stay visible.
    Options are deduplicated by value, first occurrence wins.
    """
    options = list(field_def.value_options) if field_def is not None else []
    options.extend(Option(name=value, label=value) for value in selected_values(rule))

    seen = set()
    unique = []
    for option in options:
        if option.name not in seen:
            seen.add(option.name)
            unique.append(option)
    return unique


def toggle_value(current: Sequence[str], value: str, selected: bool) -> list[str]:
    """
    Select or deselect one value of a multi-select.

    Returns:
        The new duplicate-free selection, in selection order.
    """
    if selected:
        return dedupe(list(current) + [value])
    return [v for v in dedupe(current) if v != value]


def text_value(rule: Rule) -> str:
    """Get the text a free-text editor shows for a rule."""
    if is_no_operand(rule.operator):
        return ''
    if isinstance(rule.value, list):
        return ', '.join(rule.value)
    return rule.value


def is_marked_invalid(result: Optional[ValidationResult]) -> bool:
    """Whether a rule's value control gets the invalid marker."""
    return result is not None and not result.valid
