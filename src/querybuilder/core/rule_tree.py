"""
Mutable rule tree owned by an editing session.

The RuleTree wraps a root RuleGroup and exposes every mutation the editors
may request. Each mutation is applied in place and followed by exactly one
notification to the subscribers.
"""

import copy
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Sequence

from ..infrastructure.logging_config import get_logger
from .errors import NodeNotFoundError, TreeOperationError
from .models import (
    COMBINATORS,
    Field,
    Node,
    Rule,
    RuleGroup,
    new_node_id,
    normalize_value,
)
from .operators import is_membership, is_no_operand


logger = get_logger(__name__)


# Change kinds reported to subscribers
ADD_RULE = 'add_rule'
ADD_GROUP = 'add_group'
REMOVE_NODE = 'remove_node'
SET_FIELD = 'set_field'
SET_OPERATOR = 'set_operator'
SET_VALUE = 'set_value'
SET_COMBINATOR = 'set_combinator'
SET_NEGATION = 'set_negation'
MOVE_NODE = 'move_node'
DUPLICATE_NODE = 'duplicate_node'
REPLACE_ROOT = 'replace_root'

# Changes that alter which widgets the structured editor has to show
STRUCTURAL_CHANGES = frozenset({
    ADD_RULE, ADD_GROUP, REMOVE_NODE, SET_FIELD, SET_OPERATOR,
    MOVE_NODE, DUPLICATE_NODE, REPLACE_ROOT,
})


@dataclass(frozen=True)
class TreeChange:
    """Describes the mutation that triggered a notification."""

    kind: str
    node_id: str

    @property
    def is_structural(self) -> bool:
        return self.kind in STRUCTURAL_CHANGES


TreeListener = Callable[[RuleGroup, TreeChange], None]


class RuleTree:
    """
    Canonical in-memory filter for one editing session.

    Editors never keep a copy of the tree; they hold node ids and call the
    mutation methods below.
    """

    def __init__(
        self,
        fields: Sequence[Field],
        root: Optional[RuleGroup] = None,
        default_field: Optional[str] = None,
    ):
        """
        Initialize the rule tree.

        Args:
            fields: Field catalog, in catalog order.
            root: Initial query. A new empty AND group is used when None.
            default_field: Field picked for new rules, when present in the catalog.
        """
        self._fields = {f.name: f for f in fields}
        self._field_order = [f.name for f in fields]
        self._default_field = default_field
        self._root = root if root is not None else RuleGroup()
        self._listeners: list[TreeListener] = []

    # ==================== Accessors ====================

    @property
    def root(self) -> RuleGroup:
        return self._root

    @property
    def fields(self) -> dict[str, Field]:
        return self._fields

    def get_field(self, name: str) -> Optional[Field]:
        return self._fields.get(name)

    def default_field(self) -> Field:
        """Get the field assigned to newly added rules."""
        if self._default_field and self._default_field in self._fields:
            return self._fields[self._default_field]
        if not self._field_order:
            raise TreeOperationError("Cannot add a rule: the field catalog is empty")
        return self._fields[self._field_order[0]]

    def find(self, node_id: str) -> Node:
        """
        Find a node by id.

        Raises:
            NodeNotFoundError: If no node has this id.
        """
        for node, _parent in _walk(self._root, None):
            if node.id == node_id:
                return node
        raise NodeNotFoundError(node_id)

    def contains(self, node_id: str) -> bool:
        try:
            self.find(node_id)
        except NodeNotFoundError:
            return False
        return True

    def parent_of(self, node_id: str) -> Optional[RuleGroup]:
        """Get the group holding a node, or None for the root."""
        for node, parent in _walk(self._root, None):
            if node.id == node_id:
                return parent
        raise NodeNotFoundError(node_id)

    def iter_rules(self) -> Iterator[Rule]:
        """Iterate over all rules depth-first, in display order."""
        for node, _parent in _walk(self._root, None):
            if isinstance(node, Rule):
                yield node

    def _find_rule(self, rule_id: str) -> Rule:
        node = self.find(rule_id)
        if not isinstance(node, Rule):
            raise TreeOperationError(f"Node {rule_id!r} is a group, not a rule")
        return node

    def _find_group(self, group_id: str) -> RuleGroup:
        node = self.find(group_id)
        if not isinstance(node, RuleGroup):
            raise TreeOperationError(f"Node {group_id!r} is a rule, not a group")
        return node

    # ==================== Observers ====================

    def subscribe(self, listener: TreeListener) -> Callable[[], None]:
        """
        Register a listener called after every mutation.

        Returns:
            A callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, kind: str, node_id: str) -> None:
        change = TreeChange(kind=kind, node_id=node_id)
        logger.debug(f"Tree mutation: {kind} on {node_id}")
        # Listeners may unsubscribe while being notified
        for listener in list(self._listeners):
            listener(self._root, change)

    # ==================== Mutations ====================

    def add_rule(self, parent_group_id: str) -> Rule:
        """Append a rule on the default field to a group."""
        group = self._find_group(parent_group_id)
        field_def = self.default_field()
        operator = field_def.get_default_operator()
        rule = Rule(field=field_def.name, operator=operator, value=normalize_value(operator, ''))
        group.rules.append(rule)
        self._notify(ADD_RULE, rule.id)
        return rule

    def add_group(self, parent_group_id: str) -> RuleGroup:
        """Append an empty AND group to a group."""
        group = self._find_group(parent_group_id)
        new_group = RuleGroup()
        group.rules.append(new_group)
        self._notify(ADD_GROUP, new_group.id)
        return new_group

    def remove_node(self, node_id: str) -> None:
        if node_id == self._root.id:
            raise TreeOperationError("The root group cannot be removed")
        parent = self.parent_of(node_id)
        parent.rules = [child for child in parent.rules if child.id != node_id]
        self._notify(REMOVE_NODE, node_id)

    def set_field(self, rule_id: str, field_name: str) -> None:
        """
        Point a rule at another field.

        The operator is reset to the field's default and the value is cleared,
        since operators and values are field-specific.
        """
        rule = self._find_rule(rule_id)
        field_def = self._fields.get(field_name)
        if field_def is None:
            raise TreeOperationError(f"Unknown field: {field_name}")
        rule.field = field_name
        rule.operator = field_def.get_default_operator()
        rule.value = normalize_value(rule.operator, '')
        self._notify(SET_FIELD, rule_id)

    def set_operator(self, rule_id: str, operator_name: str) -> None:
        """Change a rule's operator, coercing its value to the new shape."""
        rule = self._find_rule(rule_id)
        rule.value = coerce_value(rule.operator, operator_name, rule.value)
        rule.operator = operator_name
        self._notify(SET_OPERATOR, rule_id)

    def set_value(self, rule_id: str, value) -> None:
        rule = self._find_rule(rule_id)
        rule.value = normalize_value(rule.operator, value)
        self._notify(SET_VALUE, rule_id)

    def set_combinator(self, group_id: str, combinator: str) -> None:
        group = self._find_group(group_id)
        combinator = combinator.lower()
        if combinator not in COMBINATORS:
            raise TreeOperationError(f"Unknown combinator: {combinator}")
        group.combinator = combinator
        self._notify(SET_COMBINATOR, group_id)

    def set_negation(self, group_id: str, negated: bool) -> None:
        group = self._find_group(group_id)
        group.negated = negated
        self._notify(SET_NEGATION, group_id)

    def move_node(self, node_id: str, offset: int) -> None:
        """Move a node among its siblings (negative offsets move it up)."""
        parent = self.parent_of(node_id)
        if parent is None:
            raise TreeOperationError("The root group cannot be moved")
        index = next(i for i, child in enumerate(parent.rules) if child.id == node_id)
        new_index = max(0, min(len(parent.rules) - 1, index + offset))
        if new_index == index:
            return
        node = parent.rules.pop(index)
        parent.rules.insert(new_index, node)
        self._notify(MOVE_NODE, node_id)

    def duplicate_node(self, node_id: str) -> Node:
        """Insert a deep copy of a node, with fresh ids, right after it."""
        parent = self.parent_of(node_id)
        if parent is None:
            raise TreeOperationError("The root group cannot be duplicated")
        index = next(i for i, child in enumerate(parent.rules) if child.id == node_id)
        clone = _clone_with_new_ids(parent.rules[index])
        parent.rules.insert(index + 1, clone)
        self._notify(DUPLICATE_NODE, clone.id)
        return clone

    def replace_root(self, root: RuleGroup) -> None:
        """Install a whole new query, e.g. one parsed from text."""
        self._root = root
        self._notify(REPLACE_ROOT, root.id)


def coerce_value(old_operator: str, new_operator: str, value):
    """
    Convert a rule value when its operator changes.

    Text entered by the user is kept where the new operator can hold it:
    a single string becomes a one-element list and back.
    """
    if is_no_operand(new_operator) or is_no_operand(old_operator):
        return normalize_value(new_operator, '')
    if is_membership(new_operator) and not is_membership(old_operator):
        text = value.strip() if isinstance(value, str) else value
        return normalize_value(new_operator, text)
    return normalize_value(new_operator, value)


def _clone_with_new_ids(node: Node) -> Node:
    clone = copy.deepcopy(node)
    for item, _parent in _walk(clone, None):
        item.id = new_node_id()
    return clone


def _walk(node: Node, parent: Optional[RuleGroup]):
    yield node, parent
    if isinstance(node, RuleGroup):
        for child in node.rules:
            yield from _walk(child, node)
