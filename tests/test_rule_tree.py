"""
Tests for rule-tree mutations and change notifications.
"""

import pytest

from querybuilder.core.errors import NodeNotFoundError, TreeOperationError
from querybuilder.core.models import Rule, RuleGroup
from querybuilder.core.rule_tree import (
    ADD_RULE,
    MOVE_NODE,
    REPLACE_ROOT,
    SET_VALUE,
    RuleTree,
    TreeChange,
    coerce_value,
)


@pytest.fixture
def tree(catalog):
    return RuleTree(catalog, default_field="cos_provider")


@pytest.fixture
def changes(tree):
    """Record every notification of the tree."""
    recorded = []
    tree.subscribe(lambda root, change: recorded.append(change))
    return recorded


class TestAddNodes:
    """Tests for adding rules and groups."""

    def test_add_rule_uses_default_field_and_operator(self, tree):
        rule = tree.add_rule(tree.root.id)

        assert rule.field == "cos_provider"
        assert rule.operator == "in"
        assert rule.value == []
        assert tree.root.rules == [rule]

    def test_add_rule_falls_back_to_first_field(self, catalog):
        tree = RuleTree(catalog[1:], default_field="cos_provider")

        rule = tree.add_rule(tree.root.id)

        assert rule.field == "cos_service"
        assert rule.operator == "="
        assert rule.value == ""

    def test_add_rule_with_empty_catalog_raises(self):
        tree = RuleTree([])

        with pytest.raises(TreeOperationError):
            tree.add_rule(tree.root.id)

    def test_add_group_appends_empty_and_group(self, tree):
        group = tree.add_group(tree.root.id)

        assert group == RuleGroup(combinator="and")
        assert tree.parent_of(group.id) is tree.root

    def test_add_under_rule_raises(self, tree):
        rule = tree.add_rule(tree.root.id)

        with pytest.raises(TreeOperationError):
            tree.add_rule(rule.id)

    def test_add_under_missing_group_raises(self, tree):
        with pytest.raises(NodeNotFoundError) as exc_info:
            tree.add_group("missing")

        assert exc_info.value.node_id == "missing"
        assert isinstance(exc_info.value, KeyError)


class TestRemoveNode:
    """Tests for node removal."""

    def test_remove_rule_from_nested_group(self, tree):
        group = tree.add_group(tree.root.id)
        rule = tree.add_rule(group.id)

        tree.remove_node(rule.id)

        assert group.rules == []
        assert not tree.contains(rule.id)

    def test_remove_root_raises(self, tree):
        with pytest.raises(TreeOperationError):
            tree.remove_node(tree.root.id)

    def test_remove_missing_raises(self, tree):
        with pytest.raises(NodeNotFoundError):
            tree.remove_node("missing")


class TestRuleMutations:
    """Tests for field, operator and value changes."""

    def test_set_field_resets_operator_and_value(self, tree):
        rule = tree.add_rule(tree.root.id)
        tree.set_value(rule.id, ["AWS"])

        tree.set_field(rule.id, "cost")

        assert rule.field == "cost"
        assert rule.operator == "="
        assert rule.value == ""

    def test_set_field_to_field_with_default_operator(self, tree):
        rule = tree.add_rule(tree.root.id)
        tree.set_field(rule.id, "region")
        tree.set_value(rule.id, "eu")

        tree.set_field(rule.id, "cos_provider")

        assert rule.operator == "in"
        assert rule.value == []

    def test_set_unknown_field_raises(self, tree):
        rule = tree.add_rule(tree.root.id)

        with pytest.raises(TreeOperationError):
            tree.set_field(rule.id, "nope")

    def test_set_operator_scalar_to_membership(self, tree):
        rule = tree.add_rule(tree.root.id)
        tree.set_field(rule.id, "region")
        tree.set_value(rule.id, " eu-west-1 ")

        tree.set_operator(rule.id, "in")

        assert rule.value == ["eu-west-1"]

    def test_set_operator_membership_to_scalar(self, tree):
        rule = tree.add_rule(tree.root.id)
        tree.set_value(rule.id, ["AWS"])

        tree.set_operator(rule.id, "=")

        assert rule.value == "AWS"

    def test_set_operator_to_no_operand_clears_value(self, tree):
        rule = tree.add_rule(tree.root.id)
        tree.set_value(rule.id, ["AWS"])

        tree.set_operator(rule.id, "notNull")

        assert rule.value == ""

    def test_set_value_deduplicates_membership_values(self, tree):
        rule = tree.add_rule(tree.root.id)

        tree.set_value(rule.id, ["AWS", "GCP", "AWS"])

        assert rule.value == ["AWS", "GCP"]

    def test_set_value_on_group_raises(self, tree):
        with pytest.raises(TreeOperationError):
            tree.set_value(tree.root.id, "x")

    def test_set_combinator(self, tree):
        tree.set_combinator(tree.root.id, "OR")

        assert tree.root.combinator == "or"

        with pytest.raises(TreeOperationError):
            tree.set_combinator(tree.root.id, "xor")

    def test_set_negation(self, tree):
        group = tree.add_group(tree.root.id)

        tree.set_negation(group.id, True)

        assert group.negated


class TestCoerceValue:
    """Tests for value coercion between operator classes."""

    def test_empty_scalar_becomes_empty_list(self):
        assert coerce_value("=", "in", "") == []

    def test_empty_list_becomes_empty_string(self):
        assert coerce_value("in", "=", []) == ""

    def test_several_values_are_joined(self):
        assert coerce_value("in", "contains", ["a", "b"]) == "a, b"

    def test_from_no_operand_starts_empty(self):
        assert coerce_value("null", "in", "") == []
        assert coerce_value("null", "=", "") == ""

    def test_membership_to_membership_keeps_values(self):
        assert coerce_value("in", "notIn", ["a"]) == ["a"]


class TestReorderAndCopy:
    """Tests for moving and duplicating nodes."""

    def test_move_node(self, tree, changes):
        first = tree.add_rule(tree.root.id)
        second = tree.add_rule(tree.root.id)
        changes.clear()

        tree.move_node(second.id, -1)

        assert [n.id for n in tree.root.rules] == [second.id, first.id]
        assert changes == [TreeChange(MOVE_NODE, second.id)]

    def test_move_past_bounds_is_a_no_op(self, tree, changes):
        first = tree.add_rule(tree.root.id)
        tree.add_rule(tree.root.id)
        changes.clear()

        tree.move_node(first.id, -5)

        assert tree.root.rules[0] is first
        assert changes == []

    def test_move_root_raises(self, tree):
        with pytest.raises(TreeOperationError):
            tree.move_node(tree.root.id, 1)

    def test_duplicate_gets_fresh_ids(self, tree):
        group = tree.add_group(tree.root.id)
        rule = tree.add_rule(group.id)
        tree.set_value(rule.id, ["AWS"])

        clone = tree.duplicate_node(group.id)

        assert tree.root.rules == [group, clone]
        assert clone == group
        assert clone.id != group.id
        assert clone.rules[0].id != rule.id

        # The copy is independent of the original
        tree.set_value(clone.rules[0].id, ["GCP"])
        assert rule.value == ["AWS"]


class TestNotifications:
    """Tests for subscriber notifications."""

    def test_each_mutation_notifies_once(self, tree, changes):
        rule = tree.add_rule(tree.root.id)
        tree.set_value(rule.id, ["AWS"])

        assert changes == [TreeChange(ADD_RULE, rule.id), TreeChange(SET_VALUE, rule.id)]

    def test_notification_carries_root(self, tree):
        roots = []
        tree.subscribe(lambda root, change: roots.append(root))

        tree.add_rule(tree.root.id)

        assert roots == [tree.root]

    def test_unsubscribe(self, tree, changes):
        calls = []
        unsubscribe = tree.subscribe(lambda root, change: calls.append(change))
        unsubscribe()

        tree.add_rule(tree.root.id)

        assert calls == []
        assert len(changes) == 1

    def test_structural_kinds(self, tree, changes):
        rule = tree.add_rule(tree.root.id)
        tree.set_value(rule.id, ["AWS"])
        tree.set_combinator(tree.root.id, "or")
        tree.set_field(rule.id, "region")

        assert [c.is_structural for c in changes] == [True, False, False, True]

    def test_replace_root(self, tree, changes):
        new_root = RuleGroup(rules=[Rule(field="region", operator="=", value="x")])

        tree.replace_root(new_root)

        assert tree.root is new_root
        assert changes == [TreeChange(REPLACE_ROOT, new_root.id)]

    def test_iter_rules_is_depth_first(self, catalog, sample_query):
        tree = RuleTree(catalog, root=sample_query)

        assert [r.field for r in tree.iter_rules()] == ["cos_provider", "region", "namespace"]
