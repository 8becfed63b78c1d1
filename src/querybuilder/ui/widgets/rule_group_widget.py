"""
Structured editor: nested group widgets with one row per rule.

Widgets are keyed by node id. When the tree changes structurally the group
widgets reconcile their children against the tree, reusing the widgets of
nodes that survived; other changes only refresh values and invalid markers.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Union

from PySide6.QtCore import Qt
from PySide6.QtGui import QFont, QStandardItem, QStandardItemModel
from PySide6.QtWidgets import (
    QCheckBox, QComboBox, QFrame, QHBoxLayout, QMenu, QPushButton,
    QScrollArea, QSizePolicy, QVBoxLayout, QWidget,
)

from querybuilder.core.editors import is_marked_invalid, operator_options
from querybuilder.core.models import COMBINATOR_AND, COMBINATOR_OR, Rule, RuleGroup
from querybuilder.core.rule_tree import TreeChange
from querybuilder.core.session import QueryBuilderSession
from querybuilder.infrastructure.logging_config import get_logger
from querybuilder.ui.widgets.value_editors import create_value_editor


logger = get_logger(__name__)


FIELD_NAME_ROLE = Qt.ItemDataRole.UserRole


# ==================== Control factories ====================


class FieldSelector(QComboBox):
    """Field combo box with one disabled header per field group."""

    def __init__(self, session: QueryBuilderSession, rule: Rule, parent=None):
        super().__init__(parent)
        self._session = session
        self._rule_id = rule.id

        model = QStandardItemModel(self)
        header_font = QFont()
        header_font.setBold(True)
        for option_group in session.field_options():
            header = QStandardItem(option_group.group)
            header.setFlags(Qt.ItemFlag.NoItemFlags)
            header.setFont(header_font)
            model.appendRow(header)
            for option in option_group.items:
                item = QStandardItem(f"  {option.display}")
                item.setData(option.name, FIELD_NAME_ROLE)
                model.appendRow(item)
        self.setModel(model)

        self.sync(rule)
        self.currentIndexChanged.connect(self._on_index_changed)

    def sync(self, rule: Rule):
        self.blockSignals(True)
        index = self.findData(rule.field, FIELD_NAME_ROLE)
        if index < 0:
            # Fields missing from the catalog, e.g. from parsed text
            item = QStandardItem(f"  {rule.field}")
            item.setData(rule.field, FIELD_NAME_ROLE)
            self.model().appendRow(item)
            index = self.count() - 1
        self.setCurrentIndex(index)
        self.blockSignals(False)

    def _on_index_changed(self, index: int):
        field_name = self.itemData(index, FIELD_NAME_ROLE)
        # Group headers carry no field name and cannot be chosen
        if field_name:
            self._session.set_field(self._rule_id, field_name)


class OperatorSelector(QComboBox):
    """Combo box of the operators legal for the rule's field."""

    def __init__(self, session: QueryBuilderSession, rule: Rule, parent=None):
        super().__init__(parent)
        self._session = session
        self._rule_id = rule.id
        self._field_name = None
        self.currentIndexChanged.connect(self._on_index_changed)
        self.sync(rule)

    def sync(self, rule: Rule):
        self.blockSignals(True)
        if rule.field != self._field_name:
            self._field_name = rule.field
            self.clear()
            for option in operator_options(self._session.tree.get_field(rule.field)):
                self.addItem(option.display, option.name)
        index = self.findData(rule.operator)
        if index < 0:
            # Keep operators the field does not declare visible, e.g. from parsed text
            self.addItem(rule.operator, rule.operator)
            index = self.count() - 1
        self.setCurrentIndex(index)
        self.blockSignals(False)

    def _on_index_changed(self, index: int):
        operator_name = self.itemData(index)
        if operator_name:
            self._session.set_operator(self._rule_id, operator_name)


class RemoveButton(QPushButton):
    """Removes a rule or a nested group."""

    def __init__(self, session: QueryBuilderSession, node_id: str, parent=None):
        super().__init__("✕", parent)
        self.setToolTip("Remove")
        self.setMaximumWidth(32)
        self.clicked.connect(lambda: session.remove_node(node_id))


@dataclass
class ControlElements:
    """
    Factories of the controls a rule row is made of.

    Each factory receives the session, the rule and the parent widget. The
    value editor factory also receives the theme name.
    """

    field_selector: Callable[..., QWidget] = FieldSelector
    operator_selector: Callable[..., QWidget] = OperatorSelector
    value_editor: Callable[..., QWidget] = create_value_editor
    remove_action: Callable[..., QWidget] = RemoveButton


# ==================== Rule and group widgets ====================


class RuleWidget(QFrame):
    """One rule row: field, operator, value and remove controls."""

    def __init__(
        self,
        session: QueryBuilderSession,
        rule: Rule,
        controls: ControlElements,
        theme: str,
        scheduler=None,
        parent=None,
    ):
        super().__init__(parent)

        self._session = session
        self._rule_id = rule.id
        self._controls = controls
        self._theme = theme
        self._scheduler = scheduler
        self._target = (rule.field, rule.operator)

        self._layout = QHBoxLayout(self)
        self._layout.setContentsMargins(0, 0, 0, 0)
        self._layout.setSpacing(6)

        self.field_selector = controls.field_selector(session, rule, parent=self)
        self.operator_selector = controls.operator_selector(session, rule, parent=self)
        self.value_editor = self._create_value_editor(rule)
        self.remove_button = controls.remove_action(session, rule.id, parent=self)

        self.field_selector.setMinimumWidth(160)
        self.operator_selector.setMinimumWidth(120)

        self._layout.addWidget(self.field_selector)
        self._layout.addWidget(self.operator_selector)
        self._layout.addWidget(self.value_editor, 1)
        self._layout.addWidget(self.remove_button)

        self.setContextMenuPolicy(Qt.ContextMenuPolicy.CustomContextMenu)
        self.customContextMenuRequested.connect(self._show_context_menu)

        self.refresh(rule)

    @property
    def node_id(self) -> str:
        return self._rule_id

    def _create_value_editor(self, rule: Rule) -> QWidget:
        return self._controls.value_editor(
            self._session, rule, self._theme, scheduler=self._scheduler, parent=self
        )

    def sync(self, rule: Rule):
        """Bring the row in line with the rule after a structural change."""
        self.field_selector.sync(rule)
        self.operator_selector.sync(rule)

        if (rule.field, rule.operator) != self._target:
            self._target = (rule.field, rule.operator)
            old_editor = self.value_editor
            self.value_editor = self._create_value_editor(rule)
            self._layout.replaceWidget(old_editor, self.value_editor)
            old_editor.dispose()
            old_editor.deleteLater()

        self.refresh(rule)

    def refresh(self, rule: Rule):
        """Update the shown value and the invalid marker."""
        self.value_editor.sync(rule)
        result = self._session.result_for(rule.id)
        self.value_editor.set_invalid(is_marked_invalid(result))
        self.setToolTip(', '.join(result.reasons) if result is not None else '')

    def dispose(self):
        self.value_editor.dispose()

    def _show_context_menu(self, position):
        menu = QMenu(self)
        menu.addAction("Move Up", lambda: self._session.move_node(self._rule_id, -1))
        menu.addAction("Move Down", lambda: self._session.move_node(self._rule_id, 1))
        menu.addAction("Duplicate", lambda: self._session.duplicate_node(self._rule_id))
        menu.addSeparator()
        menu.addAction("Remove", lambda: self._session.remove_node(self._rule_id))
        menu.exec(self.mapToGlobal(position))


ChildWidget = Union[RuleWidget, 'RuleGroupWidget']


class RuleGroupWidget(QFrame):
    """
    A group box: combinator, add buttons and the child rows.

    Nested groups also get a NOT toggle and a remove button; the root group
    has neither.
    """

    def __init__(
        self,
        session: QueryBuilderSession,
        group: RuleGroup,
        controls: ControlElements,
        theme: str,
        is_root: bool = False,
        scheduler=None,
        parent=None,
    ):
        super().__init__(parent)

        self._session = session
        self._group_id = group.id
        self._controls = controls
        self._theme = theme
        self._is_root = is_root
        self._scheduler = scheduler
        self._children: dict[str, ChildWidget] = {}

        self.setFrameShape(QFrame.Shape.StyledPanel)
        self.setObjectName("ruleGroup")

        layout = QVBoxLayout(self)
        layout.setContentsMargins(8, 8, 8, 8)
        layout.setSpacing(6)

        header = QHBoxLayout()
        self.combinator_combo = QComboBox(self)
        self.combinator_combo.addItem("AND", COMBINATOR_AND)
        self.combinator_combo.addItem("OR", COMBINATOR_OR)
        self.combinator_combo.currentIndexChanged.connect(self._on_combinator_changed)
        header.addWidget(self.combinator_combo)

        self.not_checkbox: Optional[QCheckBox] = None
        if not is_root:
            self.not_checkbox = QCheckBox("NOT", self)
            self.not_checkbox.toggled.connect(
                lambda checked: self._session.set_negation(self._group_id, checked)
            )
            header.addWidget(self.not_checkbox)

        header.addStretch()

        self.add_rule_button = QPushButton("Add a Condition", self)
        self.add_rule_button.clicked.connect(lambda: self._session.add_rule(self._group_id))
        header.addWidget(self.add_rule_button)

        self.add_group_button = QPushButton("Group Condition", self)
        self.add_group_button.clicked.connect(lambda: self._session.add_group(self._group_id))
        header.addWidget(self.add_group_button)

        self.remove_button: Optional[QWidget] = None
        if not is_root:
            self.remove_button = controls.remove_action(session, group.id, parent=self)
            header.addWidget(self.remove_button)

        layout.addLayout(header)

        self._children_layout = QVBoxLayout()
        self._children_layout.setSpacing(4)
        layout.addLayout(self._children_layout)

        self.sync(group)

    @property
    def node_id(self) -> str:
        return self._group_id

    def child_widget(self, node_id: str) -> Optional[ChildWidget]:
        """Find the widget of a descendant node."""
        if node_id in self._children:
            return self._children[node_id]
        for child in self._children.values():
            if isinstance(child, RuleGroupWidget):
                found = child.child_widget(node_id)
                if found is not None:
                    return found
        return None

    def sync(self, group: RuleGroup):
        """Reconcile the child widgets with the group's children."""
        self.combinator_combo.blockSignals(True)
        self.combinator_combo.setCurrentIndex(max(0, self.combinator_combo.findData(group.combinator)))
        self.combinator_combo.blockSignals(False)

        if self.not_checkbox is not None:
            self.not_checkbox.blockSignals(True)
            self.not_checkbox.setChecked(group.negated)
            self.not_checkbox.blockSignals(False)

        kept: dict[str, ChildWidget] = {}
        for node in group.rules:
            widget = self._children.pop(node.id, None)
            if widget is None:
                widget = self._create_child(node)
            else:
                widget.sync(node)
            kept[node.id] = widget

        for widget in self._children.values():
            self._children_layout.removeWidget(widget)
            widget.dispose()
            widget.deleteLater()

        for widget in kept.values():
            self._children_layout.removeWidget(widget)
        for index, widget in enumerate(kept.values()):
            self._children_layout.insertWidget(index, widget)

        self._children = kept

    def refresh(self, group: RuleGroup):
        """Update values and invalid markers without touching the layout."""
        self.combinator_combo.blockSignals(True)
        self.combinator_combo.setCurrentIndex(max(0, self.combinator_combo.findData(group.combinator)))
        self.combinator_combo.blockSignals(False)
        if self.not_checkbox is not None:
            self.not_checkbox.blockSignals(True)
            self.not_checkbox.setChecked(group.negated)
            self.not_checkbox.blockSignals(False)

        for node in group.rules:
            widget = self._children.get(node.id)
            if widget is not None:
                widget.refresh(node)

    def dispose(self):
        for widget in self._children.values():
            widget.dispose()

    def _create_child(self, node) -> ChildWidget:
        if isinstance(node, RuleGroup):
            return RuleGroupWidget(
                self._session, node, self._controls, self._theme,
                scheduler=self._scheduler, parent=self,
            )
        return RuleWidget(
            self._session, node, self._controls, self._theme,
            scheduler=self._scheduler, parent=self,
        )

    def _on_combinator_changed(self, index: int):
        combinator = self.combinator_combo.itemData(index)
        if combinator:
            self._session.set_combinator(self._group_id, combinator)


class StructuredEditorWidget(QScrollArea):
    """Scrollable structured editor bound to a session's rule tree."""

    def __init__(
        self,
        session: QueryBuilderSession,
        theme: str = "dark_blue",
        controls: Optional[ControlElements] = None,
        scheduler=None,
        parent=None,
    ):
        super().__init__(parent)

        self._session = session
        self._theme = theme
        self._controls = controls or ControlElements()
        self._scheduler = scheduler
        self.root_widget: Optional[RuleGroupWidget] = None

        self.setWidgetResizable(True)
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)

        self._build_root()
        self._unsubscribe = session.tree.subscribe(self._on_tree_changed)

        logger.debug("StructuredEditorWidget initialized")

    def _build_root(self):
        if self.root_widget is not None:
            self.root_widget.dispose()
        self.root_widget = RuleGroupWidget(
            self._session, self._session.root, self._controls, self._theme,
            is_root=True, scheduler=self._scheduler,
        )
        container = QWidget()
        layout = QVBoxLayout(container)
        layout.addWidget(self.root_widget)
        layout.addStretch()
        self.setWidget(container)

    def _on_tree_changed(self, root: RuleGroup, change: TreeChange):
        if self.root_widget is None or root.id != self.root_widget.node_id:
            self._build_root()
        elif change.is_structural:
            self.root_widget.sync(root)
        else:
            self.root_widget.refresh(root)

    def dispose(self):
        """Stop observing the tree and drop pending drafts."""
        self._unsubscribe()
        if self.root_widget is not None:
            self.root_widget.dispose()
