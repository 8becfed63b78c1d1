"""
Value editors of a rule row.

Which editor a rule gets depends on its operator (see
core.editors.value_editor_kind): a disabled box for operators without
operand, a debounced line edit for scalar operators and a multi-select for
membership operators.
"""

from typing import Any, Callable, Optional

from PySide6.QtCore import QObject, QTimer, Qt
from PySide6.QtGui import QAction
from PySide6.QtWidgets import (
    QHBoxLayout, QLineEdit, QMenu, QSizePolicy, QToolButton, QWidget, QWidgetAction,
)

from querybuilder.core.debounce import DebouncedValueCommit
from querybuilder.core.editors import (
    ValueEditorKind, membership_options, selected_values, text_value, toggle_value,
    value_editor_kind,
)
from querybuilder.core.models import Rule
from querybuilder.core.session import QueryBuilderSession
from querybuilder.infrastructure.logging_config import get_logger


logger = get_logger(__name__)


INVALID_STYLE = "border: 1px solid #e53935;"


class QtTimerScheduler:
    """TimerScheduler backed by single-shot QTimers."""

    def __init__(self, parent: Optional[QObject] = None):
        self._parent = parent

    def start(self, interval_ms: int, callback: Callable[[], None]) -> QTimer:
        timer = QTimer(self._parent)
        timer.setSingleShot(True)
        timer.timeout.connect(callback)
        timer.timeout.connect(timer.deleteLater)
        timer.start(interval_ms)
        return timer

    def cancel(self, handle: Any) -> None:
        if handle is None:
            return
        handle.stop()
        handle.deleteLater()


def _set_invalid(widget: QWidget, invalid: bool):
    widget.setProperty("invalid", invalid)
    widget.setStyleSheet(INVALID_STYLE if invalid else "")


class DisabledValueEditor(QLineEdit):
    """Placeholder for operators that take no operand."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setEnabled(False)
        self.setPlaceholderText("No value needed")

    def sync(self, rule: Rule):
        pass

    def set_invalid(self, invalid: bool):
        _set_invalid(self, invalid)

    def dispose(self):
        pass


class TextValueEditor(QLineEdit):
    """
    Free-text value editor.

    Keystrokes update the local draft and reach the rule tree through a
    DebouncedValueCommit. Pressing Enter or leaving the field commits at once.
    """

    def __init__(self, session: QueryBuilderSession, rule: Rule, scheduler=None, parent=None):
        """
        Initialize the text value editor.

        Args:
            session: Session owning the rule.
            rule: The edited rule.
            scheduler: Timer backend. A QtTimerScheduler when None.
            parent: Parent widget.
        """
        super().__init__(parent)

        self._rule_id = rule.id
        self._commit = DebouncedValueCommit(
            session.tree,
            rule.id,
            scheduler or QtTimerScheduler(self),
            session.debounce_ms,
        )

        self.setPlaceholderText("Enter value...")
        self.setText(text_value(rule))

        # textEdited is not emitted by setText(), so syncing never echoes back
        self.textEdited.connect(self._commit.push)
        self.editingFinished.connect(self._commit.flush)

    @property
    def commit(self) -> DebouncedValueCommit:
        return self._commit

    def sync(self, rule: Rule):
        """Show the committed value unless a newer draft is pending."""
        if self._commit.pending:
            return
        value = text_value(rule)
        if self.text() != value:
            self.setText(value)

    def set_invalid(self, invalid: bool):
        _set_invalid(self, invalid)

    def dispose(self):
        self._commit.close()


class MultiValueEditor(QWidget):
    """
    Multi-select over a field's options plus the values already in the rule.

    Selections commit immediately. Values outside the field's options can be
    typed into the box at the bottom of the menu. The menu is rebuilt each
    time it opens.
    """

    def __init__(self, session: QueryBuilderSession, rule: Rule, theme: str, parent=None):
        """
        Initialize the multi-value editor.

        Args:
            session: Session owning the rule.
            rule: The edited rule.
            theme: qt-material theme name the popup is styled for.
            parent: Parent widget.
        """
        super().__init__(parent)

        self._session = session
        self._rule_id = rule.id
        self._theme = theme
        self._selected: list[str] = selected_values(rule)

        layout = QHBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)

        self._button = QToolButton(self)
        self._button.setPopupMode(QToolButton.ToolButtonPopupMode.InstantPopup)
        self._button.setToolButtonStyle(Qt.ToolButtonStyle.ToolButtonTextOnly)
        self._button.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Preferred)
        layout.addWidget(self._button)

        self._menu = QMenu(self._button)
        self._menu.setStyleSheet(self._menu_style())
        self._menu.aboutToShow.connect(self.refresh_menu)
        self._button.setMenu(self._menu)

        self._update_button_text()
        self.refresh_menu()

    @property
    def theme(self) -> str:
        return self._theme

    @property
    def selected(self) -> list[str]:
        return list(self._selected)

    def _menu_style(self) -> str:
        if self._theme.startswith('light_'):
            return "QMenu { background-color: #ffffff; color: #1f1f1f; }"
        return "QMenu { background-color: #31363b; color: #f0f0f0; }"

    def _update_button_text(self):
        self._button.setText(', '.join(self._selected) if self._selected else "Select values...")

    def refresh_menu(self):
        """Rebuild the option actions from the rule's current state."""
        if not self._session.tree.contains(self._rule_id):
            return
        rule = self._session.tree.find(self._rule_id)
        field_def = self._session.tree.get_field(rule.field)

        self._menu.clear()
        for option in membership_options(field_def, rule):
            action = QAction(option.display, self._menu)
            action.setCheckable(True)
            action.setChecked(option.name in self._selected)
            action.setData(option.name)
            action.toggled.connect(
                lambda checked, name=option.name: self._on_option_toggled(name, checked)
            )
            self._menu.addAction(action)

        self._menu.addSeparator()

        # Owned by the action, deleted with it on the next clear()
        custom_input = QLineEdit()
        custom_input.setPlaceholderText("Add value...")
        custom_input.returnPressed.connect(lambda: self._add_custom_value(custom_input.text()))
        custom_action = QWidgetAction(self._menu)
        custom_action.setDefaultWidget(custom_input)
        self._menu.addAction(custom_action)

    def option_actions(self) -> list[QAction]:
        return [a for a in self._menu.actions() if a.isCheckable()]

    def _on_option_toggled(self, name: str, checked: bool):
        values = toggle_value(self._selected, name, checked)
        logger.debug(f"Multi-select on rule {self._rule_id}: {values}")
        self._session.set_value(self._rule_id, values)

    def _add_custom_value(self, text: str):
        value = text.strip()
        if value:
            self._session.set_value(self._rule_id, toggle_value(self._selected, value, True))
            self._menu.close()

    def sync(self, rule: Rule):
        self._selected = selected_values(rule)
        self._update_button_text()

    def set_invalid(self, invalid: bool):
        _set_invalid(self._button, invalid)

    def dispose(self):
        pass


def create_value_editor(session: QueryBuilderSession, rule: Rule, theme: str, scheduler=None, parent=None) -> QWidget:
    """Create the value editor matching a rule's operator."""
    kind = value_editor_kind(rule.operator)
    if kind is ValueEditorKind.DISABLED:
        return DisabledValueEditor(parent)
    if kind is ValueEditorKind.MULTI_SELECT:
        return MultiValueEditor(session, rule, theme, parent)
    return TextValueEditor(session, rule, scheduler, parent)
