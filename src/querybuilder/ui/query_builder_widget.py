"""
Query builder widget.

Embeds the structured and the textual editor of one session behind a mode
picker and reports every committed change through queryChanged.
"""

from typing import Optional, Sequence

from PySide6.QtCore import Signal
from PySide6.QtWidgets import QMessageBox, QStackedWidget, QVBoxLayout, QWidget

from querybuilder.config.settings import AppSettings
from querybuilder.core.models import BuilderMode, Field, RuleGroup
from querybuilder.core.session import QueryBuilderSession
from querybuilder.infrastructure.logging_config import get_logger
from querybuilder.ui.widgets.expression_editor_widget import ExpressionEditorWidget
from querybuilder.ui.widgets.mode_picker import ModePicker
from querybuilder.ui.widgets.rule_group_widget import ControlElements, StructuredEditorWidget


logger = get_logger(__name__)


class QueryBuilderWidget(QWidget):
    """
    Boolean filter editor with structured and textual modes.

    Signals:
        queryChanged(object): the current RuleGroup after each committed
            change, or None when the expression text does not parse.
        queryErrorChanged(bool): the expression started or stopped parsing.
    """

    queryChanged = Signal(object)
    queryErrorChanged = Signal(bool)

    def __init__(
        self,
        fields: Sequence[Field],
        default_query: Optional[RuleGroup] = None,
        settings: Optional[AppSettings] = None,
        theme: Optional[str] = None,
        controls: Optional[ControlElements] = None,
        scheduler=None,
        parent=None,
    ):
        """
        Initialize the query builder widget.

        Args:
            fields: Field catalog.
            default_query: Initial query. Empty when None.
            settings: Builder settings. Defaults of AppSettings when None.
            theme: qt-material theme name. Taken from settings when None.
            controls: Factories of the rule row controls.
            scheduler: Timer backend of the text value editors.
            parent: Parent widget.
        """
        super().__init__(parent)

        settings = settings or AppSettings()
        self._theme = theme or settings.theme
        self._query_error = False

        self.session = QueryBuilderSession(
            fields,
            default_query=default_query,
            on_change=self._on_query_changed,
            exempt_field_names=settings.exempt_field_names,
            default_field=settings.default_field,
            group_order=settings.group_order,
            debounce_ms=settings.debounce_ms,
        )

        self._setup_ui(controls, scheduler)
        self._connect_signals()

        if settings.builder_mode is BuilderMode.TEXTUAL:
            self._on_mode_requested(BuilderMode.TEXTUAL)

        logger.debug("QueryBuilderWidget initialized")

    def _setup_ui(self, controls: Optional[ControlElements], scheduler):
        """Setup the user interface."""
        layout = QVBoxLayout(self)

        self.mode_picker = ModePicker(self.session.mode, self)
        layout.addWidget(self.mode_picker)

        self.stack = QStackedWidget(self)
        self.structured_editor = StructuredEditorWidget(
            self.session, theme=self._theme, controls=controls, scheduler=scheduler
        )
        self.expression_editor = ExpressionEditorWidget(self.session.controller)
        self.stack.addWidget(self.structured_editor)
        self.stack.addWidget(self.expression_editor)
        layout.addWidget(self.stack, 1)

    def _connect_signals(self):
        """Connect UI signals to slots."""
        self.mode_picker.modeRequested.connect(self._on_mode_requested)

    @property
    def theme(self) -> str:
        return self._theme

    @property
    def mode(self) -> BuilderMode:
        return self.session.mode

    @property
    def query_error(self) -> bool:
        return self.session.query_error

    def query(self) -> RuleGroup:
        return self.session.root

    def set_query(self, query: RuleGroup):
        """Replace the edited query, e.g. with a loaded preset."""
        self.session.load_query(query)

    def _on_mode_requested(self, mode: BuilderMode):
        if not self.session.switch_mode(mode):
            if mode is BuilderMode.TEXTUAL:
                QMessageBox.warning(
                    self,
                    "Cannot Switch to Text",
                    "The query contains a condition that cannot be written as an expression.\n\n"
                    "Please change or remove it before switching to text."
                )
            else:
                QMessageBox.warning(
                    self,
                    "Cannot Switch to Query Builder",
                    "The expression contains a syntax error.\n\n"
                    "Please fix the expression before switching to the query builder."
                )
            # Stay in the current mode
            self.mode_picker.set_mode(self.session.mode)
            return

        self.mode_picker.set_mode(mode)
        if mode is BuilderMode.TEXTUAL:
            self.stack.setCurrentWidget(self.expression_editor)
        else:
            self.stack.setCurrentWidget(self.structured_editor)

    def _on_query_changed(self, query: Optional[RuleGroup]):
        error = self.session.query_error
        if error != self._query_error:
            self._query_error = error
            self.queryErrorChanged.emit(error)
        self.queryChanged.emit(query)

    def dispose(self):
        """Tear down the editors, dropping pending drafts."""
        self.structured_editor.dispose()
        self.expression_editor.dispose()
