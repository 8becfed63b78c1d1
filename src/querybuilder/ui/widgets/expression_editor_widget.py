"""
Textual expression editor.
"""

from PySide6.QtGui import QFontDatabase
from PySide6.QtWidgets import QLabel, QPlainTextEdit, QVBoxLayout, QWidget

from querybuilder.core.mode_sync import ModeSyncController
from querybuilder.infrastructure.logging_config import get_logger


logger = get_logger(__name__)


ERROR_STYLE = "color: #e53935;"


class ExpressionEditorWidget(QWidget):
    """
    Plain-text editor of the filter expression.

    Every edit is handed to the mode controller; text the controller
    replaces (on a mode switch or a change from elsewhere) is shown without
    being reported back.
    """

    def __init__(self, controller: ModeSyncController, parent=None):
        super().__init__(parent)

        self._controller = controller

        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)

        self.text_edit = QPlainTextEdit(self)
        self.text_edit.setFont(QFontDatabase.systemFont(QFontDatabase.SystemFont.FixedFont))
        self.text_edit.setPlaceholderText('cos_provider in ["AWS"] && region == "eu-west-1"')
        self.text_edit.setPlainText(controller.text)
        layout.addWidget(self.text_edit)

        self.error_label = QLabel(self)
        self.error_label.setStyleSheet(ERROR_STYLE)
        self.error_label.setWordWrap(True)
        layout.addWidget(self.error_label)

        self.text_edit.textChanged.connect(self._on_text_changed)
        self._unsubscribe = controller.subscribe_text(self.set_text)

        self._update_error()

    def text(self) -> str:
        return self.text_edit.toPlainText()

    def set_text(self, text: str):
        """Show text without reporting it as an edit."""
        if self.text_edit.toPlainText() != text:
            self.text_edit.blockSignals(True)
            self.text_edit.setPlainText(text)
            self.text_edit.blockSignals(False)
        self._update_error()

    def _on_text_changed(self):
        self._controller.text_changed_handler(self.text_edit.toPlainText())
        self._update_error()

    def _update_error(self):
        error = self._controller.error
        if error is None:
            self.error_label.clear()
            self.error_label.hide()
        else:
            self.error_label.setText(f"Syntax error: {error.message} (position {error.position})")
            self.error_label.show()

    def dispose(self):
        self._unsubscribe()
