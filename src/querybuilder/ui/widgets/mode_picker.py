"""
Toggle between the structured and the textual editor.
"""

from PySide6.QtCore import Signal
from PySide6.QtWidgets import QButtonGroup, QHBoxLayout, QPushButton, QWidget

from querybuilder.core.models import BuilderMode


class ModePicker(QWidget):
    """Two exclusive buttons; emits modeRequested when the user picks one."""

    modeRequested = Signal(object)

    LABELS = {
        BuilderMode.STRUCTURED: "Query Builder",
        BuilderMode.TEXTUAL: "Text",
    }

    def __init__(self, mode: BuilderMode = BuilderMode.STRUCTURED, parent=None):
        super().__init__(parent)

        layout = QHBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)

        self._group = QButtonGroup(self)
        self._group.setExclusive(True)
        self._buttons: dict[BuilderMode, QPushButton] = {}
        for builder_mode, label in self.LABELS.items():
            button = QPushButton(label, self)
            button.setCheckable(True)
            self._group.addButton(button)
            self._buttons[builder_mode] = button
            layout.addWidget(button)
            button.clicked.connect(lambda _checked, m=builder_mode: self.modeRequested.emit(m))
        layout.addStretch()

        self.set_mode(mode)

    def button(self, mode: BuilderMode) -> QPushButton:
        return self._buttons[mode]

    def set_mode(self, mode: BuilderMode):
        """Check the button of a mode without emitting modeRequested."""
        button = self._buttons[mode]
        button.blockSignals(True)
        button.setChecked(True)
        button.blockSignals(False)
