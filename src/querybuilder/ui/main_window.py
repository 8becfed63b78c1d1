"""
Main application window.

Hosts one QueryBuilderWidget and the menus around it: field catalogs,
filter presets and themes.
"""

from pathlib import Path
from typing import Optional, Sequence

from PySide6.QtCore import Slot
from PySide6.QtGui import QAction, QActionGroup
from PySide6.QtWidgets import (
    QApplication, QFileDialog, QInputDialog, QLabel, QMainWindow, QMessageBox,
)
from qt_material import apply_stylesheet

from querybuilder.config.settings import get_settings, get_settings_manager
from querybuilder.core.errors import QueryBuilderError
from querybuilder.core.expression import serialize
from querybuilder.core.models import Field, RuleGroup
from querybuilder.infrastructure.catalog_loader import CatalogError, load_field_catalog
from querybuilder.infrastructure.logging_config import get_logger
from querybuilder.infrastructure.presets import PresetError, list_presets, load_preset, save_preset
from querybuilder.ui.query_builder_widget import QueryBuilderWidget


logger = get_logger(__name__)


THEMES = ("dark_blue", "dark_teal", "dark_amber", "light_blue", "light_teal", "light_amber")


def apply_theme(theme: str):
    """
    Apply a qt-material theme to the running application.

    Args:
        theme: Theme name, with or without the .xml suffix.
    """
    app = QApplication.instance()
    if app is None:
        return
    if not theme.endswith('.xml'):
        theme = f"{theme}.xml"
    apply_stylesheet(app, theme=theme, invert_secondary=theme.startswith('light_'))
    logger.info(f"Theme applied: {theme}")


class MainWindow(QMainWindow):
    """
    Main application window.

    The query builder is recreated when another field catalog is opened.
    """

    def __init__(self, fields: Sequence[Field], parent=None):
        """Initialize the main window."""
        super().__init__(parent)

        self._fields = list(fields)
        self.builder: Optional[QueryBuilderWidget] = None

        self._setup_ui()
        self._create_builder()

        logger.info("MainWindow initialized")

    def _setup_ui(self):
        """Setup the user interface."""
        settings = get_settings()
        self.setWindowTitle("querybuilder")
        self.resize(settings.window_width, settings.window_height)

        self._status_label = QLabel(self)
        self.statusBar().addPermanentWidget(self._status_label, 1)

        file_menu = self.menuBar().addMenu("&File")
        file_menu.addAction("Open Field Catalog...", self.open_catalog)
        file_menu.addSeparator()
        file_menu.addAction("Save Preset...", self.save_preset)
        self._presets_menu = file_menu.addMenu("Load Preset")
        self._presets_menu.aboutToShow.connect(self._update_presets_menu)
        file_menu.addSeparator()
        file_menu.addAction("Clear Query", self.clear_query)
        file_menu.addAction("Quit", self.close)

        view_menu = self.menuBar().addMenu("&View")
        theme_menu = view_menu.addMenu("Theme")
        theme_group = QActionGroup(self)
        for theme in THEMES:
            action = QAction(theme, self, checkable=True)
            action.setChecked(theme == settings.theme)
            action.triggered.connect(lambda _checked, t=theme: self.set_theme(t))
            theme_group.addAction(action)
            theme_menu.addAction(action)

    def _create_builder(self, query: Optional[RuleGroup] = None):
        if self.builder is not None:
            self.builder.dispose()
            self.builder.deleteLater()

        self.builder = QueryBuilderWidget(self._fields, default_query=query, settings=get_settings())
        self.builder.queryChanged.connect(self._on_query_changed)
        self.setCentralWidget(self.builder)
        self._on_query_changed(self.builder.query())

    @Slot(object)
    def _on_query_changed(self, query: Optional[RuleGroup]):
        if query is None:
            self._status_label.setText("Expression does not parse")
            return
        try:
            text = serialize(query) or "(empty query)"
        except QueryBuilderError as e:
            text = str(e)
        state = "valid" if self.builder.session.is_valid else "incomplete"
        self._status_label.setText(f"[{state}] {text}")

    @Slot()
    def open_catalog(self):
        """Ask for a field catalog file and rebuild the editor on it."""
        path, _ = QFileDialog.getOpenFileName(self, "Open Field Catalog", "", "JSON files (*.json)")
        if not path:
            return
        try:
            fields = load_field_catalog(Path(path))
        except (OSError, CatalogError) as e:
            QMessageBox.critical(self, "Error", f"Failed to load field catalog:\n{e}")
            return

        self._fields = fields
        get_settings_manager().update(field_catalog_path=str(Path(path)).replace('\\', '/'))
        self._create_builder(self.builder.query())

    @Slot()
    def save_preset(self):
        """Save the current query as a preset."""
        if self.builder.query_error:
            QMessageBox.warning(
                self,
                "Invalid Expression",
                "The expression contains a syntax error. Cannot save it as a preset."
            )
            return
        if not self.builder.query().rules:
            QMessageBox.warning(self, "No Filter", "The query is empty. Cannot save an empty preset.")
            return

        name, ok = QInputDialog.getText(self, "Save Preset", "Enter a name for this filter preset:")
        if not ok or not name.strip():
            return

        try:
            save_preset(name.strip(), self.builder.query())
        except PresetError as e:
            QMessageBox.critical(self, "Error", f"Failed to save preset:\n{e}")
            return
        get_settings_manager().add_recent_preset(name.strip())
        self.statusBar().showMessage(f"Preset '{name.strip()}' saved", 3000)

    def _update_presets_menu(self):
        self._presets_menu.clear()
        names = list_presets()
        if not names:
            action = self._presets_menu.addAction("No presets")
            action.setEnabled(False)
            return
        for name in names:
            self._presets_menu.addAction(name, lambda n=name: self.load_preset(n))

    def load_preset(self, name: str):
        try:
            query = load_preset(name)
        except PresetError as e:
            QMessageBox.critical(self, "Error", f"Failed to load preset:\n{e}")
            get_settings_manager().remove_recent_preset(name)
            return
        self.builder.set_query(query)
        get_settings_manager().add_recent_preset(name)

    @Slot()
    def clear_query(self):
        self.builder.set_query(RuleGroup())

    def set_theme(self, theme: str):
        apply_theme(theme)
        get_settings_manager().update(theme=theme)
        # The multi-select popups are styled for the theme they were created with
        self._create_builder(self.builder.query())

    def closeEvent(self, event):
        get_settings_manager().update(window_width=self.width(), window_height=self.height())
        if self.builder is not None:
            self.builder.dispose()
        super().closeEvent(event)
