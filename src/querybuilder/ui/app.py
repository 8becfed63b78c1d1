"""
Main application entry point.

This module initializes and runs the PySide6 application.
"""

import argparse
import sys
from pathlib import Path
from typing import Optional

from PySide6.QtWidgets import QApplication

from querybuilder import __version__
from querybuilder.config.settings import get_settings
from querybuilder.core.models import Field
from querybuilder.infrastructure.catalog_loader import CatalogError, load_field_catalog, parse_field_catalog
from querybuilder.infrastructure.logging_config import get_logger, setup_logging
from querybuilder.ui.main_window import MainWindow, apply_theme


logger = get_logger(__name__)


# Shown when no catalog file is configured
DEMO_CATALOG = [
    {"name": "cos_provider", "label": "Provider", "group": "billing",
     "valueOptions": ["AWS", "GCP", "Azure"], "defaultOperator": "in"},
    {"name": "cos_service", "label": "Service", "group": "billing"},
    {"name": "cos_cost", "label": "Cost", "group": "billing",
     "operators": ["=", "!=", "<", ">", "<=", ">="]},
    {"name": "aws_region", "label": "Region", "group": "aws",
     "valueOptions": ["us-east-1", "eu-west-1", "ap-southeast-2"]},
    {"name": "aws_account", "label": "Account", "group": "aws"},
    {"name": "gcp_project", "label": "Project", "group": "gcp"},
    {"name": "k8s_namespace", "label": "Namespace", "group": "kubernetes"},
    {"name": "team", "label": "team", "group": "labels"},
]


def _load_catalog(path: Optional[str]) -> list[Field]:
    if path:
        try:
            return load_field_catalog(Path(path))
        except (OSError, CatalogError):
            logger.warning(f"Falling back to the demo catalog, {path} could not be loaded")
    return parse_field_catalog(DEMO_CATALOG)


def main(argv: Optional[list[str]] = None):
    """
    Main entry point for the GUI application.
    """
    parser = argparse.ArgumentParser(prog="querybuilder-gui", description="Boolean filter query builder")
    parser.add_argument("--fields", help="Path to a JSON field catalog")
    args = parser.parse_args(argv)

    # Setup logging (logs to persistent data directory with rotation)
    settings = get_settings()
    setup_logging(level=settings.log_level, log_to_file=settings.log_to_file)

    logger.info("Starting querybuilder application")

    app = QApplication(sys.argv[:1])
    app.setApplicationName("querybuilder")
    app.setApplicationVersion(__version__)

    apply_theme(settings.theme)

    window = MainWindow(_load_catalog(args.fields or settings.field_catalog_path))
    window.show()

    logger.info("Main window displayed")

    exit_code = app.exec()

    logger.info(f"Application exiting with code {exit_code}")

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
