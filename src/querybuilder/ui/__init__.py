"""PySide6 user interface for the query builder."""
