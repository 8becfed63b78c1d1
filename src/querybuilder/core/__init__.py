"""Core domain logic package.

This package contains the pure rule-tree logic of the query builder.
Modules here must not import GUI frameworks (PySide6, Qt, etc.).
"""
