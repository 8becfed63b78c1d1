"""
querybuilder - A boolean filter expression builder.

This package provides a rule-tree model, validation, a textual expression
codec and PySide6 editors for building filter queries over named fields.
"""

__version__ = "0.1.0"
