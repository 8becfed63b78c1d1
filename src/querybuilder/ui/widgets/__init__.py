"""Reusable widgets composing the structured and textual editors."""
