"""Refactor Assistant: conversational front-end to remote refactoring assessments."""

__version__ = "0.1.0"
