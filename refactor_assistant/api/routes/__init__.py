"""API route modules."""

from refactor_assistant.api.routes import commands, sessions

__all__ = ["commands", "sessions"]
