"""Conversation state machine, per-session supervision and the session registry."""

from refactor_assistant.session.context import (
    ConversationSession,
    ConversationState,
    SessionContext,
)
from refactor_assistant.session.registry import SessionRegistry
from refactor_assistant.session.states import ActiveOperation, StateServices
from refactor_assistant.session.supervisor import SessionSupervisor

__all__ = [
    "ActiveOperation",
    "ConversationSession",
    "ConversationState",
    "SessionContext",
    "SessionRegistry",
    "SessionSupervisor",
    "StateServices",
]
