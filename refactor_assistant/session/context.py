"""Conversation state, the per-session context it operates on, and the session record.

SessionContext is immutable: every transition returns a new instance built
with ``dataclasses.replace``. ConversationSession is the mutable record a
SessionSupervisor owns; only the supervisor swaps its context.
"""

import itertools
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum

_trace_ids = itertools.count(1)


def next_trace_id() -> int:
    """Process-wide monotonically increasing conversation trace id."""
    return next(_trace_ids)


class ConversationState(str, Enum):
    """Where a conversation currently is."""

    START_OF_CONVERSATION = "StartOfConversation"
    GENERATE_INITIAL_PLAN = "GenerateInitialPlan"
    REVISE_PLAN = "RevisePlan"
    PLAN_GENERATION_FOLLOWUP = "PlanGenerationFollowup"
    CONVERSATION_ERRORED = "ConversationErrored"
    CONVERSATION_NOT_STARTED = "ConversationNotStarted"


@dataclass(frozen=True)
class SessionContext:
    """Everything a conversation state needs to carry between turns.

    Attributes:
        session_id: Conversation (tab) identifier.
        state: Current conversation state.
        engagement_id: Remote engagement, created on the first plan request.
        assessment_id: Most recently started assessment.
        interaction_id: Most recently started follow-up interaction.
        prompt: First user message, held until the plan is requested.
        error_code: E-XXXX code reported by ConversationErrored on its next turn.
    """

    session_id: str
    state: ConversationState = ConversationState.START_OF_CONVERSATION
    engagement_id: str | None = None
    assessment_id: str | None = None
    interaction_id: str | None = None
    prompt: str = ""
    error_code: str | None = None

    def evolve(self, **changes) -> "SessionContext":
        return replace(self, **changes)


@dataclass
class ConversationSession:
    """Mutable record of one open conversation."""

    context: SessionContext
    is_authenticating: bool = False
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    trace_id: int = field(default_factory=next_trace_id)
    interaction_count: int = 0

    @property
    def session_id(self) -> str:
        return self.context.session_id

    @property
    def state(self) -> ConversationState:
        return self.context.state
