"""Pydantic models for the remote job API and the chat surface."""

from refactor_assistant.models.events import (
    AnswerEvent,
    AnswerStreamEvent,
    AuthChangedCommand,
    AuthNeededEvent,
    ChatMessageCommand,
    FollowUp,
    FollowUpClickedCommand,
    FollowUpOption,
    InboundCommand,
    InputEnabledEvent,
    OutboundEvent,
    PlaceholderUpdateEvent,
    StopResponseCommand,
    TabClosedCommand,
    inbound_command_adapter,
)
from refactor_assistant.models.workflow import (
    TERMINAL_STATUSES,
    AssessmentHandle,
    AssessmentStatus,
    DownloadTarget,
    EngagementCreated,
    IntentResponse,
    InteractionHandle,
    InteractionStatus,
    UploadTarget,
    UserIntent,
    WorkflowStatus,
    WorkflowStatusResponse,
)

__all__ = [
    # Remote job API
    "WorkflowStatus",
    "TERMINAL_STATUSES",
    "UserIntent",
    "EngagementCreated",
    "UploadTarget",
    "DownloadTarget",
    "AssessmentHandle",
    "AssessmentStatus",
    "InteractionHandle",
    "InteractionStatus",
    "WorkflowStatusResponse",
    "IntentResponse",
    # Chat surface
    "FollowUp",
    "FollowUpOption",
    "AnswerEvent",
    "AnswerStreamEvent",
    "PlaceholderUpdateEvent",
    "AuthNeededEvent",
    "InputEnabledEvent",
    "OutboundEvent",
    "ChatMessageCommand",
    "FollowUpClickedCommand",
    "StopResponseCommand",
    "TabClosedCommand",
    "AuthChangedCommand",
    "InboundCommand",
    "inbound_command_adapter",
]
