"""Inbound command and outbound event contracts for the chat surface.

Inbound commands arrive from the UI layer and are routed by the
ChatController. Outbound events are emitted by conversation states through
the Messenger and are never awaited by the core. Both serialize to
camelCase JSON with a ``type`` discriminator.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class _ChatModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Shared pieces
# ============================================================================


class FollowUpOption(_ChatModel):
    """A clickable suggestion pill."""

    pill_text: str
    prompt: str


class FollowUp(_ChatModel):
    """A group of suggestion pills rendered under an answer."""

    text: str = "Try Examples:"
    options: list[FollowUpOption] = Field(default_factory=list)


# ============================================================================
# Outbound events
# ============================================================================


class AnswerEvent(_ChatModel):
    """A complete chat bubble."""

    type: Literal["answer"] = "answer"
    session_id: str
    message: str
    message_id: str | None = None
    follow_up: FollowUp | None = None
    can_be_voted: bool = False


class AnswerStreamEvent(_ChatModel):
    """Create or update a streaming bubble identified by message_id."""

    type: Literal["answerStream"] = "answerStream"
    session_id: str
    message_id: str
    message: str
    final: bool = False


class PlaceholderUpdateEvent(_ChatModel):
    """Replace the chat input placeholder; empty string clears it."""

    type: Literal["placeholderUpdate"] = "placeholderUpdate"
    session_id: str
    placeholder: str


class AuthNeededEvent(_ChatModel):
    """Ask the user to (re-)authenticate before continuing."""

    type: Literal["authNeeded"] = "authNeeded"
    session_id: str
    message: str
    auth_type: Literal["full-auth", "re-auth"] = "re-auth"


class InputEnabledEvent(_ChatModel):
    """Enable or disable the chat input box."""

    type: Literal["inputEnabled"] = "inputEnabled"
    session_id: str
    enabled: bool


OutboundEvent = Annotated[
    Union[
        AnswerEvent,
        AnswerStreamEvent,
        PlaceholderUpdateEvent,
        AuthNeededEvent,
        InputEnabledEvent,
    ],
    Field(discriminator="type"),
]


# ============================================================================
# Inbound commands
# ============================================================================


class ChatMessageCommand(_ChatModel):
    """User typed a message."""

    type: Literal["chatMessage"] = "chatMessage"
    session_id: str
    message: str


class FollowUpClickedCommand(_ChatModel):
    """User clicked a suggestion pill; its prompt is sent as a message."""

    type: Literal["followUpClicked"] = "followUpClicked"
    session_id: str
    follow_up: FollowUpOption


class StopResponseCommand(_ChatModel):
    """User pressed stop while a response was in progress."""

    type: Literal["stopResponse"] = "stopResponse"
    session_id: str


class TabClosedCommand(_ChatModel):
    """User closed the conversation tab."""

    type: Literal["tabClosed"] = "tabClosed"
    session_id: str


class AuthChangedCommand(_ChatModel):
    """Authentication state changed; fanned out to every open session."""

    type: Literal["authChanged"] = "authChanged"
    authenticated: bool
    session_id: str | None = None


InboundCommand = Annotated[
    Union[
        ChatMessageCommand,
        FollowUpClickedCommand,
        StopResponseCommand,
        TabClosedCommand,
        AuthChangedCommand,
    ],
    Field(discriminator="type"),
]

inbound_command_adapter: TypeAdapter[InboundCommand] = TypeAdapter(InboundCommand)
