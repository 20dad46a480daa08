"""Outbound chat events and the sinks that deliver them.

Conversation states emit events through a Messenger; delivery is
fire-and-forget. Sinks are called synchronously and must not block.
Exceptions from individual sinks are caught and logged so one broken
sink never stops delivery to the others or fails a conversation.
"""

import asyncio
import logging
from typing import Literal, Protocol

from refactor_assistant.models import (
    AnswerEvent,
    AnswerStreamEvent,
    AuthNeededEvent,
    FollowUp,
    FollowUpOption,
    InputEnabledEvent,
    OutboundEvent,
    PlaceholderUpdateEvent,
)

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    """Receiver of outbound chat events."""

    def deliver(self, event: OutboundEvent) -> None:
        """Accept one event. Must not block."""
        ...


class QueueEventSink:
    """Sink that fans events out to per-subscriber asyncio queues.

    Used by the SSE endpoint: each open event stream gets its own queue,
    so several streams may follow the same session. Events for sessions
    without a subscriber are dropped.
    """

    def __init__(self) -> None:
        """Initialize sink with empty subscription map."""
        self._queues: dict[str, list[asyncio.Queue[OutboundEvent]]] = {}

    def subscribe(self, session_id: str) -> asyncio.Queue[OutboundEvent]:
        """Create a new event queue for one subscriber of a session.

        Args:
            session_id: Conversation identifier.

        Returns:
            asyncio.Queue receiving that session's events.
        """
        queue: asyncio.Queue[OutboundEvent] = asyncio.Queue()
        self._queues.setdefault(session_id, []).append(queue)
        logger.debug("Created event subscription for session %s", session_id)
        return queue

    def unsubscribe(self, session_id: str, queue: asyncio.Queue[OutboundEvent]) -> None:
        """Remove one subscriber's queue. No-op if it is not subscribed."""
        queues = self._queues.get(session_id)
        if not queues or queue not in queues:
            return
        queues.remove(queue)
        if not queues:
            del self._queues[session_id]
        logger.debug("Removed event subscription for session %s", session_id)

    def has_subscribers(self, session_id: str) -> bool:
        return bool(self._queues.get(session_id))

    def deliver(self, event: OutboundEvent) -> None:
        for queue in self._queues.get(event.session_id, ()):
            queue.put_nowait(event)


class Messenger:
    """Publishes outbound events to registered sinks."""

    def __init__(self) -> None:
        """Initialize messenger with empty sink list."""
        self._sinks: list[EventSink] = []

    def add_sink(self, sink: EventSink) -> None:
        """Register a sink to receive every outbound event.

        Args:
            sink: Object implementing the EventSink protocol.
        """
        self._sinks.append(sink)

    def remove_sink(self, sink: EventSink) -> None:
        self._sinks.remove(sink)

    def publish(self, event: OutboundEvent) -> None:
        """Deliver an event to all sinks, logging sink failures.

        Args:
            event: The outbound event.
        """
        for sink in self._sinks:
            try:
                sink.deliver(event)
            except Exception as e:
                logger.warning(
                    "Sink %s failed to deliver %s for session %s: %s",
                    type(sink).__name__,
                    event.type,
                    event.session_id,
                    e,
                )

    def for_session(self, session_id: str) -> "SessionMessenger":
        """Return a helper bound to one conversation."""
        return SessionMessenger(self, session_id)


class SessionMessenger:
    """Messenger bound to a single session id.

    Conversation states only ever talk to their own session, so they are
    handed one of these instead of the shared Messenger.
    """

    def __init__(self, messenger: Messenger, session_id: str) -> None:
        self._messenger = messenger
        self.session_id = session_id

    def send_answer(
        self,
        message: str,
        *,
        message_id: str | None = None,
        follow_up_options: list[FollowUpOption] | None = None,
        can_be_voted: bool = False,
    ) -> None:
        follow_up = (
            FollowUp(options=follow_up_options) if follow_up_options else None
        )
        self._messenger.publish(
            AnswerEvent(
                session_id=self.session_id,
                message=message,
                message_id=message_id,
                follow_up=follow_up,
                can_be_voted=can_be_voted,
            )
        )

    def send_initial_stream(self, message_id: str, message: str) -> None:
        """Open a streaming bubble that later updates replace in place."""
        self._messenger.publish(
            AnswerStreamEvent(
                session_id=self.session_id, message_id=message_id, message=message
            )
        )

    def update_stream(self, message_id: str, message: str, final: bool = False) -> None:
        self._messenger.publish(
            AnswerStreamEvent(
                session_id=self.session_id,
                message_id=message_id,
                message=message,
                final=final,
            )
        )

    def update_placeholder(self, placeholder: str) -> None:
        self._messenger.publish(
            PlaceholderUpdateEvent(session_id=self.session_id, placeholder=placeholder)
        )

    def send_auth_needed(
        self,
        message: str,
        auth_type: Literal["full-auth", "re-auth"] = "re-auth",
    ) -> None:
        self._messenger.publish(
            AuthNeededEvent(
                session_id=self.session_id, message=message, auth_type=auth_type
            )
        )

    def send_input_enabled(self, enabled: bool) -> None:
        self._messenger.publish(
            InputEnabledEvent(session_id=self.session_id, enabled=enabled)
        )
