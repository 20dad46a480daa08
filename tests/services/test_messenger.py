"""Tests for Messenger, SessionMessenger and QueueEventSink."""

import logging
from unittest.mock import MagicMock

import pytest

from refactor_assistant.models import AnswerEvent, FollowUpOption
from refactor_assistant.services.messenger import Messenger, QueueEventSink


class BrokenSink:
    def deliver(self, event):
        raise RuntimeError("sink down")


class TestMessenger:
    """Fan-out to sinks."""

    def test_publish_reaches_every_sink(self, sink):
        """Each registered sink receives the event."""
        other = MagicMock()
        messenger = Messenger()
        messenger.add_sink(sink)
        messenger.add_sink(other)

        messenger.publish(AnswerEvent(session_id="tab-1", message="hi"))

        assert len(sink.events) == 1
        other.deliver.assert_called_once()

    def test_broken_sink_is_logged_not_raised(self, sink, caplog):
        """A failing sink does not stop delivery to later sinks."""
        messenger = Messenger()
        messenger.add_sink(BrokenSink())
        messenger.add_sink(sink)

        with caplog.at_level(logging.WARNING):
            messenger.publish(AnswerEvent(session_id="tab-1", message="hi"))

        assert len(sink.events) == 1
        assert "BrokenSink failed to deliver answer" in caplog.text

    def test_remove_sink(self, sink):
        """Removed sinks stop receiving events."""
        messenger = Messenger()
        messenger.add_sink(sink)
        messenger.remove_sink(sink)
        messenger.publish(AnswerEvent(session_id="tab-1", message="hi"))
        assert sink.events == []


class TestSessionMessenger:
    """Session-bound helpers."""

    def test_send_answer_with_follow_ups(self, messenger, sink):
        """Options are wrapped in a FollowUp with the default heading."""
        options = [FollowUpOption(pill_text="Costs", prompt="Optimize for costs")]
        messenger.for_session("tab-9").send_answer("Done", follow_up_options=options, can_be_voted=True)

        event = sink.events[0]
        assert event.session_id == "tab-9"
        assert event.follow_up.text == "Try Examples:"
        assert event.follow_up.options[0].prompt == "Optimize for costs"
        assert event.can_be_voted is True

    def test_answer_without_options_has_no_follow_up(self, messenger, sink):
        """No options means no follow-up block."""
        messenger.for_session("tab-1").send_answer("Hello")
        assert sink.events[0].follow_up is None

    def test_stream_events_share_message_id(self, messenger, sink):
        """Initial and updated stream events carry the same message id."""
        bound = messenger.for_session("tab-1")
        bound.send_initial_stream("m1", "Uploading")
        bound.update_stream("m1", "Done", final=True)

        first, second = sink.of_type("answerStream")
        assert first.message_id == second.message_id == "m1"
        assert first.final is False
        assert second.final is True

    def test_events_serialize_camel_case(self, messenger, sink):
        """Wire JSON uses camelCase keys."""
        bound = messenger.for_session("tab-1")
        bound.send_auth_needed("Sign in", auth_type="full-auth")
        bound.update_placeholder("")

        auth_json = sink.events[0].model_dump(by_alias=True)
        assert auth_json["sessionId"] == "tab-1"
        assert auth_json["authType"] == "full-auth"
        assert sink.events[1].placeholder == ""


class TestQueueEventSink:
    """Per-session queues for SSE streams."""

    @pytest.mark.asyncio
    async def test_routes_by_session(self):
        """Events land only in their own session's queue."""
        queue_sink = QueueEventSink()
        queue_a = queue_sink.subscribe("a")
        queue_b = queue_sink.subscribe("b")

        queue_sink.deliver(AnswerEvent(session_id="a", message="for a"))

        assert queue_a.get_nowait().message == "for a"
        assert queue_b.empty()

    @pytest.mark.asyncio
    async def test_unsubscribed_events_dropped(self):
        """Events for sessions without a subscriber are discarded."""
        queue_sink = QueueEventSink()
        queue_sink.deliver(AnswerEvent(session_id="ghost", message="x"))
        assert queue_sink.has_subscribers("ghost") is False

    @pytest.mark.asyncio
    async def test_two_streams_for_one_session(self):
        """Each subscriber gets every event; one leaving keeps the other subscribed."""
        queue_sink = QueueEventSink()
        first = queue_sink.subscribe("a")
        second = queue_sink.subscribe("a")
        assert first is not second

        queue_sink.deliver(AnswerEvent(session_id="a", message="both"))
        assert first.get_nowait().message == "both"
        assert second.get_nowait().message == "both"

        queue_sink.unsubscribe("a", first)
        queue_sink.unsubscribe("a", first)
        assert queue_sink.has_subscribers("a") is True

        queue_sink.deliver(AnswerEvent(session_id="a", message="still here"))
        assert first.empty()
        assert second.get_nowait().message == "still here"

        queue_sink.unsubscribe("a", second)
        assert queue_sink.has_subscribers("a") is False
