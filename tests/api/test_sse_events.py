"""Tests for the SSE event generator."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from refactor_assistant.api.routes import sessions
from refactor_assistant.models import AnswerEvent
from refactor_assistant.services.messenger import QueueEventSink


def _request(disconnects: list[bool]) -> MagicMock:
    request = MagicMock()
    request.is_disconnected = AsyncMock(side_effect=disconnects)
    return request


class TestEventGenerator:
    """Tests for _event_generator."""

    @pytest.mark.asyncio
    async def test_yields_event_json_then_unsubscribes(self):
        """Queued events are sent as camelCase JSON; disconnect cleans up."""
        sink = QueueEventSink()
        queue = sink.subscribe("tab-1")
        sink.deliver(AnswerEvent(session_id="tab-1", message="hello", can_be_voted=True))

        messages = [
            m
            async for m in sessions._event_generator(
                _request([False, True]), "tab-1", sink, queue
            )
        ]

        assert len(messages) == 1
        payload = json.loads(messages[0]["data"])
        assert payload["type"] == "answer"
        assert payload["sessionId"] == "tab-1"
        assert payload["canBeVoted"] is True
        assert sink.has_subscribers("tab-1") is False

    @pytest.mark.asyncio
    async def test_ping_when_idle(self, monkeypatch):
        """An idle stream sends a ping."""
        monkeypatch.setattr(sessions, "PING_INTERVAL_SECONDS", 0.01)
        sink = QueueEventSink()
        queue = sink.subscribe("tab-1")

        messages = [
            m
            async for m in sessions._event_generator(
                _request([False, True]), "tab-1", sink, queue
            )
        ]

        assert json.loads(messages[0]["data"]) == {"type": "ping", "sessionId": "tab-1"}

    @pytest.mark.asyncio
    async def test_closing_one_stream_keeps_the_other(self):
        """A disconnecting stream only removes its own queue."""
        sink = QueueEventSink()
        leaving = sink.subscribe("tab-1")
        staying = sink.subscribe("tab-1")

        async for _ in sessions._event_generator(_request([True]), "tab-1", sink, leaving):
            pass

        sink.deliver(AnswerEvent(session_id="tab-1", message="after"))
        assert sink.has_subscribers("tab-1") is True
        assert staying.get_nowait().message == "after"
