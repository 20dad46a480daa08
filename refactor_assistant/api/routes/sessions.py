"""Session inspection, teardown and the SSE event stream."""

import asyncio
import json
from typing import AsyncGenerator

from fastapi import APIRouter, Request, Response
from sse_starlette.sse import EventSourceResponse

from refactor_assistant.api.schemas import SessionListResponse, SessionSummary
from refactor_assistant.errors import SessionNotFoundError
from refactor_assistant.services.messenger import QueueEventSink
from refactor_assistant.session.supervisor import SessionSupervisor

router = APIRouter(prefix="/sessions", tags=["sessions"])

PING_INTERVAL_SECONDS = 15.0


def _summary(supervisor: SessionSupervisor) -> SessionSummary:
    session = supervisor.session
    return SessionSummary(
        session_id=session.session_id,
        state=session.state.value,
        is_authenticating=session.is_authenticating,
        busy=supervisor.is_busy,
        interaction_count=session.interaction_count,
        trace_id=session.trace_id,
        started_at=session.started_at,
    )


@router.get("", response_model=SessionListResponse)
async def list_sessions(request: Request) -> SessionListResponse:
    """List open conversations."""
    registry = request.app.state.controller.registry
    summaries = [
        _summary(registry.get(session_id))
        for session_id in registry.list_session_ids()
        if registry.get(session_id) is not None
    ]
    return SessionListResponse(sessions=summaries, total=len(summaries))


@router.get("/{session_id}", response_model=SessionSummary)
async def get_session(request: Request, session_id: str) -> SessionSummary:
    """Get one open conversation.

    Raises:
        SessionNotFoundError: The session is not open (404).
    """
    supervisor = request.app.state.controller.registry.get(session_id)
    if supervisor is None:
        raise SessionNotFoundError(session_id)
    return _summary(supervisor)


@router.delete("/{session_id}", status_code=204)
async def close_session(request: Request, session_id: str) -> Response:
    """Close a conversation, same as a tabClosed command.

    Raises:
        SessionNotFoundError: The session is not open (404).
    """
    closed = await request.app.state.controller.tab_closed(session_id)
    if not closed:
        raise SessionNotFoundError(session_id)
    return Response(status_code=204)


async def _event_generator(
    request: Request,
    session_id: str,
    sink: QueueEventSink,
    queue: asyncio.Queue,
) -> AsyncGenerator[dict, None]:
    """Yield a session's outbound events as SSE messages.

    Events are sent unnamed with the camelCase event JSON (including its
    ``type``) as data. A ping is sent when nothing arrives for
    PING_INTERVAL_SECONDS so proxies keep the connection open.
    """
    try:
        while True:
            if await request.is_disconnected():
                break
            try:
                event = await asyncio.wait_for(queue.get(), timeout=PING_INTERVAL_SECONDS)
                yield {"data": event.model_dump_json(by_alias=True)}
            except asyncio.TimeoutError:
                yield {"data": json.dumps({"type": "ping", "sessionId": session_id})}
    finally:
        sink.unsubscribe(session_id, queue)


@router.get("/{session_id}/events")
async def stream_events(request: Request, session_id: str) -> EventSourceResponse:
    """Stream a session's outbound events over SSE.

    The session does not need to exist yet; the UI opens the stream before
    sending its first message.
    """
    sink: QueueEventSink = request.app.state.event_sink
    queue = sink.subscribe(session_id)
    return EventSourceResponse(_event_generator(request, session_id, sink, queue))
