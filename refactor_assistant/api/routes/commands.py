"""Inbound command endpoint.

The UI posts every chat command here. Commands are validated against the
inbound command union and handed to the ChatController; chat messages are
scheduled and the request returns before the remote round trip.
"""

import logging
from typing import Any

from fastapi import APIRouter, Body, Request
from pydantic import ValidationError

from refactor_assistant.api.schemas import CommandAccepted
from refactor_assistant.controller import ChatController
from refactor_assistant.errors import InvalidCommandError
from refactor_assistant.models import inbound_command_adapter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/commands", tags=["commands"])


def _controller(request: Request) -> ChatController:
    return request.app.state.controller


@router.post("", response_model=CommandAccepted, status_code=202)
async def submit_command(
    request: Request, payload: dict[str, Any] = Body(...)
) -> CommandAccepted:
    """Accept one inbound chat command.

    Args:
        request: Incoming request, used to reach the app's controller.
        payload: Command JSON with a ``type`` discriminator.

    Returns:
        CommandAccepted echoing the command type and session.

    Raises:
        InvalidCommandError: The payload is not a valid command (400).
    """
    try:
        command = inbound_command_adapter.validate_python(payload)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise InvalidCommandError(f"{location}: {first.get('msg')}") from e

    await _controller(request).handle(command)
    logger.debug("Accepted %s command", command.type)
    return CommandAccepted(
        type=command.type, session_id=getattr(command, "session_id", None)
    )
