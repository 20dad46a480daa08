"""Routes inbound chat commands to session supervisors.

The controller is the only entry point the UI layer talks to. It owns the
authentication check for chat messages and fans auth changes out to every
open session.
"""

import asyncio
import logging
from typing import Protocol

from refactor_assistant.errors import InvalidCommandError, user_message
from refactor_assistant.models import (
    AuthChangedCommand,
    ChatMessageCommand,
    FollowUpClickedCommand,
    InboundCommand,
    StopResponseCommand,
    TabClosedCommand,
)
from refactor_assistant.services.workflow_client import RemoteWorkflowClient
from refactor_assistant.session.context import SessionContext
from refactor_assistant.session.registry import SessionRegistry

logger = logging.getLogger(__name__)

AUTH_REQUIRED_CODE = "E-5001"


class AuthProvider(Protocol):
    """Source of the user's authentication state."""

    def is_authenticated(self) -> bool:
        ...

    def identity_token(self) -> str | None:
        ...


class StaticAuthProvider:
    """AuthProvider holding a fixed token; authenticated unless told otherwise."""

    def __init__(self, token: str | None = None, authenticated: bool = True) -> None:
        self._token = token
        self._authenticated = authenticated

    def is_authenticated(self) -> bool:
        return self._authenticated

    def identity_token(self) -> str | None:
        return self._token

    def set_authenticated(self, authenticated: bool, token: str | None = None) -> None:
        self._authenticated = authenticated
        if token is not None:
            self._token = token


class ChatController:
    """Dispatches inbound commands to the session registry and supervisors."""

    def __init__(
        self,
        registry: SessionRegistry,
        auth_provider: AuthProvider,
        client: RemoteWorkflowClient | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            registry: Open sessions.
            auth_provider: Consulted before every chat message.
            client: When given, receives the fresh identity token after
                authentication is restored.
        """
        self._registry = registry
        self._auth = auth_provider
        self._client = client
        self._signed_out = False

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    def is_authenticated(self) -> bool:
        """False after an authChanged(false) until auth is restored."""
        return not self._signed_out and self._auth.is_authenticated()

    async def handle(
        self, command: InboundCommand
    ) -> "asyncio.Task[SessionContext] | None":
        """Route one inbound command.

        Returns:
            The scheduled interaction task for chat messages and follow-up
            clicks, otherwise None.

        Raises:
            InvalidCommandError: The command is malformed.
        """
        if isinstance(command, ChatMessageCommand):
            return await self.process_chat_message(command.session_id, command.message)
        if isinstance(command, FollowUpClickedCommand):
            return await self.process_chat_message(
                command.session_id, command.follow_up.prompt
            )
        if isinstance(command, StopResponseCommand):
            await self.stop_response(command.session_id)
            return None
        if isinstance(command, TabClosedCommand):
            await self.tab_closed(command.session_id)
            return None
        if isinstance(command, AuthChangedCommand):
            await self.auth_changed(command.authenticated)
            return None
        raise InvalidCommandError(f"Unsupported command: {type(command).__name__}")

    async def process_chat_message(
        self, session_id: str, message: str
    ) -> "asyncio.Task[SessionContext] | None":
        """Send a user message to its session.

        Unauthenticated users get an auth prompt instead and the message is
        dropped.

        Raises:
            InvalidCommandError: The message is blank.
        """
        if not message or not message.strip():
            raise InvalidCommandError("Chat message must not be empty")

        supervisor = self._registry.get_or_create(session_id)
        if not self.is_authenticated():
            supervisor.messenger.send_auth_needed(user_message(AUTH_REQUIRED_CODE))
            supervisor.session.is_authenticating = True
            logger.info("Session %s needs authentication, message dropped", session_id)
            return None

        return supervisor.send(message)

    async def stop_response(self, session_id: str) -> bool:
        """Cancel the session's in-flight work. No-op for unknown sessions."""
        supervisor = self._registry.get(session_id)
        if supervisor is None:
            return False
        return await supervisor.cancel()

    async def tab_closed(self, session_id: str) -> bool:
        """Dispose and forget a session.

        Returns:
            True if the session was open.
        """
        supervisor = self._registry.delete(session_id)
        if supervisor is None:
            return False
        await supervisor.dispose()
        return True

    async def auth_changed(self, authenticated: bool) -> None:
        """Propagate an authentication change to every open session."""
        self._signed_out = not authenticated
        if authenticated and self._client is not None:
            self._client.set_identity_token(self._auth.identity_token())

        for session_id in self._registry.list_session_ids():
            supervisor = self._registry.get(session_id)
            if supervisor is None:
                continue
            supervisor.auth_changed(authenticated)
            if authenticated:
                supervisor.messenger.send_input_enabled(True)
            else:
                supervisor.messenger.send_auth_needed(user_message(AUTH_REQUIRED_CODE))

    async def shutdown(self) -> None:
        """Dispose every open session."""
        for session_id in self._registry.list_session_ids():
            await self.tab_closed(session_id)
