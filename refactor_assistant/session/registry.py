"""Registry of open conversations keyed by session id.

Single-process, single event loop. Not designed for multi-process
deployment.

Example:
    registry = SessionRegistry(factory)
    supervisor = registry.get_or_create("tab-1")
    supervisor.send("refactor my monolith")
"""

import logging
from typing import Callable

from refactor_assistant.session.supervisor import SessionSupervisor

logger = logging.getLogger(__name__)

SupervisorFactory = Callable[[str], SessionSupervisor]


class SessionRegistry:
    """Maps session ids to their SessionSupervisor."""

    def __init__(self, factory: SupervisorFactory) -> None:
        """Initialize with no open sessions.

        Args:
            factory: Builds a supervisor for a new session id.
        """
        self._factory = factory
        self._supervisors: dict[str, SessionSupervisor] = {}

    def get(self, session_id: str) -> SessionSupervisor | None:
        """Get a supervisor without auto-creating. Returns None if not found."""
        return self._supervisors.get(session_id)

    def get_or_create(self, session_id: str) -> SessionSupervisor:
        """Get an existing supervisor or create one in StartOfConversation.

        Args:
            session_id: Conversation (tab) identifier.

        Returns:
            The SessionSupervisor for this conversation.
        """
        if session_id not in self._supervisors:
            self._supervisors[session_id] = self._factory(session_id)
            logger.info("Created session: %s", session_id)
        return self._supervisors[session_id]

    def delete(self, session_id: str) -> SessionSupervisor | None:
        """Stop tracking a session. Idempotent.

        Does NOT dispose the supervisor; callers await ``dispose()`` on the
        returned instance to stop in-flight work.

        Returns:
            The removed supervisor, or None if the session was not open.
        """
        supervisor = self._supervisors.pop(session_id, None)
        if supervisor is not None:
            logger.info("Removed session: %s", session_id)
        return supervisor

    def list_session_ids(self) -> list[str]:
        return list(self._supervisors.keys())

    def authenticating_sessions(self) -> list[str]:
        """Ids of sessions waiting for the user to authenticate."""
        return [
            session_id
            for session_id, supervisor in self._supervisors.items()
            if supervisor.is_authenticating
        ]

    def __len__(self) -> int:
        return len(self._supervisors)
