"""Per-conversation supervisor.

A SessionSupervisor owns one ConversationSession and is the only writer of
its context. Every interaction runs as its own asyncio task that first
waits for the authentication gate and then for the session lock, so the
read-compute-write of the context is atomic and interactions run in the
order they were sent.

Example:
    supervisor = SessionSupervisor("tab-1", client=client, messenger=messenger,
                                   workspace=workspace, artifact_store=store)
    task = supervisor.send("refactor my monolith")
    context = await task
"""

import asyncio
import logging

from refactor_assistant.errors import RemoteCallError
from refactor_assistant.services.artifact_store import ArtifactStore
from refactor_assistant.services.messenger import Messenger, SessionMessenger
from refactor_assistant.services.polling import (
    DEFAULT_MAX_CONSECUTIVE_ERRORS,
    DEFAULT_POLL_INTERVAL,
)
from refactor_assistant.services.workflow_client import RemoteWorkflowClient
from refactor_assistant.services.workspace import WorkspaceSource
from refactor_assistant.session import states
from refactor_assistant.session.context import (
    ConversationSession,
    ConversationState,
    SessionContext,
)
from refactor_assistant.session.states import ActiveOperation, StateServices

logger = logging.getLogger(__name__)


class SessionSupervisor:
    """Serializes interactions against one conversation.

    Attributes:
        session: The supervised ConversationSession.
        messenger: Messenger bound to this session's id.
    """

    def __init__(
        self,
        session_id: str,
        *,
        client: RemoteWorkflowClient,
        messenger: Messenger,
        workspace: WorkspaceSource,
        artifact_store: ArtifactStore,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_consecutive_errors: int = DEFAULT_MAX_CONSECUTIVE_ERRORS,
    ) -> None:
        """Initialize a supervisor with a fresh session in StartOfConversation.

        Args:
            session_id: Conversation (tab) identifier.
            client: Remote job API client shared across sessions.
            messenger: Shared outbound event publisher.
            workspace: Workspace snapshot collaborator.
            artifact_store: Where downloaded plans are stored.
            poll_interval: Seconds between status polls.
            max_consecutive_errors: Poll failures tolerated in a row.
        """
        self.session = ConversationSession(context=SessionContext(session_id=session_id))
        self.messenger: SessionMessenger = messenger.for_session(session_id)
        self._client = client
        self._workspace = workspace
        self._artifact_store = artifact_store
        self._poll_interval = poll_interval
        self._max_consecutive_errors = max_consecutive_errors

        self._lock = asyncio.Lock()
        self._auth_gate = asyncio.Event()
        self._auth_gate.set()
        self._operation: ActiveOperation | None = None
        self._running_task: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()
        self._disposed = False

    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def state(self) -> ConversationState:
        return self.session.state

    @property
    def is_authenticating(self) -> bool:
        return self.session.is_authenticating

    @property
    def is_busy(self) -> bool:
        """True while an interaction holds the session."""
        return self._operation is not None

    def send(self, utterance: str) -> "asyncio.Task[SessionContext]":
        """Schedule an interaction and return without waiting for it.

        Args:
            utterance: The user's message.

        Returns:
            Task resolving to the session context after the interaction.
            Failures such as IllegalStateError surface through the task.
        """
        task = asyncio.create_task(
            self._run(utterance), name=f"interaction-{self.session_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    async def _run(self, utterance: str) -> SessionContext:
        await self._auth_gate.wait()
        async with self._lock:
            self._running_task = asyncio.current_task()
            operation = ActiveOperation(engagement_id=self.session.context.engagement_id)
            self._operation = operation
            services = StateServices(
                client=self._client,
                messenger=self.messenger,
                workspace=self._workspace,
                artifact_store=self._artifact_store,
                operation=operation,
                poll_interval=self._poll_interval,
                max_consecutive_errors=self._max_consecutive_errors,
            )
            try:
                next_context = await states.interact(
                    self.session.context, utterance, services
                )
            finally:
                self._operation = None
                self._running_task = None
            self.session.context = next_context
            self.session.interaction_count += 1
            return next_context

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Interaction failed for session %s (trace %d): %s",
                self.session_id,
                self.session.trace_id,
                exc,
                exc_info=exc,
            )

    async def cancel(self) -> bool:
        """Forward a user cancel to the running interaction.

        Returns:
            True if a cancel hook ran, False when idle or the state has none.
        """
        operation = self._operation
        if operation is None:
            return False
        return await states.cancel(self.session.context, operation, self.messenger)

    def auth_changed(self, is_authenticated: bool) -> None:
        """Open or close the authentication gate.

        While closed, interactions sent to this session wait before running.

        Args:
            is_authenticated: Whether the user is currently signed in.
        """
        self.session.is_authenticating = not is_authenticated
        if is_authenticated:
            self._auth_gate.set()
        else:
            self._auth_gate.clear()

    async def dispose(self) -> None:
        """Tear the session down.

        Cancels the running interaction through its token, drops queued
        interactions, waits for them to finish, parks the session in
        ConversationNotStarted and deletes the remote engagement. Idempotent.
        """
        if self._disposed:
            return
        self._disposed = True

        operation = self._operation
        if operation is not None:
            operation.token.cancel()
        for task in list(self._tasks):
            if task is not self._running_task:
                task.cancel()
        pending = [t for t in self._tasks if not t.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        async with self._lock:
            context = self.session.context
            self.session.context = context.evolve(
                state=ConversationState.CONVERSATION_NOT_STARTED
            )
        engagement_id = context.engagement_id or (
            operation.engagement_id if operation is not None else None
        )
        if engagement_id is not None:
            try:
                await self._client.delete_engagement(engagement_id)
            except RemoteCallError as e:
                logger.warning("Failed to delete engagement %s: %s", engagement_id, e)
        logger.info("Disposed session %s", self.session_id)
