"""Root-level pytest fixtures for all tests.

Provides shared fixtures for the conversation core:
- A recording event sink and messenger
- A workflow client whose remote calls are AsyncMocks (polling stays real)
- Fake workspace and in-memory artifact store
- A StateServices builder with a zero poll interval
"""

from typing import Callable
from unittest.mock import AsyncMock

import pytest

from refactor_assistant.models import (
    AssessmentHandle,
    AssessmentStatus,
    InteractionHandle,
    InteractionStatus,
    OutboundEvent,
    UserIntent,
    WorkflowStatus,
)
from refactor_assistant.services.artifact_store import InMemoryArtifactStore
from refactor_assistant.services.messenger import Messenger
from refactor_assistant.services.workflow_client import RemoteWorkflowClient
from refactor_assistant.session.states import ActiveOperation, StateServices

REMOTE_METHODS = (
    "create_engagement",
    "delete_engagement",
    "upload_workspace_snapshot",
    "start_assessment",
    "update_assessment",
    "stop_assessment",
    "get_assessment_status",
    "download_artifact",
    "start_interaction",
    "get_interaction_status",
    "derive_user_intent",
)


# ============================================================================
# Fakes
# ============================================================================


class RecordingSink:
    """Event sink that keeps every delivered event."""

    def __init__(self) -> None:
        self.events: list[OutboundEvent] = []

    def deliver(self, event: OutboundEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> list[OutboundEvent]:
        return [e for e in self.events if e.type == event_type]

    def answers(self) -> list[str]:
        return [e.message for e in self.of_type("answer")]


class FakeWorkspace:
    """Workspace stand-in with a fixed snapshot."""

    def __init__(self, empty: bool = False, snapshot: bytes = b"PK-snapshot") -> None:
        self.empty = empty
        self.snapshot = snapshot
        self.snapshots_built = 0

    def is_empty(self) -> bool:
        return self.empty

    def build_snapshot(self) -> bytes:
        self.snapshots_built += 1
        return self.snapshot


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def messenger(sink: RecordingSink) -> Messenger:
    m = Messenger()
    m.add_sink(sink)
    return m


@pytest.fixture
def mock_client() -> RemoteWorkflowClient:
    """Workflow client with every remote call replaced by an AsyncMock.

    ``poll_assessment`` and ``poll_interaction`` are left intact so polling
    runs for real against the mocked status calls. Defaults describe a
    happy path that completes on the first poll.
    """
    client = RemoteWorkflowClient(base_url="http://remote.test")
    for name in REMOTE_METHODS:
        setattr(client, name, AsyncMock(name=name))

    client.create_engagement.return_value = "E1"
    client.start_assessment.return_value = AssessmentHandle(
        assessment_id="A1", status=WorkflowStatus.IN_PROGRESS
    )
    client.update_assessment.return_value = WorkflowStatus.IN_PROGRESS
    client.stop_assessment.return_value = WorkflowStatus.CANCELLED
    client.get_assessment_status.return_value = AssessmentStatus(
        status=WorkflowStatus.COMPLETED, status_detail="Done"
    )
    client.download_artifact.return_value = "# Plan"
    client.start_interaction.return_value = InteractionHandle(
        interaction_id="I1", status=WorkflowStatus.IN_PROGRESS
    )
    client.get_interaction_status.return_value = InteractionStatus(
        status=WorkflowStatus.COMPLETED, response_text="Here is why."
    )
    client.derive_user_intent.return_value = UserIntent.QUESTION_AND_ANSWER
    return client


@pytest.fixture
def workspace() -> FakeWorkspace:
    return FakeWorkspace()


@pytest.fixture
def artifact_store() -> InMemoryArtifactStore:
    return InMemoryArtifactStore()


@pytest.fixture
def make_services(
    mock_client: RemoteWorkflowClient,
    messenger: Messenger,
    workspace: FakeWorkspace,
    artifact_store: InMemoryArtifactStore,
) -> Callable[..., StateServices]:
    """Build StateServices for a session with a fresh ActiveOperation."""

    def _make(session_id: str = "tab-1", **overrides) -> StateServices:
        params = dict(
            client=mock_client,
            messenger=messenger.for_session(session_id),
            workspace=workspace,
            artifact_store=artifact_store,
            operation=ActiveOperation(),
            poll_interval=0,
            max_consecutive_errors=3,
        )
        params.update(overrides)
        return StateServices(**params)

    return _make
