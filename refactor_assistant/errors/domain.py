"""Typed domain exceptions for the Refactor Assistant.

Each exception carries the E-XXXX code whose registry entry supplies the
user-facing text, so call sites can route on type and render by code.

Usage:
    # In the workflow client
    raise RemoteCallError("StartRefactoringAssessment", exc)

    # In a conversation state
    try:
        handle = await client.start_assessment(engagement_id, prompt)
    except RemoteCallError:
        return _errored(context, RemoteCallError.code)
"""

from typing import Any


class RefactorAssistantError(Exception):
    """Base exception for all domain errors."""

    code = "E-4000"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class RemoteCallError(RefactorAssistantError):
    """A request to the remote job API failed.

    Covers transport failures, non-2xx responses and malformed bodies.

    Attributes:
        endpoint: Remote operation name, e.g. ``GetRefactoringAssessmentStatus``.
        cause: Underlying exception or a short description of the failure.
    """

    code = "E-3001"

    def __init__(self, endpoint: str, cause: BaseException | str) -> None:
        super().__init__(f"Remote call '{endpoint}' failed: {cause}")
        self.endpoint = endpoint
        self.cause = cause


class PollExhaustedError(RefactorAssistantError):
    """Too many consecutive failures while polling a remote job."""

    code = "E-3002"

    def __init__(self, attempts: int) -> None:
        super().__init__(f"Polling gave up after {attempts} consecutive failures")
        self.attempts = attempts


class PollCancelledError(RefactorAssistantError):
    """Polling stopped because the session's cancellation token was set.

    Attributes:
        last_result: Last non-terminal result observed, or None if the
            loop was cancelled before the first fetch.
    """

    code = "E-4004"

    def __init__(self, last_result: Any = None) -> None:
        super().__init__("Polling was cancelled")
        self.last_result = last_result


class IllegalStateError(RefactorAssistantError):
    """Interaction attempted on a state that defines no transition."""

    code = "E-4001"

    def __init__(self, state: str) -> None:
        super().__init__(f"Illegal state transition from '{state}'")
        self.state = state


class WorkspaceEmptyError(RefactorAssistantError):
    """No workspace is open, or it contains no files."""

    code = "E-1001"

    def __init__(self, root: str | None) -> None:
        super().__init__(f"Workspace '{root}' is empty or missing")
        self.root = root


class WorkspaceSnapshotError(RefactorAssistantError):
    """The workspace could not be packaged for upload."""

    code = "E-1002"

    def __init__(self, root: str, reason: str) -> None:
        super().__init__(f"Failed to snapshot workspace '{root}': {reason}")
        self.root = root
        self.reason = reason


class ArtifactStoreError(RefactorAssistantError):
    """A downloaded artifact could not be persisted."""

    code = "E-4002"

    def __init__(self, filename: str, reason: str) -> None:
        super().__init__(f"Failed to store artifact '{filename}': {reason}")
        self.filename = filename
        self.reason = reason


class InvalidCommandError(RefactorAssistantError):
    """Inbound command is malformed. Maps to HTTP 400."""

    code = "E-4003"


class SessionNotFoundError(RefactorAssistantError):
    """No open session for the identifier. Maps to HTTP 404."""

    code = "E-4005"

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session '{session_id}' not found")
        self.session_id = session_id
