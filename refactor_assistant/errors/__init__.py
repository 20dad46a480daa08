"""Error handling framework for the Refactor Assistant.

This package provides:
- Typed domain exceptions raised by the client, states and controller
- Error code registry with E-XXXX format codes and chat-safe messages

Error categories:
- E-1xxx: Workspace errors
- E-3xxx: Refactoring service errors
- E-4xxx: System/internal errors
- E-5xxx: Authentication errors
"""

from refactor_assistant.errors.domain import (
    ArtifactStoreError,
    IllegalStateError,
    InvalidCommandError,
    PollCancelledError,
    PollExhaustedError,
    RefactorAssistantError,
    RemoteCallError,
    SessionNotFoundError,
    WorkspaceEmptyError,
    WorkspaceSnapshotError,
)
from refactor_assistant.errors.registry import (
    ERROR_REGISTRY,
    GENERIC_APOLOGY,
    ErrorCategory,
    ErrorCode,
    get_error,
    get_errors_by_category,
    user_message,
)

__all__ = [
    # Domain exceptions
    "RefactorAssistantError",
    "RemoteCallError",
    "PollExhaustedError",
    "PollCancelledError",
    "IllegalStateError",
    "WorkspaceEmptyError",
    "WorkspaceSnapshotError",
    "ArtifactStoreError",
    "InvalidCommandError",
    "SessionNotFoundError",
    # Registry
    "ErrorCode",
    "ErrorCategory",
    "ERROR_REGISTRY",
    "GENERIC_APOLOGY",
    "get_error",
    "get_errors_by_category",
    "user_message",
]
