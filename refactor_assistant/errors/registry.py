"""Error code registry with E-XXXX format codes.

This module defines the error code system for the Refactor Assistant,
organizing errors into categories:
- E-1xxx: Workspace errors
- E-3xxx: Refactoring service errors
- E-4xxx: System/internal errors
- E-5xxx: Authentication errors

Each error includes a code, title, the message shown in chat, and
remediation steps. Raw exception text never reaches the user; states look
up the chat message here instead.
"""

from dataclasses import dataclass
from enum import Enum

GENERIC_APOLOGY = "Sorry, something went wrong. Please try again."


class ErrorCategory(str, Enum):
    """Categories for error codes."""

    WORKSPACE = "workspace"  # E-1xxx
    REMOTE = "remote"  # E-3xxx
    SYSTEM = "system"  # E-4xxx
    AUTH = "auth"  # E-5xxx


@dataclass
class ErrorCode:
    """Definition of an error code with metadata.

    Attributes:
        code: Error code in E-XXXX format.
        category: Error category for grouping.
        title: Short title for display.
        message_template: Chat message with {placeholders} for context.
        remediation: Action user should take to resolve.
        is_retryable: Whether the operation can be retried without user action.
    """

    code: str
    category: ErrorCategory
    title: str
    message_template: str
    remediation: str
    is_retryable: bool = False


ERROR_REGISTRY: dict[str, ErrorCode] = {
    # Workspace errors (E-1xxx)
    "E-1001": ErrorCode(
        code="E-1001",
        category=ErrorCategory.WORKSPACE,
        title="Empty Workspace",
        message_template=(
            "I'm sorry, I can't create a plan for an empty workspace. Please open "
            "a workspace you would like to create a refactor assessment for."
        ),
        remediation="Open a folder containing the application you want assessed.",
    ),
    "E-1002": ErrorCode(
        code="E-1002",
        category=ErrorCategory.WORKSPACE,
        title="Workspace Snapshot Failed",
        message_template="Sorry, I couldn't package your workspace for analysis. Please try again.",
        remediation="Check that the workspace folder is readable and retry.",
        is_retryable=True,
    ),
    # Refactoring service errors (E-3xxx)
    "E-3001": ErrorCode(
        code="E-3001",
        category=ErrorCategory.REMOTE,
        title="Refactoring Service Unavailable",
        message_template="Sorry, I couldn't reach the refactoring service. Please try again.",
        remediation="Wait a few minutes and retry.",
        is_retryable=True,
    ),
    "E-3002": ErrorCode(
        code="E-3002",
        category=ErrorCategory.REMOTE,
        title="Status Polling Failed",
        message_template=(
            "Sorry, I lost track of the analysis while checking on its progress. "
            "Please try again."
        ),
        remediation="Retry the request. The service may be temporarily degraded.",
        is_retryable=True,
    ),
    "E-3003": ErrorCode(
        code="E-3003",
        category=ErrorCategory.REMOTE,
        title="Plan Download Failed",
        message_template="Sorry, the plan finished but I couldn't download it. Please try again.",
        remediation="Retry the request.",
        is_retryable=True,
    ),
    # System errors (E-4xxx)
    "E-4000": ErrorCode(
        code="E-4000",
        category=ErrorCategory.SYSTEM,
        title="Internal Error",
        message_template=GENERIC_APOLOGY,
        remediation="Retry the operation. Contact support if issue persists.",
        is_retryable=True,
    ),
    "E-4001": ErrorCode(
        code="E-4001",
        category=ErrorCategory.SYSTEM,
        title="Illegal State Transition",
        message_template="Conversation in state '{state}' cannot accept input.",
        remediation="Close the tab and start a new conversation.",
    ),
    "E-4002": ErrorCode(
        code="E-4002",
        category=ErrorCategory.SYSTEM,
        title="Artifact Storage Failed",
        message_template="Sorry, I couldn't save the generated plan. Please try again.",
        remediation="Check disk space and permissions for the artifact directory.",
        is_retryable=True,
    ),
    "E-4003": ErrorCode(
        code="E-4003",
        category=ErrorCategory.SYSTEM,
        title="Invalid Command",
        message_template="Command rejected: {details}",
        remediation="Fix the command payload and resend it.",
    ),
    "E-4004": ErrorCode(
        code="E-4004",
        category=ErrorCategory.SYSTEM,
        title="Operation Cancelled",
        message_template="Plan generation was cancelled.",
        remediation="Send a new request when you are ready.",
    ),
    "E-4005": ErrorCode(
        code="E-4005",
        category=ErrorCategory.SYSTEM,
        title="Session Not Found",
        message_template="Conversation '{session_id}' is not open.",
        remediation="Open a new conversation tab.",
    ),
    # Auth errors (E-5xxx)
    "E-5001": ErrorCode(
        code="E-5001",
        category=ErrorCategory.AUTH,
        title="Authentication Required",
        message_template="Your session has expired. Follow the instructions to re-authenticate.",
        remediation="Sign in again, then resend your message.",
    ),
}


def get_error(code: str) -> ErrorCode | None:
    """Get error definition by code.

    Args:
        code: Error code in E-XXXX format.

    Returns:
        ErrorCode if found, None otherwise.
    """
    return ERROR_REGISTRY.get(code)


def get_errors_by_category(category: ErrorCategory) -> list[ErrorCode]:
    """Get all errors in a category.

    Args:
        category: The error category to filter by.

    Returns:
        List of ErrorCode objects in the specified category.
    """
    return [e for e in ERROR_REGISTRY.values() if e.category == category]


def user_message(code: str | None, **context: object) -> str:
    """Resolve the chat message for an error code.

    Unknown or missing codes fall back to the generic apology. Missing
    template placeholders leave the template untouched.

    Args:
        code: Error code in E-XXXX format, or None.
        **context: Values substituted into the message template.

    Returns:
        Text safe to show in the conversation.
    """
    error_def = get_error(code) if code else None
    if error_def is None:
        return GENERIC_APOLOGY
    try:
        return error_def.message_template.format(**context)
    except KeyError:
        return error_def.message_template
