"""Conversation state machine.

Each ConversationState maps to one async handler in ``_HANDLERS``. A handler
receives the current SessionContext, the user's utterance and the
StateServices bundle, emits chat events as side effects and returns the next
SessionContext. Handlers never mutate the context they are given.

Remote failures are caught at the call site and routed to
ConversationErrored with the matching error code; FAILED and CANCELLED job
statuses return to a restartable state instead. Only IllegalStateError
escapes ``interact``.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from refactor_assistant.errors import (
    ArtifactStoreError,
    IllegalStateError,
    PollCancelledError,
    PollExhaustedError,
    RemoteCallError,
    WorkspaceEmptyError,
    WorkspaceSnapshotError,
    user_message,
)
from refactor_assistant.models import (
    AssessmentStatus,
    FollowUpOption,
    UserIntent,
    WorkflowStatus,
)
from refactor_assistant.services.artifact_store import ArtifactStore, plan_filename
from refactor_assistant.services.messenger import SessionMessenger
from refactor_assistant.services.polling import (
    DEFAULT_MAX_CONSECUTIVE_ERRORS,
    DEFAULT_POLL_INTERVAL,
    CancellationToken,
)
from refactor_assistant.services.workflow_client import RemoteWorkflowClient
from refactor_assistant.services.workspace import WorkspaceSource
from refactor_assistant.session.context import ConversationState, SessionContext

logger = logging.getLogger(__name__)

# ============================================================================
# Chat copy
# ============================================================================

CLARIFY_MESSAGE = (
    "No problem! Before I start, is there any other requirements you would "
    "want me to consider while generating your refactoring requirements?"
)
CLARIFY_OPTIONS = [
    FollowUpOption(
        pill_text="Describe the core functionalities of the monolithic application",
        prompt="Describe the core functionalities of the monolithic application",
    ),
    FollowUpOption(pill_text="No, let's start", prompt="No, let's start"),
]

PLAN_STARTED = "Ok, let me create a plan. This may take a few minutes"
PLAN_UPLOADING = "Uploading workspace..."
PLAN_PLACEHOLDER = "Generating implementation plan ..."
PLAN_FAILED = "Plan generation failed."
PLAN_CANCELLED = "Plan generation was cancelled."
PLAN_CANCELLING = "Cancelling plan generation"

REVISION_STARTED = "Ok, let me revise the plan. This may take a few minutes"
REVISION_STARTING = "Starting plan revision..."
REVISION_PROMPT = (
    "No problem! Before I start, are there any aspects of the plan you would "
    "like me to focus on for the next revision?"
)
REVISION_OPTIONS = [
    FollowUpOption(pill_text="Optimize for costs", prompt="Optimize for costs"),
    FollowUpOption(
        pill_text="Break apart responsibilities into more distinct domains",
        prompt="Break apart responsibilities into more distinct domains",
    ),
]

FOLLOW_UP_HINT = (
    "You can ask me any follow up questions you may have or adjust any part "
    "by generating a revised analysis."
)
FOLLOW_UP_OPTIONS = [
    FollowUpOption(pill_text="Explain Output Validation Metrics", prompt="explain analysis"),
    FollowUpOption(pill_text="Explain recommended microservices", prompt="explain analysis"),
    FollowUpOption(pill_text="Generate a revised analysis", prompt="revise analysis"),
]
PLAN_SUMMARY = (
    "Your Refactor Assistant analysis is ready! A local markdown version is "
    "available [here]({locator}).\n\n" + FOLLOW_UP_HINT
)
ANOTHER_FOLLOW_UP = "Would you like to ask another follow up?\n\n" + FOLLOW_UP_HINT
NOT_UNDERSTOOD = "I'm sorry, I don't understand your response.\n\n" + FOLLOW_UP_HINT

RESPONSE_STARTING = "Generating response..."
RESPONSE_PLACEHOLDER = "Generating response ..."
RESPONSE_FAILED = "Sorry, I couldn't generate a response to that question."
RESPONSE_CANCELLED = "Response generation was cancelled."
RESPONSE_CANCELLING = "Cancelling response"


# ============================================================================
# Services bundle
# ============================================================================


@dataclass
class ActiveOperation:
    """Handle on the interaction currently running for a session.

    Created by the supervisor for every interaction. States record the
    remote ids they allocate here as soon as they have them, so cancel and
    teardown can reach jobs the stored context does not know about yet.
    """

    token: CancellationToken = field(default_factory=CancellationToken)
    progress_message_id: str | None = None
    engagement_id: str | None = None
    assessment_id: str | None = None


@dataclass
class StateServices:
    """Collaborators handed to every state handler."""

    client: RemoteWorkflowClient
    messenger: SessionMessenger
    workspace: WorkspaceSource
    artifact_store: ArtifactStore
    operation: ActiveOperation = field(default_factory=ActiveOperation)
    poll_interval: float = DEFAULT_POLL_INTERVAL
    max_consecutive_errors: int = DEFAULT_MAX_CONSECUTIVE_ERRORS


Handler = Callable[[SessionContext, str, StateServices], Awaitable[SessionContext]]
CancelHook = Callable[[SessionContext, ActiveOperation, SessionMessenger], None]


# ============================================================================
# Shared steps
# ============================================================================


def _begin_progress(services: StateServices, message: str) -> str:
    """Open the streaming progress bubble for this interaction."""
    message_id = str(uuid.uuid4())
    services.operation.progress_message_id = message_id
    services.messenger.send_initial_stream(message_id, message)
    return message_id


def _errored(
    context: SessionContext, services: StateServices, error_code: str | None
) -> SessionContext:
    services.messenger.update_placeholder("")
    return context.evolve(
        state=ConversationState.CONVERSATION_ERRORED, error_code=error_code
    )


def _plan_cancelled(context: SessionContext, services: StateServices) -> SessionContext:
    services.messenger.send_answer(PLAN_CANCELLED)
    services.messenger.update_placeholder("")
    return context.evolve(state=ConversationState.START_OF_CONVERSATION)


async def _stop_assessment_quietly(
    client: RemoteWorkflowClient, engagement_id: str, assessment_id: str
) -> None:
    """Ask the remote to stop an assessment. Failures are logged, never raised."""
    try:
        await client.stop_assessment(engagement_id, assessment_id)
        logger.info("Stopped assessment %s", assessment_id)
    except RemoteCallError as e:
        logger.warning("Failed to stop assessment %s: %s", assessment_id, e)


async def _await_plan(
    context: SessionContext, services: StateServices, progress_id: str
) -> SessionContext:
    """Poll the in-flight assessment and publish its plan.

    Shared by GenerateInitialPlan and RevisePlan from the poll step onward.
    """
    client = services.client
    messenger = services.messenger
    engagement_id = context.engagement_id
    assessment_id = context.assessment_id
    messenger.update_placeholder(PLAN_PLACEHOLDER)

    def on_progress(status: AssessmentStatus) -> None:
        messenger.update_stream(progress_id, status.status_detail or status.status.value)

    try:
        result = await client.poll_assessment(
            engagement_id,
            assessment_id,
            services.operation.token,
            interval=services.poll_interval,
            max_consecutive_errors=services.max_consecutive_errors,
            on_progress=on_progress,
        )
    except PollCancelledError:
        logger.info("Plan generation cancelled by user for session %s", context.session_id)
        await _stop_assessment_quietly(client, engagement_id, assessment_id)
        return _plan_cancelled(context, services)
    except (RemoteCallError, PollExhaustedError) as e:
        logger.warning("Polling assessment %s failed: %s", assessment_id, e)
        return _errored(context, services, e.code)

    messenger.update_stream(
        progress_id, result.status_detail or result.status.value, final=True
    )

    if result.status is WorkflowStatus.FAILED:
        messenger.send_answer(PLAN_FAILED)
        messenger.update_placeholder("")
        return context.evolve(state=ConversationState.START_OF_CONVERSATION)
    if result.status is WorkflowStatus.CANCELLED:
        return _plan_cancelled(context, services)

    try:
        plan = await client.download_artifact(engagement_id, assessment_id)
    except RemoteCallError as e:
        logger.warning("Downloading plan for assessment %s failed: %s", assessment_id, e)
        return _errored(context, services, "E-3003")

    try:
        locator = await asyncio.to_thread(
            services.artifact_store.store_artifact, plan, plan_filename(assessment_id)
        )
    except ArtifactStoreError as e:
        logger.error("Storing plan for assessment %s failed: %s", assessment_id, e)
        return _errored(context, services, e.code)

    messenger.send_answer(plan, can_be_voted=True)
    messenger.send_answer(
        PLAN_SUMMARY.format(locator=locator), follow_up_options=FOLLOW_UP_OPTIONS
    )
    messenger.update_placeholder("")
    return context.evolve(state=ConversationState.PLAN_GENERATION_FOLLOWUP)


# ============================================================================
# State handlers
# ============================================================================


async def _start_of_conversation(
    context: SessionContext, user_input: str, services: StateServices
) -> SessionContext:
    services.messenger.send_answer(CLARIFY_MESSAGE, follow_up_options=CLARIFY_OPTIONS)
    return context.evolve(
        state=ConversationState.GENERATE_INITIAL_PLAN, prompt=user_input
    )


async def _generate_initial_plan(
    context: SessionContext, user_input: str, services: StateServices
) -> SessionContext:
    """Snapshot the workspace, start an assessment and wait for the plan."""
    client = services.client
    messenger = services.messenger
    operation = services.operation

    if await asyncio.to_thread(services.workspace.is_empty):
        messenger.send_answer(user_message(WorkspaceEmptyError.code))
        return _errored(context, services, None)

    messenger.send_answer(PLAN_STARTED)
    progress_id = _begin_progress(services, PLAN_UPLOADING)

    try:
        engagement_id = context.engagement_id
        if engagement_id is None:
            engagement_id = await client.create_engagement()
            context = context.evolve(engagement_id=engagement_id)
        operation.engagement_id = engagement_id

        archive = await asyncio.to_thread(services.workspace.build_snapshot)
        await client.upload_workspace_snapshot(engagement_id, archive)
    except WorkspaceEmptyError:
        messenger.send_answer(user_message(WorkspaceEmptyError.code))
        return _errored(context, services, None)
    except (RemoteCallError, WorkspaceSnapshotError) as e:
        logger.warning("Preparing assessment for session %s failed: %s", context.session_id, e)
        return _errored(context, services, e.code)

    if operation.token.cancelled:
        return _plan_cancelled(context, services)

    try:
        handle = await client.start_assessment(
            engagement_id, f"{context.prompt} {user_input}"
        )
    except RemoteCallError as e:
        logger.warning("Starting assessment for session %s failed: %s", context.session_id, e)
        return _errored(context, services, e.code)

    operation.assessment_id = handle.assessment_id
    context = context.evolve(assessment_id=handle.assessment_id)
    return await _await_plan(context, services, progress_id)


async def _revise_plan(
    context: SessionContext, user_input: str, services: StateServices
) -> SessionContext:
    """Send revision instructions to the current assessment and wait for the new plan."""
    messenger = services.messenger
    messenger.send_answer(REVISION_STARTED)
    progress_id = _begin_progress(services, REVISION_STARTING)

    if context.engagement_id is None or context.assessment_id is None:
        logger.error("Session %s has no assessment to revise", context.session_id)
        return _errored(context, services, None)
    services.operation.engagement_id = context.engagement_id
    services.operation.assessment_id = context.assessment_id

    try:
        await services.client.update_assessment(
            context.engagement_id, context.assessment_id, user_input
        )
    except RemoteCallError as e:
        logger.warning("Revising assessment %s failed: %s", context.assessment_id, e)
        return _errored(context, services, e.code)

    return await _await_plan(context, services, progress_id)


async def _explain(
    context: SessionContext, user_input: str, services: StateServices
) -> SessionContext:
    client = services.client
    messenger = services.messenger
    progress_id = _begin_progress(services, RESPONSE_STARTING)
    messenger.update_placeholder(RESPONSE_PLACEHOLDER)

    try:
        handle = await client.start_interaction(context.engagement_id, user_input)
        context = context.evolve(interaction_id=handle.interaction_id)
        result = await client.poll_interaction(
            context.engagement_id,
            handle.interaction_id,
            services.operation.token,
            interval=services.poll_interval,
            max_consecutive_errors=services.max_consecutive_errors,
        )
    except PollCancelledError:
        messenger.update_stream(progress_id, RESPONSE_CANCELLED, final=True)
        messenger.update_placeholder("")
        return context
    except (RemoteCallError, PollExhaustedError) as e:
        logger.warning("Follow-up interaction for session %s failed: %s", context.session_id, e)
        return _errored(context, services, e.code)

    messenger.update_placeholder("")
    if result.status is WorkflowStatus.COMPLETED:
        messenger.send_answer(result.response_text, can_be_voted=True)
        messenger.send_answer(ANOTHER_FOLLOW_UP, follow_up_options=FOLLOW_UP_OPTIONS)
    else:
        messenger.send_answer(RESPONSE_FAILED, follow_up_options=FOLLOW_UP_OPTIONS)
    return context


async def _plan_generation_followup(
    context: SessionContext, user_input: str, services: StateServices
) -> SessionContext:
    """Route a follow-up message by the intent the remote derives for it."""
    messenger = services.messenger
    if context.engagement_id is None:
        logger.error("Session %s has no engagement for follow-ups", context.session_id)
        return _errored(context, services, None)

    try:
        intent = await services.client.derive_user_intent(context.engagement_id, user_input)
    except RemoteCallError as e:
        logger.warning("Deriving intent for session %s failed: %s", context.session_id, e)
        return _errored(context, services, e.code)

    logger.info("Session %s follow-up intent: %s", context.session_id, intent.value)
    if intent is UserIntent.QUESTION_AND_ANSWER:
        return await _explain(context, user_input, services)
    if intent is UserIntent.ASSESSMENT:
        messenger.send_answer(REVISION_PROMPT, follow_up_options=REVISION_OPTIONS)
        return context.evolve(state=ConversationState.REVISE_PLAN)
    if intent is UserIntent.NEW_ASSESSMENT:
        messenger.send_answer(CLARIFY_MESSAGE, follow_up_options=CLARIFY_OPTIONS)
        return context.evolve(
            state=ConversationState.GENERATE_INITIAL_PLAN,
            interaction_id=None,
        )

    messenger.send_answer(NOT_UNDERSTOOD, follow_up_options=FOLLOW_UP_OPTIONS)
    return context


async def _conversation_errored(
    context: SessionContext, user_input: str, services: StateServices
) -> SessionContext:
    services.messenger.send_answer(user_message(context.error_code))
    # Fresh remote ids on restart
    return SessionContext(session_id=context.session_id)


async def _conversation_not_started(
    context: SessionContext, user_input: str, services: StateServices
) -> SessionContext:
    raise IllegalStateError(context.state.value)


_HANDLERS: dict[ConversationState, Handler] = {
    ConversationState.START_OF_CONVERSATION: _start_of_conversation,
    ConversationState.GENERATE_INITIAL_PLAN: _generate_initial_plan,
    ConversationState.REVISE_PLAN: _revise_plan,
    ConversationState.PLAN_GENERATION_FOLLOWUP: _plan_generation_followup,
    ConversationState.CONVERSATION_ERRORED: _conversation_errored,
    ConversationState.CONVERSATION_NOT_STARTED: _conversation_not_started,
}


# ============================================================================
# Cancel hooks
# ============================================================================


def _cancel_plan(
    context: SessionContext, operation: ActiveOperation, messenger: SessionMessenger
) -> None:
    operation.token.cancel()
    if operation.progress_message_id:
        messenger.update_stream(operation.progress_message_id, PLAN_CANCELLING)


def _cancel_response(
    context: SessionContext, operation: ActiveOperation, messenger: SessionMessenger
) -> None:
    operation.token.cancel()
    if operation.progress_message_id:
        messenger.update_stream(operation.progress_message_id, RESPONSE_CANCELLING)


_CANCEL_HOOKS: dict[ConversationState, CancelHook] = {
    ConversationState.GENERATE_INITIAL_PLAN: _cancel_plan,
    ConversationState.REVISE_PLAN: _cancel_plan,
    ConversationState.PLAN_GENERATION_FOLLOWUP: _cancel_response,
}


# ============================================================================
# Public entry points
# ============================================================================


async def interact(
    context: SessionContext, user_input: str, services: StateServices
) -> SessionContext:
    """Run one conversation turn.

    Args:
        context: Current session context.
        user_input: The user's message.
        services: Collaborators for this turn.

    Returns:
        The context for the next turn.

    Raises:
        IllegalStateError: The current state accepts no input.
    """
    handler = _HANDLERS[context.state]
    next_context = await handler(context, user_input, services)
    logger.info(
        "Session %s transition: %s -> %s",
        context.session_id,
        context.state.value,
        next_context.state.value,
    )
    return next_context


async def cancel(
    context: SessionContext, operation: ActiveOperation, messenger: SessionMessenger
) -> bool:
    """Forward a user cancel to the current state's hook.

    Returns:
        True if the state has a hook, False when cancel is a no-op.
    """
    hook = _CANCEL_HOOKS.get(context.state)
    if hook is None:
        return False
    hook(context, operation, messenger)
    return True
