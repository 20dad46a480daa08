"""Tests for ChatController command routing."""

import asyncio
import functools

import pytest

from refactor_assistant.controller import ChatController, StaticAuthProvider
from refactor_assistant.errors import InvalidCommandError, user_message
from refactor_assistant.models import (
    AssessmentStatus,
    AuthChangedCommand,
    ChatMessageCommand,
    FollowUpClickedCommand,
    FollowUpOption,
    StopResponseCommand,
    TabClosedCommand,
    WorkflowStatus,
)
from refactor_assistant.session.context import ConversationState
from refactor_assistant.session.registry import SessionRegistry
from refactor_assistant.session.supervisor import SessionSupervisor

S = ConversationState


@pytest.fixture
def auth() -> StaticAuthProvider:
    return StaticAuthProvider(token="tok-1")


@pytest.fixture
def controller(mock_client, messenger, workspace, artifact_store, auth) -> ChatController:
    factory = functools.partial(
        SessionSupervisor,
        client=mock_client,
        messenger=messenger,
        workspace=workspace,
        artifact_store=artifact_store,
        poll_interval=0,
    )
    return ChatController(SessionRegistry(factory), auth, client=mock_client)


class TestChatMessages:
    """chatMessage and followUpClicked."""

    @pytest.mark.asyncio
    async def test_chat_message_creates_session(self, controller, sink):
        """The first message opens a session and runs the start state."""
        task = await controller.handle(ChatMessageCommand(session_id="tab-1", message="hi"))
        context = await task

        assert context.state is S.GENERATE_INITIAL_PLAN
        assert controller.registry.list_session_ids() == ["tab-1"]
        assert sink.events[0].session_id == "tab-1"

    @pytest.mark.asyncio
    async def test_follow_up_click_sends_prompt(self, controller):
        """A clicked pill sends its prompt, not its label."""
        option = FollowUpOption(pill_text="Go!", prompt="No, let's start")
        task = await controller.handle(
            FollowUpClickedCommand(session_id="tab-1", follow_up=option)
        )
        context = await task
        assert context.prompt == "No, let's start"

    @pytest.mark.asyncio
    async def test_blank_message_rejected(self, controller):
        """Whitespace-only messages are invalid commands."""
        with pytest.raises(InvalidCommandError):
            await controller.handle(ChatMessageCommand(session_id="tab-1", message="  "))

    @pytest.mark.asyncio
    async def test_unauthenticated_message_prompts_sign_in(self, controller, auth, sink, mock_client):
        """Signed-out users get an auth prompt and the message is dropped."""
        auth.set_authenticated(False)
        result = await controller.handle(ChatMessageCommand(session_id="tab-1", message="hi"))

        assert result is None
        event = sink.events[-1]
        assert event.type == "authNeeded"
        assert event.message == user_message("E-5001")
        supervisor = controller.registry.get("tab-1")
        assert supervisor.is_authenticating is True
        assert supervisor.state is S.START_OF_CONVERSATION


class TestStopAndClose:
    """stopResponse and tabClosed."""

    @pytest.mark.asyncio
    async def test_stop_unknown_session_is_noop(self, controller):
        """Stopping a session that is not open does nothing."""
        assert await controller.stop_response("nope") is False

    @pytest.mark.asyncio
    async def test_stop_running_plan(self, controller, mock_client):
        """stopResponse cancels an in-flight plan."""
        polled = asyncio.Event()

        async def in_progress(*args, **kwargs):
            polled.set()
            await asyncio.sleep(0.01)
            return AssessmentStatus(status=WorkflowStatus.IN_PROGRESS)

        mock_client.get_assessment_status.side_effect = in_progress
        first = await controller.handle(ChatMessageCommand(session_id="tab-1", message="hi"))
        await first
        task = await controller.handle(ChatMessageCommand(session_id="tab-1", message="go"))
        await polled.wait()

        await controller.handle(StopResponseCommand(session_id="tab-1"))
        context = await task

        assert context.state is S.START_OF_CONVERSATION
        mock_client.stop_assessment.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_tab_closed_disposes_session(self, controller):
        """Closing a tab removes and disposes its session."""
        task = await controller.handle(ChatMessageCommand(session_id="tab-1", message="hi"))
        await task
        supervisor = controller.registry.get("tab-1")

        await controller.handle(TabClosedCommand(session_id="tab-1"))

        assert controller.registry.get("tab-1") is None
        assert supervisor.state is S.CONVERSATION_NOT_STARTED
        assert await controller.tab_closed("tab-1") is False

    @pytest.mark.asyncio
    async def test_shutdown_closes_everything(self, controller):
        """shutdown disposes every open session."""
        for tab in ("a", "b"):
            await (await controller.handle(ChatMessageCommand(session_id=tab, message="hi")))
        await controller.shutdown()
        assert len(controller.registry) == 0


class TestAuthChanged:
    """authChanged fans out to every session."""

    @pytest.mark.asyncio
    async def test_sign_out_then_in(self, controller, auth, sink, mock_client):
        """Sessions are gated on sign-out and re-enabled on sign-in."""
        await (await controller.handle(ChatMessageCommand(session_id="tab-1", message="hi")))
        supervisor = controller.registry.get("tab-1")

        await controller.handle(AuthChangedCommand(authenticated=False))
        assert supervisor.is_authenticating is True
        assert sink.events[-1].type == "authNeeded"

        auth.set_authenticated(True, token="tok-2")
        await controller.handle(AuthChangedCommand(authenticated=True))

        assert supervisor.is_authenticating is False
        assert sink.events[-1].type == "inputEnabled"
        assert sink.events[-1].enabled is True
        assert mock_client._identity_token == "tok-2"

    @pytest.mark.asyncio
    async def test_new_tab_after_sign_out_is_blocked(self, controller, sink, mock_client):
        """A tab opened while signed out is prompted to sign in and runs nothing."""
        await (await controller.handle(ChatMessageCommand(session_id="tab-1", message="hi")))
        await controller.handle(AuthChangedCommand(authenticated=False))

        result = await controller.handle(ChatMessageCommand(session_id="tab-2", message="hello"))

        assert result is None
        assert controller.is_authenticated() is False
        tab_2 = controller.registry.get("tab-2")
        assert tab_2.is_authenticating is True
        assert tab_2.state is S.START_OF_CONVERSATION
        assert tab_2.session.interaction_count == 0
        assert sink.events[-1].type == "authNeeded"
        assert sink.events[-1].session_id == "tab-2"

        await controller.handle(AuthChangedCommand(authenticated=True))
        context = await (await controller.handle(
            ChatMessageCommand(session_id="tab-2", message="hello")
        ))
        assert context.state is S.GENERATE_INITIAL_PLAN
        assert tab_2.is_authenticating is False
