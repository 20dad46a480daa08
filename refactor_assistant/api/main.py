"""FastAPI application for the Refactor Assistant.

``create_app`` wires the conversation core (registry, supervisors,
messenger) to the HTTP surface. The remote workflow client is opened in the
lifespan and every open session is disposed on shutdown.

Run with:
    uvicorn refactor_assistant.api.main:create_app --factory
"""

import logging
import sys
import time as _time
from contextlib import asynccontextmanager
from functools import partial
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

# Configure logging to stdout for uvicorn to capture
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logging.getLogger("refactor_assistant").setLevel(logging.INFO)

from refactor_assistant.api.middleware.auth import api_key_middleware
from refactor_assistant.api.routes import commands, sessions
from refactor_assistant.config import AssistantConfig, load_config
from refactor_assistant.controller import AuthProvider, ChatController, StaticAuthProvider
from refactor_assistant.errors import (
    InvalidCommandError,
    RefactorAssistantError,
    SessionNotFoundError,
    get_error,
    user_message,
)
from refactor_assistant.services.artifact_store import (
    ArtifactStore,
    InMemoryArtifactStore,
    LocalArtifactStore,
)
from refactor_assistant.services.messenger import Messenger, QueueEventSink
from refactor_assistant.services.workflow_client import RemoteWorkflowClient
from refactor_assistant.services.workspace import Workspace, WorkspaceSource
from refactor_assistant.session.registry import SessionRegistry
from refactor_assistant.session.supervisor import SessionSupervisor

logger = logging.getLogger(__name__)


def _build_artifact_store(config: AssistantConfig) -> ArtifactStore:
    if config.artifacts.directory:
        return LocalArtifactStore(config.artifacts.directory)
    return InMemoryArtifactStore()


def _build_workspace(config: AssistantConfig) -> Workspace:
    return Workspace(
        config.workspace.root,
        exclude_patterns=config.workspace.exclude_patterns,
        max_file_size_bytes=config.workspace.max_file_size_bytes,
    )


def _error_status(exc: RefactorAssistantError) -> int:
    if isinstance(exc, InvalidCommandError):
        return 400
    if isinstance(exc, SessionNotFoundError):
        return 404
    return 500


def create_app(
    config: AssistantConfig | None = None,
    *,
    auth_provider: AuthProvider | None = None,
    workspace: WorkspaceSource | None = None,
    artifact_store: ArtifactStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Resolved configuration. Loaded from the standard locations
            when None.
        auth_provider: Authentication source. Defaults to a static provider
            using ``remote.identity_token``.
        workspace: Workspace collaborator. Defaults to ``workspace.root``.
        artifact_store: Plan storage. Defaults per ``artifacts.directory``.
        transport: Optional httpx transport for the remote client (tests).

    Returns:
        Configured FastAPI app. Core objects are exposed on ``app.state``.
    """
    if config is None:
        config = load_config()

    auth_provider = auth_provider or StaticAuthProvider(config.remote.identity_token)
    client = RemoteWorkflowClient(
        base_url=config.remote.base_url,
        timeout=config.remote.timeout_seconds,
        identity_token=auth_provider.identity_token(),
        transport=transport,
    )
    messenger = Messenger()
    event_sink = QueueEventSink()
    messenger.add_sink(event_sink)

    factory = partial(
        SessionSupervisor,
        client=client,
        messenger=messenger,
        workspace=workspace if workspace is not None else _build_workspace(config),
        artifact_store=(
            artifact_store if artifact_store is not None else _build_artifact_store(config)
        ),
        poll_interval=config.polling.interval_seconds,
        max_consecutive_errors=config.polling.max_consecutive_errors,
    )
    registry = SessionRegistry(factory)
    controller = ChatController(registry, auth_provider, client=client)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Open the remote client; dispose sessions and close it on shutdown."""
        app.state.started_at = _time.time()
        async with client:
            logger.info("Refactor Assistant API ready (remote %s)", config.remote.base_url)
            yield
            await controller.shutdown()

    app = FastAPI(
        title="Refactor Assistant API",
        description="Conversational front-end to remote refactoring assessments",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.messenger = messenger
    app.state.event_sink = event_sink
    app.state.controller = controller
    app.state.started_at = _time.time()

    app.middleware("http")(api_key_middleware(config.server.api_key))

    @app.exception_handler(RefactorAssistantError)
    async def refactor_assistant_error_handler(
        request: Request, exc: RefactorAssistantError
    ) -> JSONResponse:
        """Render domain errors with their registry entry.

        Args:
            request: The incoming request.
            exc: The domain exception.

        Returns:
            JSONResponse with error code, chat-safe message and remediation.
        """
        error_def = get_error(exc.code)
        return JSONResponse(
            status_code=_error_status(exc),
            content={
                "error_code": exc.code,
                "message": user_message(
                    exc.code,
                    details=str(exc),
                    session_id=getattr(exc, "session_id", ""),
                ),
                "remediation": error_def.remediation if error_def else None,
            },
        )

    app.include_router(commands.router, prefix="/api/v1")
    app.include_router(sessions.router, prefix="/api/v1")

    @app.get("/health")
    def health_check() -> dict:
        """Health check with version, uptime and open session count."""
        try:
            version = _pkg_version("refactor-assistant")
        except PackageNotFoundError:
            version = "unknown"
        return {
            "status": "healthy",
            "version": version,
            "uptime_seconds": int(_time.time() - app.state.started_at),
            "open_sessions": len(registry),
        }

    return app
