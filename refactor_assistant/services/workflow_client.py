"""HTTP client for the remote refactoring job API.

Thin wrapper around httpx. Every operation POSTs a JSON body that carries
``clientMetadata`` to ``{base_url}/{Operation}`` and validates the response
with a pydantic model. Transport failures, non-2xx responses, undecodable
bodies and schema mismatches all raise RemoteCallError, so callers route on
a single exception type.
"""

import hashlib
import logging
from typing import Any, Callable, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from refactor_assistant.errors import RemoteCallError
from refactor_assistant.models import (
    AssessmentHandle,
    AssessmentStatus,
    DownloadTarget,
    EngagementCreated,
    IntentResponse,
    InteractionHandle,
    InteractionStatus,
    UploadTarget,
    UserIntent,
    WorkflowStatus,
    WorkflowStatusResponse,
)
from refactor_assistant.services.polling import (
    DEFAULT_MAX_CONSECUTIVE_ERRORS,
    DEFAULT_POLL_INTERVAL,
    CancellationToken,
    poll_until_terminal,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

OUTPUT_TYPE = "markdown"


class RemoteWorkflowClient:
    """Async client for engagements, assessments and interactions."""

    def __init__(
        self,
        base_url: str = "http://localhost:3030",
        timeout: float = 30.0,
        identity_token: str | None = None,
        client_metadata: dict[str, Any] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            base_url: Root URL of the remote job API.
            timeout: Per-request timeout in seconds.
            identity_token: Opaque bearer token; omitted from requests when None.
            client_metadata: Sent as ``clientMetadata`` on every call.
            transport: Optional httpx transport, injected by tests.
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._identity_token = identity_token
        self._client_metadata = dict(client_metadata or {})
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "RemoteWorkflowClient":
        """Open httpx async client."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Close httpx async client."""
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def set_identity_token(self, token: str | None) -> None:
        """Replace the bearer token used for subsequent calls."""
        self._identity_token = token

    @property
    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("RemoteWorkflowClient used outside 'async with'")
        return self._client

    def _headers(self) -> dict[str, str]:
        if self._identity_token:
            return {"Authorization": f"Bearer {self._identity_token}"}
        return {}

    def _raise_for_status(self, operation: str, resp: httpx.Response) -> None:
        """Raise RemoteCallError on non-2xx responses.

        Args:
            operation: Remote operation name used in the error.
            resp: httpx.Response to check.

        Raises:
            RemoteCallError: On non-2xx status codes.
        """
        if not resp.is_success:
            raise RemoteCallError(
                operation, f"HTTP {resp.status_code}: {resp.text[:200]}"
            )

    async def _post(
        self, operation: str, payload: dict[str, Any], model: type[M]
    ) -> M:
        """POST an operation and validate the JSON response.

        Args:
            operation: Remote operation name, appended to the base URL.
            payload: Operation parameters. ``clientMetadata`` is added.
            model: Pydantic model describing the response body.

        Returns:
            The validated response model.

        Raises:
            RemoteCallError: On any transport, status or decoding failure.
        """
        body = {**payload, "clientMetadata": self._client_metadata}
        try:
            resp = await self._http.post(
                f"/{operation}", json=body, headers=self._headers()
            )
        except httpx.HTTPError as e:
            raise RemoteCallError(operation, e) from e
        self._raise_for_status(operation, resp)
        try:
            return model.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise RemoteCallError(operation, e) from e

    async def _post_no_content(self, operation: str, payload: dict[str, Any]) -> None:
        body = {**payload, "clientMetadata": self._client_metadata}
        try:
            resp = await self._http.post(
                f"/{operation}", json=body, headers=self._headers()
            )
        except httpx.HTTPError as e:
            raise RemoteCallError(operation, e) from e
        self._raise_for_status(operation, resp)

    # ------------------------------------------------------------------
    # Engagements and transfers
    # ------------------------------------------------------------------

    async def create_engagement(self) -> str:
        """Create an engagement via CreateEngagement.

        Returns:
            The engagement id assigned by the remote.
        """
        result = await self._post("CreateEngagement", {}, EngagementCreated)
        logger.info("Created engagement %s", result.engagement_id)
        return result.engagement_id

    async def delete_engagement(self, engagement_id: str) -> None:
        await self._post_no_content(
            "DeleteEngagement", {"engagementId": engagement_id}
        )
        logger.info("Deleted engagement %s", engagement_id)

    async def upload_workspace_snapshot(
        self, engagement_id: str, archive: bytes
    ) -> None:
        """Upload a zipped workspace to a presigned URL.

        Args:
            engagement_id: Engagement that owns the upload.
            archive: Zip archive bytes.

        Raises:
            RemoteCallError: If requesting the URL or the PUT fails.
        """
        checksum = hashlib.sha256(archive).hexdigest()
        target = await self._post(
            "CreateUploadUrl",
            {"engagementId": engagement_id, "contentChecksum": checksum},
            UploadTarget,
        )
        try:
            resp = await self._http.put(
                target.upload_url,
                content=archive,
                headers={"Content-Type": "application/zip"},
            )
        except httpx.HTTPError as e:
            raise RemoteCallError("UploadWorkspace", e) from e
        self._raise_for_status("UploadWorkspace", resp)
        logger.info(
            "Uploaded workspace snapshot for engagement %s (%d bytes)",
            engagement_id,
            len(archive),
        )

    async def download_artifact(self, engagement_id: str, assessment_id: str) -> str:
        """Fetch the markdown plan produced by a completed assessment.

        Args:
            engagement_id: Engagement that owns the assessment.
            assessment_id: Completed assessment.

        Returns:
            The artifact text.

        Raises:
            RemoteCallError: If requesting the URL or the GET fails.
        """
        target = await self._post(
            "CreateDownloadUrl",
            {
                "engagementId": engagement_id,
                "assessmentId": assessment_id,
                "contentType": OUTPUT_TYPE,
            },
            DownloadTarget,
        )
        try:
            resp = await self._http.get(target.download_url)
        except httpx.HTTPError as e:
            raise RemoteCallError("DownloadArtifact", e) from e
        self._raise_for_status("DownloadArtifact", resp)
        return resp.text

    # ------------------------------------------------------------------
    # Assessments
    # ------------------------------------------------------------------

    async def start_assessment(
        self, engagement_id: str, user_input: str
    ) -> AssessmentHandle:
        handle = await self._post(
            "StartRefactoringAssessment",
            {
                "engagementId": engagement_id,
                "chatMessage": user_input,
                "outputType": OUTPUT_TYPE,
            },
            AssessmentHandle,
        )
        logger.info(
            "Started assessment %s for engagement %s",
            handle.assessment_id,
            engagement_id,
        )
        return handle

    async def update_assessment(
        self, engagement_id: str, assessment_id: str, user_input: str
    ) -> WorkflowStatus:
        result = await self._post(
            "UpdateRefactoringAssessment",
            {
                "engagementId": engagement_id,
                "assessmentId": assessment_id,
                "chatMessage": user_input,
            },
            WorkflowStatusResponse,
        )
        return result.status

    async def stop_assessment(
        self, engagement_id: str, assessment_id: str
    ) -> WorkflowStatus:
        result = await self._post(
            "StopRefactoringAssessment",
            {"engagementId": engagement_id, "assessmentId": assessment_id},
            WorkflowStatusResponse,
        )
        return result.status

    async def get_assessment_status(
        self, engagement_id: str, assessment_id: str
    ) -> AssessmentStatus:
        return await self._post(
            "GetRefactoringAssessmentStatus",
            {"engagementId": engagement_id, "assessmentId": assessment_id},
            AssessmentStatus,
        )

    # ------------------------------------------------------------------
    # Interactions
    # ------------------------------------------------------------------

    async def derive_user_intent(
        self, engagement_id: str, user_input: str
    ) -> UserIntent:
        result = await self._post(
            "DeriveUserIntent",
            {"engagementId": engagement_id, "chatMessage": user_input},
            IntentResponse,
        )
        return result.intent

    async def start_interaction(
        self, engagement_id: str, user_input: str
    ) -> InteractionHandle:
        return await self._post(
            "StartRefactoringInteraction",
            {"engagementId": engagement_id, "chatMessage": user_input},
            InteractionHandle,
        )

    async def get_interaction_status(
        self, engagement_id: str, interaction_id: str
    ) -> InteractionStatus:
        return await self._post(
            "GetRefactoringInteraction",
            {"engagementId": engagement_id, "interactionId": interaction_id},
            InteractionStatus,
        )

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def poll_assessment(
        self,
        engagement_id: str,
        assessment_id: str,
        cancel_token: CancellationToken,
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        max_consecutive_errors: int = DEFAULT_MAX_CONSECUTIVE_ERRORS,
        on_progress: Callable[[AssessmentStatus], Any] | None = None,
    ) -> AssessmentStatus:
        """Poll an assessment until it reaches a terminal status.

        Raises:
            PollCancelledError: The token was set between polls.
            PollExhaustedError: Too many consecutive status failures.
        """
        return await poll_until_terminal(
            lambda: self.get_assessment_status(engagement_id, assessment_id),
            lambda status: status.status.is_terminal,
            cancel_token,
            interval=interval,
            max_consecutive_errors=max_consecutive_errors,
            on_progress=on_progress,
        )

    async def poll_interaction(
        self,
        engagement_id: str,
        interaction_id: str,
        cancel_token: CancellationToken,
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        max_consecutive_errors: int = DEFAULT_MAX_CONSECUTIVE_ERRORS,
    ) -> InteractionStatus:
        """Poll an interaction until it reaches a terminal status."""
        return await poll_until_terminal(
            lambda: self.get_interaction_status(engagement_id, interaction_id),
            lambda status: status.status.is_terminal,
            cancel_token,
            interval=interval,
            max_consecutive_errors=max_consecutive_errors,
        )
