"""Pydantic models for the remote refactoring job API.

The remote speaks camelCase JSON and reports job status under
``workflowStatus``. Models accept either the wire alias or the Python field
name so tests and fixtures can build them directly.
"""

from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class WorkflowStatus(str, Enum):
    """Lifecycle status shared by assessments and interactions."""

    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        """True once the remote job will no longer change."""
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {WorkflowStatus.COMPLETED, WorkflowStatus.FAILED, WorkflowStatus.CANCELLED}
)


class UserIntent(str, Enum):
    """Classification of a follow-up message by the remote service."""

    QUESTION_AND_ANSWER = "QUESTION_AND_ANSWER"
    ASSESSMENT = "ASSESSMENT"
    NEW_ASSESSMENT = "NEW_ASSESSMENT"
    DEFAULT = "DEFAULT"


class _WireModel(BaseModel):
    """Base for remote payloads: camelCase aliases, unknown fields ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


_STATUS_ALIASES = AliasChoices("workflowStatus", "status")


class EngagementCreated(_WireModel):
    """Response of CreateEngagement."""

    engagement_id: str = Field(min_length=1)


class UploadTarget(_WireModel):
    """Response of CreateUploadUrl."""

    upload_url: str = Field(
        min_length=1,
        validation_alias=AliasChoices("presignedUrl", "PresignedUrl", "uploadUrl"),
    )


class DownloadTarget(_WireModel):
    """Response of CreateDownloadUrl."""

    download_url: str = Field(
        min_length=1,
        validation_alias=AliasChoices("s3url", "downloadUrl"),
    )


class AssessmentHandle(_WireModel):
    """Response of StartRefactoringAssessment."""

    assessment_id: str = Field(min_length=1)
    status: WorkflowStatus = Field(validation_alias=_STATUS_ALIASES)


class AssessmentStatus(_WireModel):
    """Response of GetRefactoringAssessmentStatus.

    ``status_detail`` is the free-text progress message streamed to the
    chat while the assessment runs.
    """

    status: WorkflowStatus = Field(validation_alias=_STATUS_ALIASES)
    status_detail: str = Field(
        default="",
        validation_alias=AliasChoices("assessmentStatus", "statusDetail"),
    )


class InteractionHandle(_WireModel):
    """Response of StartRefactoringInteraction."""

    interaction_id: str = Field(min_length=1)
    status: WorkflowStatus = Field(validation_alias=_STATUS_ALIASES)


class InteractionStatus(_WireModel):
    """Response of GetRefactoringInteraction."""

    status: WorkflowStatus = Field(validation_alias=_STATUS_ALIASES)
    response_text: str = Field(
        default="",
        validation_alias=AliasChoices("response", "responseText"),
    )


class WorkflowStatusResponse(_WireModel):
    """Response of UpdateRefactoringAssessment / StopRefactoringAssessment."""

    status: WorkflowStatus = Field(validation_alias=_STATUS_ALIASES)


# Phrases DeriveUserIntent returns
_INTENT_PHRASES = {
    "explain analysis": UserIntent.QUESTION_AND_ANSWER,
    "revise analysis": UserIntent.ASSESSMENT,
    "new analysis": UserIntent.NEW_ASSESSMENT,
}


class IntentResponse(_WireModel):
    """Response of DeriveUserIntent."""

    intent: UserIntent

    @field_validator("intent", mode="before")
    @classmethod
    def unknown_intent_is_default(cls, value: object) -> object:
        """Map remote intent phrases to UserIntent; unknown ones become DEFAULT."""
        if not isinstance(value, str):
            return value
        if value in _INTENT_PHRASES:
            return _INTENT_PHRASES[value]
        if value not in UserIntent.__members__:
            return UserIntent.DEFAULT
        return value
