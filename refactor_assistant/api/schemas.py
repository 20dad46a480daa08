"""Pydantic response schemas for the HTTP API."""

from datetime import datetime

from pydantic import BaseModel, Field


class CommandAccepted(BaseModel):
    """Response for POST /commands."""

    type: str = Field(..., description="Command type that was accepted")
    session_id: str | None = Field(
        None, description="Session the command targeted, if any"
    )


class SessionSummary(BaseModel):
    """Snapshot of one open conversation."""

    session_id: str
    state: str
    is_authenticating: bool
    busy: bool
    interaction_count: int
    trace_id: int
    started_at: datetime


class SessionListResponse(BaseModel):
    """Response for GET /sessions."""

    sessions: list[SessionSummary]
    total: int


class ErrorResponse(BaseModel):
    """Body returned for domain errors."""

    error_code: str
    message: str
    remediation: str | None = None
