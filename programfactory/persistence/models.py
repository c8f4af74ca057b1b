"""Data models for persisted workflow state."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..contracts import Route, SessionStatus, WorkflowStep, utcnow


class WorkflowSession(BaseModel):
    """One generation engagement."""

    id: str
    status: SessionStatus = SessionStatus.ACTIVE
    current_step: Optional[WorkflowStep] = WorkflowStep.BRIEF
    route: Optional[Route] = None
    client_name: str = ""
    industry: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class StepDataRecord(BaseModel):
    """A single working-memory entry of a session."""

    session_id: str
    key: str
    value: Any = None
    updated_at: datetime = Field(default_factory=utcnow)


class Decision(BaseModel):
    """Audit record of a human verdict at a step."""

    model_config = ConfigDict(frozen=True)

    id: str
    session_id: str
    step: str
    decision: str
    feedback: Optional[str] = None
    decided_at: datetime = Field(default_factory=utcnow)


class PromptTemplate(BaseModel):
    """Stored, versioned instruction template."""

    id: str
    name: str
    category: str
    template: str
    is_active: bool = True
    version: int = 1
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class JobRecord(BaseModel):
    """Execution record of one batch generation job."""

    job_id: str
    session_id: str
    status: str = "running"
    result: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    finished_at: Optional[datetime] = None
