"""Repository abstraction for workflow state persistence."""

from __future__ import annotations

from typing import Any, Protocol

from .models import Decision, JobRecord, PromptTemplate, StepDataRecord, WorkflowSession


class FactoryRepository(Protocol):
    """Protocol for persistence backends.

    Backends only need keyed get/set/list/delete semantics; none of the
    callers depend on a query language.
    """

    async def save_session(self, session: WorkflowSession) -> None:
        """Insert or replace a session row."""

    async def get_session(self, session_id: str) -> WorkflowSession | None:
        """Retrieve a session by id."""

    async def list_sessions(self) -> list[WorkflowSession]:
        """Return all sessions, newest first."""

    async def delete_session(self, session_id: str) -> None:
        """Delete a session and every child row (step data, decisions, jobs)."""

    async def set_step_data(self, session_id: str, key: str, value: Any) -> None:
        """Upsert one step-data value (replace semantics)."""

    async def get_step_data(self, session_id: str, key: str) -> StepDataRecord | None:
        """Return the record for ``key`` or ``None`` when it was never written."""

    async def list_step_data(self, session_id: str) -> dict[str, Any]:
        """Return every step-data value of a session keyed by data key."""

    async def add_decision(self, decision: Decision) -> None:
        """Append a decision."""

    async def list_decisions(self, session_id: str) -> list[Decision]:
        """Return decisions in decision-time order."""

    async def save_template(self, template: PromptTemplate) -> None:
        """Insert or replace a template row."""

    async def get_template(self, template_id: str) -> PromptTemplate | None:
        """Retrieve a template by id."""

    async def get_active_template(self, category: str) -> PromptTemplate | None:
        """Return the newest active template of ``category``."""

    async def list_templates(self, category: str | None = None) -> list[PromptTemplate]:
        """Return templates ordered by category then newest version first."""

    async def delete_templates(self) -> None:
        """Remove every stored template."""

    async def save_job(self, job: JobRecord) -> None:
        """Insert or replace a job row."""

    async def get_job(self, job_id: str) -> JobRecord | None:
        """Retrieve a job by id."""
