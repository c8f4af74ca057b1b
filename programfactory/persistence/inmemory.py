"""In-memory implementation of the factory repository."""

from __future__ import annotations

import copy
from typing import Any, Dict, List

from ..contracts import utcnow
from .models import Decision, JobRecord, PromptTemplate, StepDataRecord, WorkflowSession
from .repository import FactoryRepository


class InMemoryFactoryRepository(FactoryRepository):
    """Store factory state in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts. Reads hand out copies so callers
    cannot mutate stored state behind the repository's back.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, WorkflowSession] = {}
        self._step_data: Dict[str, Dict[str, StepDataRecord]] = {}
        self._decisions: Dict[str, List[Decision]] = {}
        self._templates: Dict[str, PromptTemplate] = {}
        self._jobs: Dict[str, JobRecord] = {}

    # ------------------------------------------------------------------
    async def save_session(self, session: WorkflowSession) -> None:
        self._sessions[session.id] = session.model_copy(deep=True)

    async def get_session(self, session_id: str) -> WorkflowSession | None:
        session = self._sessions.get(session_id)
        return session.model_copy(deep=True) if session else None

    async def list_sessions(self) -> list[WorkflowSession]:
        sessions = sorted(self._sessions.values(), key=lambda s: s.created_at, reverse=True)
        return [s.model_copy(deep=True) for s in sessions]

    async def delete_session(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        self._step_data.pop(session_id, None)
        self._decisions.pop(session_id, None)
        for job_id in [j.job_id for j in self._jobs.values() if j.session_id == session_id]:
            del self._jobs[job_id]

    # ------------------------------------------------------------------
    async def set_step_data(self, session_id: str, key: str, value: Any) -> None:
        self._step_data.setdefault(session_id, {})[key] = StepDataRecord(
            session_id=session_id,
            key=key,
            value=copy.deepcopy(value),
            updated_at=utcnow(),
        )

    async def get_step_data(self, session_id: str, key: str) -> StepDataRecord | None:
        record = self._step_data.get(session_id, {}).get(key)
        return record.model_copy(deep=True) if record else None

    async def list_step_data(self, session_id: str) -> dict[str, Any]:
        return {
            key: copy.deepcopy(record.value)
            for key, record in self._step_data.get(session_id, {}).items()
        }

    # ------------------------------------------------------------------
    async def add_decision(self, decision: Decision) -> None:
        self._decisions.setdefault(decision.session_id, []).append(decision)

    async def list_decisions(self, session_id: str) -> list[Decision]:
        return sorted(self._decisions.get(session_id, []), key=lambda d: d.decided_at)

    # ------------------------------------------------------------------
    async def save_template(self, template: PromptTemplate) -> None:
        self._templates[template.id] = template.model_copy(deep=True)

    async def get_template(self, template_id: str) -> PromptTemplate | None:
        template = self._templates.get(template_id)
        return template.model_copy(deep=True) if template else None

    async def get_active_template(self, category: str) -> PromptTemplate | None:
        active = [
            t for t in self._templates.values() if t.category == category and t.is_active
        ]
        if not active:
            return None
        return max(active, key=lambda t: (t.version, t.updated_at)).model_copy(deep=True)

    async def list_templates(self, category: str | None = None) -> list[PromptTemplate]:
        templates = [
            t for t in self._templates.values() if category is None or t.category == category
        ]
        templates.sort(key=lambda t: (t.category, -t.version))
        return [t.model_copy(deep=True) for t in templates]

    async def delete_templates(self) -> None:
        self._templates.clear()

    # ------------------------------------------------------------------
    async def save_job(self, job: JobRecord) -> None:
        self._jobs[job.job_id] = job.model_copy(deep=True)

    async def get_job(self, job_id: str) -> JobRecord | None:
        job = self._jobs.get(job_id)
        return job.model_copy(deep=True) if job else None
