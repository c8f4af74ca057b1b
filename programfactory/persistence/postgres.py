"""PostgreSQL implementation of the factory repository."""

from __future__ import annotations

import json
from typing import Any

import asyncpg

from ..contracts import utcnow
from .models import Decision, JobRecord, PromptTemplate, StepDataRecord, WorkflowSession
from .repository import FactoryRepository


class PostgresFactoryRepository(FactoryRepository):
    """Persist factory state using PostgreSQL.

    JSON values are stored as text so no connection-level codec setup is
    required.
    """

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_sessions (
                id TEXT PRIMARY KEY,
                status TEXT NOT NULL,
                current_step TEXT,
                route TEXT,
                client_name TEXT,
                industry TEXT,
                created_at TIMESTAMPTZ NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS step_data (
                session_id TEXT NOT NULL REFERENCES workflow_sessions(id) ON DELETE CASCADE,
                data_key TEXT NOT NULL,
                value TEXT,
                updated_at TIMESTAMPTZ NOT NULL,
                PRIMARY KEY (session_id, data_key)
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_decisions (
                id TEXT PRIMARY KEY,
                session_id TEXT NOT NULL REFERENCES workflow_sessions(id) ON DELETE CASCADE,
                step TEXT NOT NULL,
                decision TEXT NOT NULL,
                feedback TEXT,
                decided_at TIMESTAMPTZ NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS prompt_templates (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                category TEXT NOT NULL,
                template TEXT NOT NULL,
                is_active BOOLEAN NOT NULL,
                version INTEGER NOT NULL,
                created_at TIMESTAMPTZ NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS batch_jobs (
                job_id TEXT PRIMARY KEY,
                session_id TEXT NOT NULL REFERENCES workflow_sessions(id) ON DELETE CASCADE,
                status TEXT NOT NULL,
                result TEXT,
                error TEXT,
                created_at TIMESTAMPTZ NOT NULL,
                finished_at TIMESTAMPTZ
            )
            """
        )

    # ------------------------------------------------------------------
    async def _execute(self, query: str, *params: Any) -> None:
        conn = await self._connect()
        try:
            await conn.execute(query, *params)
        finally:
            await conn.close()

    async def _fetchrow(self, query: str, *params: Any) -> asyncpg.Record | None:
        conn = await self._connect()
        try:
            return await conn.fetchrow(query, *params)
        finally:
            await conn.close()

    async def _fetch(self, query: str, *params: Any) -> list[asyncpg.Record]:
        conn = await self._connect()
        try:
            return await conn.fetch(query, *params)
        finally:
            await conn.close()

    # ------------------------------------------------------------------
    # Sessions
    async def save_session(self, session: WorkflowSession) -> None:
        await self._execute(
            """
            INSERT INTO workflow_sessions
                (id, status, current_step, route, client_name, industry, created_at, updated_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            ON CONFLICT (id) DO UPDATE SET
                status = EXCLUDED.status,
                current_step = EXCLUDED.current_step,
                route = EXCLUDED.route,
                client_name = EXCLUDED.client_name,
                industry = EXCLUDED.industry,
                updated_at = EXCLUDED.updated_at
            """,
            session.id,
            session.status.value,
            session.current_step.value if session.current_step else None,
            session.route.value if session.route else None,
            session.client_name,
            session.industry,
            session.created_at,
            session.updated_at,
        )

    async def get_session(self, session_id: str) -> WorkflowSession | None:
        row = await self._fetchrow("SELECT * FROM workflow_sessions WHERE id = $1", session_id)
        return WorkflowSession.model_validate(dict(row)) if row else None

    async def list_sessions(self) -> list[WorkflowSession]:
        rows = await self._fetch("SELECT * FROM workflow_sessions ORDER BY created_at DESC")
        return [WorkflowSession.model_validate(dict(r)) for r in rows]

    async def delete_session(self, session_id: str) -> None:
        await self._execute("DELETE FROM workflow_sessions WHERE id = $1", session_id)

    # ------------------------------------------------------------------
    # Step data
    async def set_step_data(self, session_id: str, key: str, value: Any) -> None:
        await self._execute(
            """
            INSERT INTO step_data (session_id, data_key, value, updated_at)
            VALUES ($1, $2, $3, $4)
            ON CONFLICT (session_id, data_key)
            DO UPDATE SET value = EXCLUDED.value, updated_at = EXCLUDED.updated_at
            """,
            session_id,
            key,
            json.dumps(value),
            utcnow(),
        )

    async def get_step_data(self, session_id: str, key: str) -> StepDataRecord | None:
        row = await self._fetchrow(
            "SELECT session_id, data_key, value, updated_at FROM step_data WHERE session_id = $1 AND data_key = $2",
            session_id,
            key,
        )
        if not row:
            return None
        return StepDataRecord(
            session_id=row["session_id"],
            key=row["data_key"],
            value=json.loads(row["value"]) if row["value"] is not None else None,
            updated_at=row["updated_at"],
        )

    async def list_step_data(self, session_id: str) -> dict[str, Any]:
        rows = await self._fetch(
            "SELECT data_key, value FROM step_data WHERE session_id = $1", session_id
        )
        return {
            r["data_key"]: json.loads(r["value"]) if r["value"] is not None else None
            for r in rows
        }

    # ------------------------------------------------------------------
    # Decisions
    async def add_decision(self, decision: Decision) -> None:
        await self._execute(
            """
            INSERT INTO workflow_decisions (id, session_id, step, decision, feedback, decided_at)
            VALUES ($1, $2, $3, $4, $5, $6)
            """,
            decision.id,
            decision.session_id,
            decision.step,
            decision.decision,
            decision.feedback,
            decision.decided_at,
        )

    async def list_decisions(self, session_id: str) -> list[Decision]:
        rows = await self._fetch(
            "SELECT * FROM workflow_decisions WHERE session_id = $1 ORDER BY decided_at",
            session_id,
        )
        return [Decision.model_validate(dict(r)) for r in rows]

    # ------------------------------------------------------------------
    # Templates
    async def save_template(self, template: PromptTemplate) -> None:
        await self._execute(
            """
            INSERT INTO prompt_templates
                (id, name, category, template, is_active, version, created_at, updated_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            ON CONFLICT (id) DO UPDATE SET
                name = EXCLUDED.name,
                category = EXCLUDED.category,
                template = EXCLUDED.template,
                is_active = EXCLUDED.is_active,
                version = EXCLUDED.version,
                updated_at = EXCLUDED.updated_at
            """,
            template.id,
            template.name,
            template.category,
            template.template,
            template.is_active,
            template.version,
            template.created_at,
            template.updated_at,
        )

    async def get_template(self, template_id: str) -> PromptTemplate | None:
        row = await self._fetchrow("SELECT * FROM prompt_templates WHERE id = $1", template_id)
        return PromptTemplate.model_validate(dict(row)) if row else None

    async def get_active_template(self, category: str) -> PromptTemplate | None:
        row = await self._fetchrow(
            """
            SELECT * FROM prompt_templates
            WHERE category = $1 AND is_active
            ORDER BY version DESC, updated_at DESC
            LIMIT 1
            """,
            category,
        )
        return PromptTemplate.model_validate(dict(row)) if row else None

    async def list_templates(self, category: str | None = None) -> list[PromptTemplate]:
        if category is None:
            rows = await self._fetch(
                "SELECT * FROM prompt_templates ORDER BY category, version DESC"
            )
        else:
            rows = await self._fetch(
                "SELECT * FROM prompt_templates WHERE category = $1 ORDER BY version DESC",
                category,
            )
        return [PromptTemplate.model_validate(dict(r)) for r in rows]

    async def delete_templates(self) -> None:
        await self._execute("DELETE FROM prompt_templates")

    # ------------------------------------------------------------------
    # Jobs
    async def save_job(self, job: JobRecord) -> None:
        await self._execute(
            """
            INSERT INTO batch_jobs (job_id, session_id, status, result, error, created_at, finished_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            ON CONFLICT (job_id) DO UPDATE SET
                status = EXCLUDED.status,
                result = EXCLUDED.result,
                error = EXCLUDED.error,
                finished_at = EXCLUDED.finished_at
            """,
            job.job_id,
            job.session_id,
            job.status,
            json.dumps(job.result) if job.result is not None else None,
            job.error,
            job.created_at,
            job.finished_at,
        )

    async def get_job(self, job_id: str) -> JobRecord | None:
        row = await self._fetchrow("SELECT * FROM batch_jobs WHERE job_id = $1", job_id)
        if not row:
            return None
        data = dict(row)
        data["result"] = json.loads(data["result"]) if data["result"] else None
        return JobRecord.model_validate(data)
