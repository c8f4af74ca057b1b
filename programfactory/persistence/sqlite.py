"""SQLite implementation of the factory repository."""

from __future__ import annotations

import asyncio
import json
import sqlite3
import threading
from pathlib import Path
from typing import Any

from ..contracts import utcnow
from .models import Decision, JobRecord, PromptTemplate, StepDataRecord, WorkflowSession
from .repository import FactoryRepository


class SQLiteFactoryRepository(FactoryRepository):
    """Persist factory state using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._lock = threading.Lock()
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_sessions (
                id TEXT PRIMARY KEY,
                status TEXT NOT NULL,
                current_step TEXT,
                route TEXT,
                client_name TEXT,
                industry TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS step_data (
                session_id TEXT NOT NULL REFERENCES workflow_sessions(id) ON DELETE CASCADE,
                data_key TEXT NOT NULL,
                value TEXT,
                updated_at TEXT NOT NULL,
                PRIMARY KEY (session_id, data_key)
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_decisions (
                id TEXT PRIMARY KEY,
                session_id TEXT NOT NULL REFERENCES workflow_sessions(id) ON DELETE CASCADE,
                step TEXT NOT NULL,
                decision TEXT NOT NULL,
                feedback TEXT,
                decided_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS prompt_templates (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                category TEXT NOT NULL,
                template TEXT NOT NULL,
                is_active INTEGER NOT NULL,
                version INTEGER NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS batch_jobs (
                job_id TEXT PRIMARY KEY,
                session_id TEXT NOT NULL REFERENCES workflow_sessions(id) ON DELETE CASCADE,
                status TEXT NOT NULL,
                result TEXT,
                error TEXT,
                created_at TEXT NOT NULL,
                finished_at TEXT
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            self._conn.commit()

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchall()

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------
    # Sessions
    async def save_session(self, session: WorkflowSession) -> None:
        data = session.model_dump(mode="json")
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO workflow_sessions
                (id, status, current_step, route, client_name, industry, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (id) DO UPDATE SET
                status = excluded.status,
                current_step = excluded.current_step,
                route = excluded.route,
                client_name = excluded.client_name,
                industry = excluded.industry,
                updated_at = excluded.updated_at
            """,
            data["id"],
            data["status"],
            data["current_step"],
            data["route"],
            data["client_name"],
            data["industry"],
            data["created_at"],
            data["updated_at"],
        )

    async def get_session(self, session_id: str) -> WorkflowSession | None:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT * FROM workflow_sessions WHERE id = ?", session_id
        )
        return WorkflowSession.model_validate(dict(row)) if row else None

    async def list_sessions(self) -> list[WorkflowSession]:
        rows = await asyncio.to_thread(
            self._fetchall, "SELECT * FROM workflow_sessions ORDER BY created_at DESC"
        )
        return [WorkflowSession.model_validate(dict(r)) for r in rows]

    async def delete_session(self, session_id: str) -> None:
        # The foreign-key cascade covers step data, decisions and jobs.
        await asyncio.to_thread(
            self._execute, "DELETE FROM workflow_sessions WHERE id = ?", session_id
        )

    # ------------------------------------------------------------------
    # Step data
    async def set_step_data(self, session_id: str, key: str, value: Any) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO step_data (session_id, data_key, value, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT (session_id, data_key)
            DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """,
            session_id,
            key,
            json.dumps(value),
            utcnow().isoformat(),
        )

    async def get_step_data(self, session_id: str, key: str) -> StepDataRecord | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT session_id, data_key, value, updated_at FROM step_data WHERE session_id = ? AND data_key = ?",
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
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT data_key, value FROM step_data WHERE session_id = ?",
            session_id,
        )
        return {
            r["data_key"]: json.loads(r["value"]) if r["value"] is not None else None
            for r in rows
        }

    # ------------------------------------------------------------------
    # Decisions
    async def add_decision(self, decision: Decision) -> None:
        data = decision.model_dump(mode="json")
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO workflow_decisions (id, session_id, step, decision, feedback, decided_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            data["id"],
            data["session_id"],
            data["step"],
            data["decision"],
            data["feedback"],
            data["decided_at"],
        )

    async def list_decisions(self, session_id: str) -> list[Decision]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT * FROM workflow_decisions WHERE session_id = ? ORDER BY decided_at, rowid",
            session_id,
        )
        return [Decision.model_validate(dict(r)) for r in rows]

    # ------------------------------------------------------------------
    # Templates
    async def save_template(self, template: PromptTemplate) -> None:
        data = template.model_dump(mode="json")
        await asyncio.to_thread(
            self._execute,
            """
            INSERT OR REPLACE INTO prompt_templates
                (id, name, category, template, is_active, version, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            data["id"],
            data["name"],
            data["category"],
            data["template"],
            int(data["is_active"]),
            data["version"],
            data["created_at"],
            data["updated_at"],
        )

    @staticmethod
    def _template_from_row(row: sqlite3.Row) -> PromptTemplate:
        data = dict(row)
        data["is_active"] = bool(data["is_active"])
        return PromptTemplate.model_validate(data)

    async def get_template(self, template_id: str) -> PromptTemplate | None:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT * FROM prompt_templates WHERE id = ?", template_id
        )
        return self._template_from_row(row) if row else None

    async def get_active_template(self, category: str) -> PromptTemplate | None:
        row = await asyncio.to_thread(
            self._fetchone,
            """
            SELECT * FROM prompt_templates
            WHERE category = ? AND is_active = 1
            ORDER BY version DESC, updated_at DESC
            LIMIT 1
            """,
            category,
        )
        return self._template_from_row(row) if row else None

    async def list_templates(self, category: str | None = None) -> list[PromptTemplate]:
        if category is None:
            rows = await asyncio.to_thread(
                self._fetchall,
                "SELECT * FROM prompt_templates ORDER BY category, version DESC",
            )
        else:
            rows = await asyncio.to_thread(
                self._fetchall,
                "SELECT * FROM prompt_templates WHERE category = ? ORDER BY version DESC",
                category,
            )
        return [self._template_from_row(r) for r in rows]

    async def delete_templates(self) -> None:
        await asyncio.to_thread(self._execute, "DELETE FROM prompt_templates")

    # ------------------------------------------------------------------
    # Jobs
    async def save_job(self, job: JobRecord) -> None:
        data = job.model_dump(mode="json")
        await asyncio.to_thread(
            self._execute,
            """
            INSERT OR REPLACE INTO batch_jobs
                (job_id, session_id, status, result, error, created_at, finished_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            data["job_id"],
            data["session_id"],
            data["status"],
            json.dumps(data["result"]) if data["result"] is not None else None,
            data["error"],
            data["created_at"],
            data["finished_at"],
        )

    async def get_job(self, job_id: str) -> JobRecord | None:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT * FROM batch_jobs WHERE job_id = ?", job_id
        )
        if not row:
            return None
        data = dict(row)
        data["result"] = json.loads(data["result"]) if data["result"] else None
        return JobRecord.model_validate(data)
