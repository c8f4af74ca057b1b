"""Session lifecycle and step transitions."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional

from ..constants import APPROVE
from ..contracts import (
    Route,
    SessionStatus,
    StepDataKey,
    WorkflowStep,
    dump_step_value,
    step_data_adapter,
    utcnow,
)
from ..errors import InvalidTransition, MissingRequiredData, SessionNotFound
from ..persistence import Decision, FactoryRepository, WorkflowSession, get_repository
from . import graph

logger = logging.getLogger(__name__)


def _key(key: StepDataKey | str) -> str:
    return key.value if isinstance(key, StepDataKey) else key


class WorkflowManager:
    """Drives sessions through the fixed step graph.

    Transitions of one session are serialized by a per-session lock, so two
    concurrent callers can never move a session along two edges at once.
    Step data writes and decisions do not transition and take no lock.
    """

    def __init__(self, repository: FactoryRepository | None = None) -> None:
        self._repository = repository or get_repository()
        self._locks: Dict[str, asyncio.Lock] = {}

    @property
    def repository(self) -> FactoryRepository:
        return self._repository

    def _lock(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        return lock

    # ------------------------------------------------------------------
    # Sessions
    async def create_session(self, client_name: str, industry: str) -> str:
        session = WorkflowSession(
            id=str(uuid.uuid4()),
            client_name=client_name,
            industry=industry,
        )
        await self._repository.save_session(session)
        logger.info(f"Created session {session.id} for {client_name} ({industry})")
        return session.id

    async def get_session(self, session_id: str) -> WorkflowSession:
        session = await self._repository.get_session(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    async def list_sessions(self) -> List[WorkflowSession]:
        return await self._repository.list_sessions()

    async def delete_session(self, session_id: str) -> None:
        await self.get_session(session_id)
        async with self._lock(session_id):
            await self._repository.delete_session(session_id)
        self._locks.pop(session_id, None)
        logger.info(f"Deleted session {session_id}")

    # ------------------------------------------------------------------
    # Step data
    async def save_step_data(self, session_id: str, key: StepDataKey | str, value: Any) -> None:
        """Upsert one step-data value.

        Known keys are validated against their payload model before they are
        stored; unknown keys persist any JSON-compatible value as is.
        """
        await self.get_session(session_id)
        key = _key(key)
        adapter = step_data_adapter(key)
        if adapter is not None:
            value = adapter.validate_python(value)
        await self._repository.set_step_data(session_id, key, dump_step_value(value))
        logger.debug(f"Session {session_id}: saved step data '{key}'")

    async def get_step_data(self, session_id: str, key: StepDataKey | str) -> Any:
        """Return the stored value, or ``None`` when ``key`` was never written."""
        record = await self._repository.get_step_data(session_id, _key(key))
        return record.value if record is not None else None

    async def get_typed_step_data(self, session_id: str, key: StepDataKey | str) -> Any:
        """Like :meth:`get_step_data` but validated into the key's payload model."""
        value = await self.get_step_data(session_id, key)
        adapter = step_data_adapter(_key(key))
        if value is None or adapter is None:
            return value
        return adapter.validate_python(value)

    async def get_all_step_data(self, session_id: str) -> Dict[str, Any]:
        return await self._repository.list_step_data(session_id)

    async def require_step_data(self, session_id: str, *keys: StepDataKey | str) -> Dict[str, Any]:
        """Return the typed values of ``keys``, raising when any is absent."""
        values: Dict[str, Any] = {}
        missing: List[str] = []
        for key in keys:
            value = await self.get_typed_step_data(session_id, key)
            if value is None:
                missing.append(_key(key))
            else:
                values[_key(key)] = value
        if missing:
            raise MissingRequiredData(session_id, missing)
        return values

    # ------------------------------------------------------------------
    # Decisions
    async def record_decision(
        self,
        session_id: str,
        step: WorkflowStep | str,
        decision: str,
        feedback: Optional[str] = None,
    ) -> Decision:
        """Append a decision to the audit trail. Does not transition."""
        await self.get_session(session_id)
        return await self._append_decision(session_id, WorkflowStep(step), decision, feedback)

    async def _append_decision(
        self, session_id: str, step: WorkflowStep, decision: str, feedback: Optional[str]
    ) -> Decision:
        record = Decision(
            id=str(uuid.uuid4()),
            session_id=session_id,
            step=step.value,
            decision=decision,
            feedback=feedback,
        )
        await self._repository.add_decision(record)
        logger.info(f"Session {session_id}: recorded '{decision}' at {record.step}")
        return record

    async def get_decisions(self, session_id: str) -> List[Decision]:
        return await self._repository.list_decisions(session_id)

    # ------------------------------------------------------------------
    # Transitions
    def _check_active(self, session: WorkflowSession, target: Optional[WorkflowStep]) -> None:
        current = session.current_step.value if session.current_step else None
        target_value = target.value if target else None
        if session.status == SessionStatus.COMPLETED:
            raise InvalidTransition(session.id, current, target_value, "session is completed")
        if session.status == SessionStatus.PAUSED:
            raise InvalidTransition(session.id, current, target_value, "session is paused")

    async def _move(self, session: WorkflowSession, target: WorkflowStep) -> WorkflowSession:
        if not graph.is_legal(session.current_step, target, session.route):
            raise InvalidTransition(
                session.id,
                session.current_step.value if session.current_step else None,
                target.value,
                f"not a successor under route {session.route.value if session.route else 'unset'}",
            )
        previous = session.current_step
        session.current_step = target
        if target == WorkflowStep.COMPLETED:
            session.status = SessionStatus.COMPLETED
        session.updated_at = utcnow()
        await self._repository.save_session(session)
        logger.info(f"Session {session.id}: {previous.value} -> {target.value}")
        return session

    async def advance_to_step(self, session_id: str, next_step: WorkflowStep | str) -> WorkflowSession:
        """Move to ``next_step`` if it is a legal successor of the current step."""
        async with self._lock(session_id):
            session = await self.get_session(session_id)
            try:
                target = WorkflowStep(next_step)
            except ValueError:
                raise InvalidTransition(
                    session_id, session.current_step.value, str(next_step), "unknown step"
                ) from None
            self._check_active(session, target)
            return await self._move(session, target)

    async def missing_data(self, session_id: str) -> List[str]:
        """Keys the current step still needs before it can be left."""
        session = await self.get_session(session_id)
        return await self._missing_for(session)

    async def _missing_for(self, session: WorkflowSession) -> List[str]:
        missing = []
        if session.current_step == WorkflowStep.ROUTE_SELECTION and session.route is None:
            missing.append(StepDataKey.ROUTE.value)
        for key in graph.REQUIRED_DATA.get(session.current_step, ()):
            record = await self._repository.get_step_data(session.id, key.value)
            if record is None or record.value is None:
                missing.append(key.value)
        return missing

    async def can_proceed(self, session_id: str) -> bool:
        return not await self.missing_data(session_id)

    async def advance(self, session_id: str) -> WorkflowSession:
        """Follow the unconditional edge out of the current step.

        Gates cannot be auto-advanced; use :meth:`apply_decision`.
        """
        async with self._lock(session_id):
            session = await self.get_session(session_id)
            current = session.current_step
            target = graph.next_step(current, session.route)
            self._check_active(session, target)
            if graph.is_gate(current):
                raise InvalidTransition(
                    session_id, current.value, target.value if target else None, "step requires a decision"
                )
            missing = await self._missing_for(session)
            if missing:
                raise MissingRequiredData(session_id, missing)
            if target is None:
                raise InvalidTransition(session_id, current.value, None, "no outgoing edge")
            return await self._move(session, target)

    async def apply_decision(
        self,
        session_id: str,
        step: WorkflowStep | str,
        decision: str,
        feedback: Optional[str] = None,
    ) -> WorkflowSession:
        """Record a decision at gate ``step`` and follow its approve or retry edge.

        The decision is only recorded when the session sits at ``step``.
        """
        step = WorkflowStep(step)
        if not graph.is_gate(step):
            raise InvalidTransition(session_id, step.value, None, "step is not a decision gate")
        target = graph.decision_target(step, decision == APPROVE)
        async with self._lock(session_id):
            session = await self.get_session(session_id)
            self._check_active(session, target)
            if session.current_step != step:
                raise InvalidTransition(
                    session_id,
                    session.current_step.value,
                    target.value,
                    f"decision is for {step.value}",
                )
            await self._append_decision(session_id, step, decision, feedback)
            return await self._move(session, target)

    async def set_route(self, session_id: str, route: Route | str) -> WorkflowSession:
        """Commit the session to ``route``.

        Allowed while the session is still before the route's first step; the
        session is positioned at ``route_selection``. Once a route step has
        been entered the route can no longer change.
        """
        route = Route(route)
        async with self._lock(session_id):
            session = await self.get_session(session_id)
            self._check_active(session, graph.ROUTE_STEPS[route][0])
            if session.current_step not in graph.PRE_ROUTE_STEPS:
                raise InvalidTransition(
                    session_id,
                    session.current_step.value,
                    graph.ROUTE_STEPS[route][0].value,
                    f"route {session.route.value if session.route else 'unset'} is already committed",
                )
            session.route = route
            session.current_step = WorkflowStep.ROUTE_SELECTION
            session.updated_at = utcnow()
            await self._repository.save_session(session)
            await self._repository.set_step_data(session_id, StepDataKey.ROUTE.value, route.value)
        logger.info(f"Session {session_id}: route {route.value} selected")
        return session

    async def complete_session(self, session_id: str) -> WorkflowSession:
        """Terminal transition. A completed session accepts no further moves."""
        async with self._lock(session_id):
            session = await self.get_session(session_id)
            self._check_active(session, WorkflowStep.COMPLETED)
            session.status = SessionStatus.COMPLETED
            session.current_step = WorkflowStep.COMPLETED
            session.updated_at = utcnow()
            await self._repository.save_session(session)
        logger.info(f"Session {session_id}: completed")
        return session

    async def pause_session(self, session_id: str) -> WorkflowSession:
        return await self._set_status(session_id, SessionStatus.PAUSED)

    async def resume_session(self, session_id: str) -> WorkflowSession:
        return await self._set_status(session_id, SessionStatus.ACTIVE)

    async def _set_status(self, session_id: str, status: SessionStatus) -> WorkflowSession:
        async with self._lock(session_id):
            session = await self.get_session(session_id)
            if session.status == SessionStatus.COMPLETED:
                raise InvalidTransition(
                    session_id, session.current_step.value, session.current_step.value, "session is completed"
                )
            session.status = status
            session.updated_at = utcnow()
            await self._repository.save_session(session)
        logger.info(f"Session {session_id}: status {status.value}")
        return session

    @staticmethod
    def next_step(step: WorkflowStep | str, route: Optional[Route | str] = None) -> Optional[WorkflowStep]:
        return graph.next_step(WorkflowStep(step), Route(route) if route else None)

    @staticmethod
    def step_name(step: WorkflowStep | str) -> str:
        return graph.step_name(step)
