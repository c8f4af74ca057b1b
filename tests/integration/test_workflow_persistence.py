import pytest

from programfactory.contracts import Route, SessionStatus, StepDataKey, WorkflowStep
from programfactory.errors import InvalidTransition
from programfactory.persistence import SQLiteFactoryRepository
from programfactory.workflow import WorkflowManager


@pytest.mark.asyncio
async def test_route_a_session_survives_reopen(tmp_path):
    """Walk the start of route A and reload it from a fresh repository."""
    db_path = tmp_path / "sessions.db"
    manager = WorkflowManager(SQLiteFactoryRepository(db_path))

    session_id = await manager.create_session("Acme", "Retail")
    await manager.set_route(session_id, Route.A)
    await manager.advance_to_step(session_id, WorkflowStep.ROUTE_A_UPLOAD)
    await manager.save_step_data(session_id, StepDataKey.EXTRACTED_CONTENT, "Returns policy text")
    await manager.advance_to_step(session_id, WorkflowStep.CONTENT_REVIEW)
    await manager.record_decision(session_id, WorkflowStep.CONTENT_REVIEW, "approve")
    await manager.advance_to_step(session_id, WorkflowStep.APPROACH_SELECTION_A)

    reopened = WorkflowManager(SQLiteFactoryRepository(db_path))
    session = await reopened.get_session(session_id)
    assert session.current_step == WorkflowStep.APPROACH_SELECTION_A
    assert session.route == Route.A
    assert session.status == SessionStatus.ACTIVE
    assert await reopened.get_step_data(session_id, StepDataKey.EXTRACTED_CONTENT) == "Returns policy text"
    assert await reopened.get_step_data(session_id, StepDataKey.ROUTE) == "A"
    decisions = await reopened.get_decisions(session_id)
    assert [(d.step, d.decision) for d in decisions] == [("content_review", "approve")]

    with pytest.raises(InvalidTransition):
        await reopened.advance_to_step(session_id, WorkflowStep.ROUTE_B_RESEARCH)
    with pytest.raises(InvalidTransition):
        await reopened.set_route(session_id, Route.B)


@pytest.mark.asyncio
async def test_deleted_session_leaves_nothing_behind(tmp_path):
    repository = SQLiteFactoryRepository(tmp_path / "sessions.db")
    manager = WorkflowManager(repository)
    session_id = await manager.create_session("Acme", "Retail")
    await manager.save_step_data(session_id, StepDataKey.BRIEF, {"client_name": "Acme", "industry": "Retail"})
    await manager.record_decision(session_id, WorkflowStep.BRIEF, "approve")

    await manager.delete_session(session_id)

    assert await repository.get_session(session_id) is None
    assert await repository.list_step_data(session_id) == {}
    assert await repository.list_decisions(session_id) == []
