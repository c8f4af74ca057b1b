import copy
import json

import pytest

from programfactory.config import FactoryConfig
from programfactory.contracts import Route, SessionStatus, StepDataKey, WorkflowStep
from programfactory.errors import InvalidTransition, MissingRequiredData
from programfactory.factory import ProgramFactory
from programfactory.persistence import InMemoryFactoryRepository, SQLiteFactoryRepository
from programfactory.progress import EventType

MARKERS = [
    ("QC Agent", "review"),
    ("the Fixer", "fix"),
    ("learning theorist", "frameworks"),
    ("learning design researcher", "research"),
    ("analyzing content", "approaches"),
    ("turning field research", "approaches"),
    ("narrative learning arc", "arc"),
    ("revising a learning arc", "arc"),
    ("creating a training program structure", "matrix"),
    ("research-based training program", "matrix"),
    ("revising a training program", "matrix"),
    ("generating a complete learning session", "sample"),
    ("revising content based on client feedback", "sample"),
    ("Article Writer", "article"),
    ("Video Script Writer", "video"),
    ("Quiz Builder", "quiz"),
    ("Exercise Designer", "exercise"),
]

QUIZ = {
    "questions": [
        {
            "question": "What drives most apparel returns?",
            "options": ["Fit", "Weather"],
            "correct_index": 0,
        }
    ]
}

REPLIES = {
    "review": {"score": 88, "ok": True},
    "frameworks": {
        "frameworks": [{"id": "case-based", "name": "Case-Based Learning"}],
        "recommended": "case-based",
    },
    "research": {"summary": "Retail returns research", "key_findings": ["Fit drives returns"]},
    "approaches": {
        "approaches": [
            {"id": "scenario", "name": "Scenario Practice", "description": "Real cases."},
            {"id": "coaching", "name": "Peer Coaching", "description": "Learn from peers."},
        ]
    },
    "arc": {
        "title": "From Returns to Loyalty",
        "narrative": "Associates turn returns into loyalty.",
        "progression": [{"phase": "Foundation", "focus": "Why returns happen"}],
    },
    "matrix": {
        "program_title": "Returns Excellence",
        "chapters": [
            {
                "number": 1,
                "title": "Understanding Returns",
                "sessions": [
                    {"session_number": 1, "title": "Why Returns Happen"},
                    {"session_number": 2, "title": "Handling Exchanges"},
                ],
            }
        ],
    },
    "sample": {
        "article": {"title": "Why Returns Happen", "content": "# Why Returns Happen\n\nSample."},
        "quiz": QUIZ,
    },
    "article": "# Handling Exchanges\n\nBody.",
    "video": "Hook. [PAUSE] Close.",
    "quiz": QUIZ,
    "exercise": {"exercise": {"roleplay": "exchange at the counter"}},
}


class ScriptedModel:
    """Completion client answering by the template an instruction came from."""

    def __init__(self):
        self.calls = []

    def _reply(self, instruction):
        kind = next(kind for marker, kind in MARKERS if marker in instruction)
        self.calls.append(kind)
        return copy.deepcopy(REPLIES[kind])

    async def chat(self, instruction, input=None):
        return self._reply(instruction)

    async def prose(self, instruction, input=None):
        return self._reply(instruction)


BRIEF = {
    "client_name": "Acme",
    "industry": "Retail",
    "audience": "Store associates",
    "objectives": ["Reduce returns"],
}


def _factory(repository=None, concurrency=2):
    config = FactoryConfig()
    config.batch.concurrency = concurrency
    client = ScriptedModel()
    factory = ProgramFactory(
        config=config,
        repository=repository or InMemoryFactoryRepository(),
        client=client,
    )
    return factory, client


async def _current(factory, session_id):
    return (await factory.manager.get_session(session_id)).current_step


async def _through_framework(factory, session_id):
    await factory.submit_brief(session_id, BRIEF)
    options = await factory.generate_frameworks(session_id)
    await factory.select_framework(session_id, options.recommended)


async def _batch_and_export(factory, session_id):
    await factory.generate_matrix(session_id)
    await factory.review_matrix(session_id)
    await factory.generate_sample(session_id)
    await factory.validate_sample(session_id)
    assert await _current(factory, session_id) == WorkflowStep.BATCH_GENERATION

    job_id = await factory.start_batch(session_id)
    subscription = factory.subscribe(job_id)
    job = await factory.wait_for_batch(job_id)
    events = [event async for event in subscription]
    return job, events


@pytest.mark.asyncio
async def test_route_a_program_end_to_end():
    factory, client = _factory()
    session_id = await factory.start_session("Acme", "Retail")

    await _through_framework(factory, session_id)
    await factory.choose_route(session_id, Route.A)
    assert await _current(factory, session_id) == WorkflowStep.ROUTE_A_UPLOAD

    analysis = await factory.submit_content(
        session_id,
        {"policy.txt": "Returns are accepted within 30 days", "faq.txt": "Exchanges are free"},
    )
    assert analysis.documents == 2
    assert analysis.total_words == 9
    assert analysis.estimated_reading_time == "1 minutes"

    await factory.review_content(session_id)
    await factory.generate_approaches(session_id)
    await factory.select_approach(session_id, "scenario")
    arc = await factory.generate_arc(session_id)
    assert arc.title == "From Returns to Loyalty"
    await factory.review_arc(session_id)
    assert await _current(factory, session_id) == WorkflowStep.MATRIX_GENERATION

    job, events = await _batch_and_export(factory, session_id)

    assert job.status == "completed", job.error
    session = await factory.manager.get_session(session_id)
    assert session.status == SessionStatus.COMPLETED
    assert session.current_step == WorkflowStep.COMPLETED
    assert events[-1].type == EventType.COMPLETE
    assert events[-1].data["completed_units"] == 2

    content = await factory.get_batch_content(session_id)
    assert content.units[0].article == REPLIES["sample"]["article"]["content"]
    assert content.units[1].article == REPLIES["article"]
    assert "approaches" in client.calls and "research" not in client.calls

    exported = json.loads(await factory.export_batch(session_id))
    assert [c["id"] for c in exported["content"]] == ["session-1", "session-2"]
    markdown = await factory.export_batch(session_id, "markdown")
    assert "## Session 2: Handling Exchanges" in markdown

    steps = [d.step for d in await factory.decisions(session_id)]
    assert steps == [
        "framework_selection",
        "route_selection",
        "content_review",
        "approach_selection_a",
        "arc_review",
        "matrix_review",
        "sample_validation",
    ]


@pytest.mark.asyncio
async def test_route_b_program_end_to_end(tmp_path):
    repository = SQLiteFactoryRepository(str(tmp_path / "factory.db"))
    factory, client = _factory(repository=repository, concurrency=1)
    session_id = await factory.start_session("Acme", "Retail")

    await _through_framework(factory, session_id)
    await factory.choose_route(session_id, "B")
    research = await factory.conduct_research(session_id)
    assert research.summary == "Retail returns research"
    assert await _current(factory, session_id) == WorkflowStep.APPROACH_SELECTION_B

    options = await factory.generate_approaches(session_id)
    await factory.select_approach(session_id, options.approaches[1].id)
    matrix = await factory.generate_matrix(session_id)
    assert matrix.program_title == "Returns Excellence"
    await factory.regenerate_matrix(session_id, "Keep it short")
    await factory.review_matrix(session_id)
    await factory.generate_sample(session_id)
    await factory.validate_sample(session_id, "reject", "Warmer tone")
    assert await _current(factory, session_id) == WorkflowStep.SAMPLE_GENERATION
    await factory.generate_sample(session_id, feedback="Warmer tone")
    await factory.validate_sample(session_id)

    job_id = await factory.start_batch(session_id)
    job = await factory.wait_for_batch(job_id)

    assert job.status == "completed", job.error
    assert "arc" not in client.calls
    stored = await repository.get_job(job_id)
    assert stored.result["summary"]["total_units"] == 2
    data = await factory.manager.get_all_step_data(session_id)
    assert data[StepDataKey.ROUTE.value] == "B"
    assert StepDataKey.LEARNING_ARC.value not in data


@pytest.mark.asyncio
async def test_actions_are_bound_to_their_step():
    factory, _ = _factory()
    session_id = await factory.start_session("Acme", "Retail")

    with pytest.raises(InvalidTransition):
        await factory.generate_frameworks(session_id)
    with pytest.raises(InvalidTransition):
        await factory.start_batch(session_id)
    with pytest.raises(MissingRequiredData):
        await factory.export_batch(session_id)

    await _through_framework(factory, session_id)
    await factory.choose_route(session_id, Route.B)
    with pytest.raises(InvalidTransition):
        await factory.submit_content(session_id, {"doc.txt": "text"})
    with pytest.raises(InvalidTransition):
        await factory.choose_route(session_id, Route.A)
