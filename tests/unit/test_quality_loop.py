import asyncio

import pytest

from programfactory.artifacts import ArticleArtifact, QuizArtifact, VideoScriptArtifact
from programfactory.errors import GenerationServiceFailure
from programfactory.persistence import InMemoryFactoryRepository
from programfactory.quality import QualityControlLoop, mean_score
from programfactory.templates import TemplateService


class ScriptedClient:
    """Replies from fixed queues and records every call."""

    def __init__(self, chat=None, prose=None):
        self.chat_replies = list(chat or [])
        self.prose_replies = list(prose or [])
        self.calls = []

    async def chat(self, instruction, input=None):
        self.calls.append(("chat", instruction, input))
        reply = self.chat_replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def prose(self, instruction, input=None):
        self.calls.append(("prose", instruction, input))
        reply = self.prose_replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def _loop(client, **kwargs) -> QualityControlLoop:
    return QualityControlLoop(client, TemplateService(InMemoryFactoryRepository()), **kwargs)


PATCH = {"op": "replace", "target": "section:Practice", "text": "Better practice"}


@pytest.mark.asyncio
async def test_passing_score_is_accepted_without_repair():
    client = ScriptedClient(chat=[{"score": 91, "ok": True}])
    outcome = await _loop(client).review(ArticleArtifact(content="Draft"))

    assert outcome.score == 91
    assert outcome.repaired is False
    assert outcome.artifact.content == "Draft"
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_dimension_scores_are_clamped_and_kept():
    client = ScriptedClient(
        chat=[{"score": "88.6", "ok": True, "dimensions": {"voice": 120, "length": "n/a", "structure": 70}}]
    )
    outcome = await _loop(client).review(ArticleArtifact(content="Draft"))

    assert outcome.quality.overall == 89
    assert outcome.quality.dimensions == {"voice": 100, "structure": 70}


@pytest.mark.asyncio
async def test_failing_score_without_patches_is_accepted():
    client = ScriptedClient(chat=[{"score": 40, "ok": False, "patches": []}])
    outcome = await _loop(client).review(ArticleArtifact(content="Draft"))

    assert outcome.score == 40
    assert outcome.repaired is False
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_exactly_one_repair_and_one_rescore():
    client = ScriptedClient(
        chat=[
            {"score": 55, "ok": False, "patches": [PATCH]},
            {"score": 45, "ok": False, "patches": [PATCH]},
        ],
        prose=["Revised article"],
    )
    outcome = await _loop(client).review(ArticleArtifact(content="Draft"), {"program": {}})

    assert [kind for kind, _, _ in client.calls] == ["chat", "prose", "chat"]
    assert outcome.artifact.content == "Revised article"
    assert outcome.score == 45
    assert outcome.initial_score == 55
    assert outcome.repaired is True

    repair_input = client.calls[1][2]
    assert repair_input["artifact"] == {"type": "article", "content": "Draft"}
    assert repair_input["patches"][0]["target"] == "section:Practice"
    rescore_input = client.calls[2][2]
    assert rescore_input["artifact"]["content"] == "Revised article"


@pytest.mark.asyncio
async def test_structured_artifacts_are_repaired_through_chat():
    fixed = {"questions": [{"question": "Q?", "options": ["a", "b"], "correct_index": 1}]}
    client = ScriptedClient(
        chat=[{"score": 30, "ok": False, "patches": [PATCH]}, fixed, {"score": 88, "ok": True}]
    )
    outcome = await _loop(client).review(QuizArtifact(content={"questions": []}))

    assert [kind for kind, _, _ in client.calls] == ["chat", "chat", "chat"]
    assert outcome.artifact.content == fixed
    assert outcome.score == 88


@pytest.mark.asyncio
async def test_scoring_failure_returns_original_with_fallback():
    client = ScriptedClient(chat=[GenerationServiceFailure("timeout")])
    outcome = await _loop(client).review(ArticleArtifact(content="Draft"))

    assert outcome.score == 50
    assert outcome.fallback is True
    assert outcome.artifact.content == "Draft"


@pytest.mark.asyncio
async def test_repair_failure_returns_original_with_fallback():
    client = ScriptedClient(
        chat=[{"score": 20, "ok": False, "patches": [PATCH]}],
        prose=[asyncio.TimeoutError()],
    )
    outcome = await _loop(client, fallback_score=35).review(VideoScriptArtifact(content="Script"))

    assert outcome.score == 35
    assert outcome.artifact.content == "Script"
    assert outcome.repaired is False


@pytest.mark.asyncio
async def test_missing_score_uses_fallback():
    client = ScriptedClient(chat=[{}])
    outcome = await _loop(client).review(ArticleArtifact(content="Draft"))
    assert outcome.score == 50
    assert outcome.fallback is True


@pytest.mark.asyncio
async def test_keep_better_policy_keeps_original_on_lower_rescore():
    client = ScriptedClient(
        chat=[
            {"score": 70, "ok": False, "patches": [PATCH]},
            {"score": 60, "ok": False},
        ],
        prose=["Worse article"],
    )
    outcome = await _loop(client, repair_policy="keep_better").review(
        ArticleArtifact(content="Draft")
    )

    assert outcome.artifact.content == "Draft"
    assert outcome.score == 70
    assert len(client.calls) == 3


@pytest.mark.asyncio
async def test_review_many_preserves_order():
    client = ScriptedClient(chat=[{"score": 80, "ok": True}, {"score": 90, "ok": True}])
    outcomes = await _loop(client).review_many(
        [ArticleArtifact(content="A"), VideoScriptArtifact(content="V")]
    )
    assert [o.artifact.kind for o in outcomes] == ["article", "video"]
    assert mean_score(o.score for o in outcomes) == 85


def test_mean_score_rounds_half_up():
    assert mean_score([]) == 0
    assert mean_score([80, 81]) == 81
    assert mean_score([80, 81, 81]) == 81
    assert mean_score([50, 50, 51, 51]) == 51
    assert mean_score([70]) == 70


@pytest.mark.asyncio
async def test_context_cannot_replace_the_scored_artifact():
    client = ScriptedClient(chat=[{"score": 90, "ok": True}])
    await _loop(client).review(ArticleArtifact(content="Draft"), {"artifact": "stale", "industry": "Retail"})

    _, _, payload = client.calls[0]
    assert payload["artifact"] == {"type": "article", "content": "Draft"}
    assert payload["industry"] == "Retail"
