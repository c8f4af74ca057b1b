"""Generation of one unit: article, video script, quiz and exercise."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from ..artifacts import ArticleArtifact, ExerciseArtifact, QuizArtifact, VideoScriptArtifact
from ..contracts import (
    Chapter,
    LearningArc,
    MatrixSession,
    ProgramBrief,
    Quiz,
    SampleContent,
    UnitContent,
)
from ..errors import GenerationServiceFailure
from ..llm import CompletionClient
from ..quality import QualityControlLoop, mean_score
from ..templates import PromptCategory, TemplateService
from . import fallbacks
from .variables import arc_variables, brief_variables, quality_context, session_variables

logger = logging.getLogger(__name__)


class UnitGenerator:
    """Produces and quality-checks the four artifacts of a unit.

    A model failure for any artifact is replaced by placeholder content and
    recorded on the unit's ``error`` marker, so the batch can carry on.
    """

    def __init__(
        self,
        client: CompletionClient,
        templates: TemplateService,
        quality: QualityControlLoop,
    ) -> None:
        self._client = client
        self._templates = templates
        self._quality = quality

    async def generate(
        self,
        brief: ProgramBrief,
        unit: MatrixSession,
        index: int,
        sample: SampleContent,
        arc: Optional[LearningArc] = None,
        chapter: Optional[Chapter] = None,
    ) -> UnitContent:
        variables = {
            **brief_variables(brief),
            **arc_variables(arc, index),
            **session_variables(unit, chapter),
            "sample_word_count": len(sample.article.content.split()),
            "sample_excerpt": sample.article.content[:200],
            "sample_quiz_count": len(sample.quiz.questions) or 3,
            "sample_question_style": (
                sample.quiz.questions[0].question[:100] if sample.quiz.questions else ""
            ),
        }

        if unit.session_number == sample.session_number:
            # The approved sample already is this unit's article and quiz.
            article_task = _ready(sample.article.content)
            quiz_task = _ready(sample.quiz.model_dump(mode="json"))
        else:
            article_task = self._prose(PromptCategory.ARTICLE_GENERATION, variables)
            quiz_task = self._quiz(variables)

        results = await asyncio.gather(
            article_task,
            self._prose(PromptCategory.VIDEO_SCRIPT_GENERATION, variables),
            quiz_task,
            self._exercise(variables),
        )
        (article, article_err), (script, script_err), (quiz, quiz_err), (exercise, exercise_err) = (
            results
        )

        failed: List[str] = []
        if article_err:
            article = fallbacks.fallback_article(unit)
            failed.append("article")
        if script_err:
            script = fallbacks.fallback_script(unit)
            failed.append("video")
        if quiz_err:
            quiz = fallbacks.fallback_quiz(unit)
            failed.append("quiz")
        if exercise_err:
            exercise = fallbacks.fallback_exercise(unit, brief)
            failed.append("exercise")

        reviewed, scores = await self._review(brief, unit, article, script, quiz, exercise)

        error = None
        if failed:
            error = f"Placeholder content used for: {', '.join(failed)}"
            logger.warning(f"Unit {unit.session_number} ({unit.title}): {error}")

        return UnitContent(
            id=f"session-{unit.session_number}",
            session_number=unit.session_number,
            title=unit.title,
            article=reviewed["article"],
            script=reviewed["video"],
            quiz=reviewed["quiz"],
            exercise=reviewed["exercise"],
            scores=scores,
            qc_score=mean_score(scores.values()),
            error=error,
        )

    async def recheck(
        self, brief: ProgramBrief, content: UnitContent, unit: Optional[MatrixSession] = None
    ) -> UnitContent:
        """Run an already generated unit through the quality loop again.

        The error marker is kept: placeholder content stays a failed unit.
        """
        unit = unit or MatrixSession(session_number=content.session_number, title=content.title)
        reviewed, scores = await self._review(
            brief, unit, content.article, content.script, content.quiz, content.exercise
        )
        return content.model_copy(
            update={
                "article": reviewed["article"],
                "script": reviewed["video"],
                "quiz": reviewed["quiz"],
                "exercise": reviewed["exercise"],
                "scores": scores,
                "qc_score": mean_score(scores.values()),
            }
        )

    async def _review(
        self,
        brief: ProgramBrief,
        unit: MatrixSession,
        article: str,
        script: str,
        quiz: Dict[str, Any],
        exercise: Dict[str, Any],
    ) -> Tuple[Dict[str, Any], Dict[str, int]]:
        outcomes = await self._quality.review_many(
            [
                ArticleArtifact(content=article),
                VideoScriptArtifact(content=script),
                QuizArtifact(content=quiz),
                ExerciseArtifact(content=exercise),
            ],
            quality_context(brief, unit),
        )
        scores = {outcome.artifact.kind: outcome.score for outcome in outcomes}
        reviewed = {outcome.artifact.kind: outcome.artifact.content for outcome in outcomes}
        return reviewed, scores

    async def _prose(
        self, category: PromptCategory, variables: Dict[str, Any]
    ) -> Tuple[Optional[str], Optional[str]]:
        async def call() -> str:
            instruction = await self._templates.render(category, variables)
            text = await self._client.prose(instruction)
            if not text:
                raise GenerationServiceFailure(f"{category.value} returned no text")
            return text

        return await _attempt(category, call)

    async def _quiz(self, variables: Dict[str, Any]) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
        async def call() -> Dict[str, Any]:
            instruction = await self._templates.render(PromptCategory.QUIZ_GENERATION, variables)
            quiz = Quiz.model_validate(await self._client.chat(instruction))
            if not quiz.questions:
                raise GenerationServiceFailure("quiz_generation returned no questions")
            return quiz.model_dump(mode="json")

        return await _attempt(PromptCategory.QUIZ_GENERATION, call)

    async def _exercise(self, variables: Dict[str, Any]) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
        async def call() -> Dict[str, Any]:
            instruction = await self._templates.render(PromptCategory.EXERCISE_GENERATION, variables)
            data = await self._client.chat(instruction)
            if not data.get("exercise"):
                raise GenerationServiceFailure("exercise_generation returned no exercise")
            return data

        return await _attempt(PromptCategory.EXERCISE_GENERATION, call)


async def _attempt(
    category: PromptCategory, call: Callable[[], Awaitable[Any]]
) -> Tuple[Optional[Any], Optional[str]]:
    try:
        return await call(), None
    except (GenerationServiceFailure, ValidationError) as e:
        logger.warning(f"{category.value} failed: {e}")
        return None, str(e)


async def _ready(value: Any) -> Tuple[Any, None]:
    return value, None
