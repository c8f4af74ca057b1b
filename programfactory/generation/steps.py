"""Generators for the working-memory payloads of each pipeline step."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..artifacts import ArticleArtifact, QuizArtifact
from ..contracts import (
    ApproachOptions,
    FrameworkOptions,
    LearningArc,
    MatrixSession,
    ProgramBrief,
    ProgramMatrix,
    Quiz,
    ResearchResults,
    SampleContent,
)
from ..errors import GenerationServiceFailure
from ..llm import CompletionClient
from ..quality import QualityControlLoop, mean_score
from ..templates import PromptCategory, TemplateService
from . import fallbacks
from .variables import (
    arc_context,
    arc_variables,
    as_json,
    brief_variables,
    feedback_context,
    preview,
    quality_context,
    session_variables,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

CONTENT_PREVIEW_CHARS = 4000
MATRIX_CONTENT_CHARS = 8000


class StepGenerator:
    """Template -> completion -> validation for every step payload.

    Each method falls back to deterministic content when the service fails
    or returns something that does not validate; regeneration falls back to
    the current payload.
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

    async def _generate(
        self,
        category: PromptCategory,
        variables: Dict[str, Any],
        model: Type[T],
        fallback: Callable[[], T],
        usable: Callable[[T], bool] = lambda _: True,
    ) -> T:
        try:
            instruction = await self._templates.render(category, variables)
            data = await self._client.chat(instruction)
            result = model.model_validate(data)
        except (GenerationServiceFailure, ValidationError) as e:
            logger.warning(f"{category.value} failed, using fallback: {e}")
            return fallback()
        if not usable(result):
            logger.warning(f"{category.value} returned an empty {model.__name__}, using fallback")
            return fallback()
        return result

    async def generate_frameworks(
        self,
        brief: ProgramBrief,
        content: Optional[str] = None,
        feedback: Optional[str] = None,
    ) -> FrameworkOptions:
        variables = {
            **brief_variables(brief),
            "content_context": (
                f"\nCONTENT/RESEARCH CONTEXT:\n{preview(content, 2000)}" if content else ""
            ),
            "feedback_context": feedback_context(feedback),
        }
        options = await self._generate(
            PromptCategory.FRAMEWORK_GENERATION,
            variables,
            FrameworkOptions,
            lambda: fallbacks.fallback_frameworks(brief),
            lambda r: bool(r.frameworks),
        )
        if options.recommended is None:
            options.recommended = options.frameworks[0].id
        return options

    async def conduct_research(self, brief: ProgramBrief) -> ResearchResults:
        return await self._generate(
            PromptCategory.RESEARCH,
            brief_variables(brief),
            ResearchResults,
            lambda: fallbacks.fallback_research(brief),
            lambda r: bool(r.summary or r.key_findings),
        )

    async def generate_approaches(
        self,
        brief: ProgramBrief,
        content: Optional[str] = None,
        research: Optional[ResearchResults] = None,
    ) -> ApproachOptions:
        """Approach options from uploaded content or, failing that, from research."""
        variables = brief_variables(brief)
        if content is not None:
            category = PromptCategory.APPROACH_GENERATION_CONTENT
            variables["content_preview"] = preview(content, CONTENT_PREVIEW_CHARS)
        elif research is not None:
            category = PromptCategory.APPROACH_GENERATION_RESEARCH
            variables["research_summary"] = as_json(research)
        else:
            raise ValueError("generate_approaches needs content or research")
        return await self._generate(
            category,
            variables,
            ApproachOptions,
            lambda: fallbacks.fallback_approaches(brief),
            lambda r: bool(r.approaches),
        )

    async def generate_arc(
        self,
        brief: ProgramBrief,
        content: str,
        approach: str,
        feedback: Optional[str] = None,
    ) -> LearningArc:
        variables = {
            **brief_variables(brief),
            "approach": approach,
            "content_preview": preview(content, CONTENT_PREVIEW_CHARS),
            "feedback_context": feedback_context(feedback),
        }
        return await self._generate(
            PromptCategory.ARC_GENERATION,
            variables,
            LearningArc,
            lambda: fallbacks.fallback_arc(brief, approach),
            lambda r: bool(r.progression),
        )

    async def regenerate_arc(
        self, brief: ProgramBrief, current: LearningArc, feedback: str
    ) -> LearningArc:
        variables = {
            **brief_variables(brief),
            "current_arc": as_json(current),
            "feedback": feedback,
        }
        return await self._generate(
            PromptCategory.ARC_REGENERATION,
            variables,
            LearningArc,
            lambda: current,
            lambda r: bool(r.progression),
        )

    async def generate_matrix_from_content(
        self,
        brief: ProgramBrief,
        content: str,
        approach: str,
        arc: Optional[LearningArc] = None,
    ) -> ProgramMatrix:
        variables = {
            **brief_variables(brief),
            "approach": approach,
            "content_preview": preview(content, MATRIX_CONTENT_CHARS),
            "arc_context": arc_context(arc),
        }
        return await self._generate(
            PromptCategory.MATRIX_GENERATION_CONTENT,
            variables,
            ProgramMatrix,
            lambda: fallbacks.fallback_matrix(brief),
            lambda r: r.total_sessions > 0,
        )

    async def generate_matrix_from_research(
        self, brief: ProgramBrief, research: ResearchResults, approach: str
    ) -> ProgramMatrix:
        variables = {
            **brief_variables(brief),
            "approach": approach,
            "research_summary": as_json(research),
        }
        return await self._generate(
            PromptCategory.MATRIX_GENERATION_RESEARCH,
            variables,
            ProgramMatrix,
            lambda: fallbacks.fallback_matrix(brief),
            lambda r: r.total_sessions > 0,
        )

    async def regenerate_matrix(
        self, brief: ProgramBrief, current: ProgramMatrix, feedback: str
    ) -> ProgramMatrix:
        variables = {
            **brief_variables(brief),
            "current_matrix": as_json(current),
            "feedback": feedback,
        }
        return await self._generate(
            PromptCategory.MATRIX_REGENERATION,
            variables,
            ProgramMatrix,
            lambda: current,
            lambda r: r.total_sessions > 0,
        )

    async def generate_sample(
        self,
        brief: ProgramBrief,
        matrix: ProgramMatrix,
        arc: Optional[LearningArc] = None,
        feedback: Optional[str] = None,
    ) -> SampleContent:
        """Article and quiz for the first unit, passed through the quality loop."""
        unit = self._first_unit(matrix)
        variables = {
            **brief_variables(brief),
            **arc_variables(arc, 0),
            **session_variables(unit),
            "feedback_context": feedback_context(feedback),
        }
        sample = await self._generate(
            PromptCategory.SAMPLE_GENERATION,
            variables,
            SampleContent,
            lambda: fallbacks.fallback_sample(unit),
        )
        sample.session_number = unit.session_number
        return await self._review_sample(brief, matrix, sample)

    async def regenerate_sample(
        self,
        brief: ProgramBrief,
        matrix: ProgramMatrix,
        current: SampleContent,
        feedback: str,
    ) -> SampleContent:
        unit = self._first_unit(matrix)
        variables = {
            **brief_variables(brief),
            **session_variables(unit),
            "current_sample": as_json(current),
            "feedback": feedback,
        }
        sample = await self._generate(
            PromptCategory.SAMPLE_REGENERATION,
            variables,
            SampleContent,
            lambda: current,
        )
        if sample is current:
            return current
        sample.session_number = unit.session_number
        return await self._review_sample(brief, matrix, sample)

    async def _review_sample(
        self, brief: ProgramBrief, matrix: ProgramMatrix, sample: SampleContent
    ) -> SampleContent:
        unit = self._first_unit(matrix)
        article, quiz = await self._quality.review_many(
            [
                ArticleArtifact(content=sample.article.content),
                QuizArtifact(content=sample.quiz.model_dump(mode="json")),
            ],
            quality_context(brief, unit),
        )
        sample.article.content = article.artifact.content
        try:
            sample.quiz = Quiz.model_validate(quiz.artifact.content)
        except ValidationError as e:
            logger.warning(f"Repaired sample quiz does not validate, keeping original: {e}")
        sample.quality_score = mean_score([article.score, quiz.score])
        return sample

    @staticmethod
    def _first_unit(matrix: ProgramMatrix) -> MatrixSession:
        units = matrix.units()
        if not units:
            raise ValueError(f"Program matrix '{matrix.program_title}' has no sessions")
        return units[0]
