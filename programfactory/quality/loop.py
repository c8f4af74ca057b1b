"""Score, conditionally repair, re-score: one quality pass per artifact."""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional

from pydantic import BaseModel, Field

from ..artifacts import Artifact, QCReport, QualityScore
from ..constants import DEFAULT_QC_FALLBACK_SCORE
from ..errors import GenerationServiceFailure
from ..llm import CompletionClient
from ..templates import PromptCategory, TemplateService

logger = logging.getLogger(__name__)

RepairPolicy = Literal["always_take_repair", "keep_better"]


class QCOutcome(BaseModel):
    """Accepted artifact and its score after the quality pass."""

    artifact: Artifact
    score: int
    initial_score: Optional[int] = None
    repaired: bool = False
    fallback: bool = False
    dimensions: Dict[str, int] = Field(default_factory=dict)

    @property
    def quality(self) -> QualityScore:
        return QualityScore(overall=self.score, dimensions=self.dimensions)


def mean_score(scores: Iterable[int]) -> int:
    """Arithmetic mean rounded half up; 0 for no scores."""
    values = list(scores)
    if not values:
        return 0
    return int(math.floor(sum(values) / len(values) + 0.5))


class QualityControlLoop:
    """Runs every artifact through at most one repair.

    The artifact is scored once. A failing score with patches triggers one
    repair call and one re-score, never more. Scoring or repair failures
    are absorbed: the original artifact comes back with ``fallback_score``.
    """

    def __init__(
        self,
        client: CompletionClient,
        templates: TemplateService,
        fallback_score: int = DEFAULT_QC_FALLBACK_SCORE,
        repair_policy: RepairPolicy = "always_take_repair",
    ) -> None:
        self._client = client
        self._templates = templates
        self.fallback_score = fallback_score
        self.repair_policy = repair_policy

    async def review(
        self, artifact: Artifact, context: Optional[Mapping[str, Any]] = None
    ) -> QCOutcome:
        context = dict(context or {})
        try:
            report = await self._score(artifact, context)
            if report.ok or not report.patches:
                if report.score is None:
                    return QCOutcome(artifact=artifact, score=self.fallback_score, fallback=True)
                return QCOutcome(
                    artifact=artifact,
                    score=report.score,
                    initial_score=report.score,
                    dimensions=report.dimensions,
                )

            revised = await self._repair(artifact, report, context)
            rescored = await self._score(revised, context)
        except Exception as e:
            logger.warning(
                f"Quality check for {artifact.kind} failed, keeping original with score "
                f"{self.fallback_score}: {e}"
            )
            return QCOutcome(artifact=artifact, score=self.fallback_score, fallback=True)

        new_score = rescored.score if rescored.score is not None else self.fallback_score
        if report.score is not None and new_score < report.score:
            if self.repair_policy == "keep_better":
                logger.info(
                    f"Repaired {artifact.kind} scored {new_score} < {report.score}, keeping original"
                )
                return QCOutcome(
                    artifact=artifact,
                    score=report.score,
                    initial_score=report.score,
                    dimensions=report.dimensions,
                )
            logger.warning(
                f"Repaired {artifact.kind} scored lower than the original ({new_score} < {report.score})"
            )
        return QCOutcome(
            artifact=revised,
            score=new_score,
            initial_score=report.score,
            repaired=True,
            dimensions=rescored.dimensions,
        )

    async def review_many(
        self, artifacts: List[Artifact], context: Optional[Mapping[str, Any]] = None
    ) -> List[QCOutcome]:
        """Review the artifacts of one unit concurrently, preserving order."""
        return list(await asyncio.gather(*(self.review(a, context) for a in artifacts)))

    async def _score(self, artifact: Artifact, context: Dict[str, Any]) -> QCReport:
        instruction = await self._templates.render(PromptCategory.QUALITY_REVIEW, context)
        reply = await self._client.chat(
            instruction, {**context, "artifact": artifact.to_payload()}
        )
        return QCReport.from_response(reply)

    async def _repair(
        self, artifact: Artifact, report: QCReport, context: Dict[str, Any]
    ) -> Artifact:
        instruction = await self._templates.render(PromptCategory.QUALITY_FIX, context)
        payload = {
            "artifact": artifact.to_payload(),
            "patches": [patch.model_dump() for patch in report.patches],
        }
        if artifact.structured:
            content: Any = await self._client.chat(instruction, payload)
        else:
            content = await self._client.prose(instruction, payload)
        if not content:
            raise GenerationServiceFailure(f"Repair of {artifact.kind} returned nothing")
        return artifact.revise(content)
