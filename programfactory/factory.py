"""High level facade exposing one method per step action of a session."""

from __future__ import annotations

import logging
import math
from typing import Any, List, Mapping, Optional

from .config import FactoryConfig, load_config
from .constants import APPROVE
from .contracts import (
    ApproachOptions,
    BatchContent,
    ContentAnalysis,
    FrameworkOptions,
    LearningArc,
    ProgramBrief,
    ProgramMatrix,
    ResearchResults,
    Route,
    SampleContent,
    StepDataKey,
    UploadedFile,
    WorkflowStep,
)
from .errors import InvalidTransition
from .generation import (
    BatchRunner,
    ExportFormat,
    StepGenerator,
    UnitGenerator,
    export_batch,
    summarize,
)
from .llm import AgentCompletionClient, CompletionClient
from .persistence import Decision, FactoryRepository, JobRecord, WorkflowSession, get_repository
from .progress import ProgressBroadcaster, Subscription
from .quality import QualityControlLoop
from .templates import TemplateService
from .workflow import WorkflowManager

logger = logging.getLogger(__name__)

WORDS_PER_MINUTE = 200

S = WorkflowStep
K = StepDataKey


class ProgramFactory:
    """Wires the workflow, generators and batch runner together.

    Every action checks that the session sits at the step the action
    belongs to, stores what it produced as step data and takes the edge out
    of the step. Review actions record the decision and follow the gate.
    """

    def __init__(
        self,
        config: Optional[FactoryConfig] = None,
        repository: Optional[FactoryRepository] = None,
        client: Optional[CompletionClient] = None,
        broadcaster: Optional[ProgressBroadcaster] = None,
    ) -> None:
        self.config = config or load_config()
        if repository is None:
            repository = get_repository(self.config.database_url) if self.config.database_url else get_repository()
        self.repository = repository
        self.client = client or AgentCompletionClient.from_config(self.config.model)
        self.broadcaster = broadcaster or ProgressBroadcaster()
        self.manager = WorkflowManager(repository)
        self.templates = TemplateService(repository)
        self.quality = QualityControlLoop(
            self.client,
            self.templates,
            fallback_score=self.config.quality.fallback_score,
            repair_policy=self.config.quality.repair_policy,
        )
        self.steps = StepGenerator(self.client, self.templates, self.quality)
        self.units = UnitGenerator(self.client, self.templates, self.quality)
        self.batch = BatchRunner(
            self.manager,
            self.units,
            self.broadcaster,
            concurrency=self.config.batch.concurrency,
        )

    async def _at(self, session_id: str, *steps: WorkflowStep) -> WorkflowSession:
        session = await self.manager.get_session(session_id)
        if session.current_step not in steps:
            raise InvalidTransition(
                session_id,
                session.current_step.value,
                steps[0].value,
                f"action belongs to {', '.join(s.value for s in steps)}",
            )
        return session

    async def _brief(self, session_id: str) -> ProgramBrief:
        data = await self.manager.require_step_data(session_id, K.BRIEF)
        return data[K.BRIEF.value]

    async def _approach(self, session_id: str) -> str:
        """Describe the selected approach by name and description when known."""
        data = await self.manager.require_step_data(session_id, K.SELECTED_APPROACH)
        selected = data[K.SELECTED_APPROACH.value]
        options = await self.manager.get_typed_step_data(session_id, K.GENERATED_APPROACHES)
        for approach in options.approaches if options else []:
            if approach.id == selected:
                return f"{approach.name}: {approach.description}".strip()
        return selected

    # ------------------------------------------------------------------
    # Brief, framework and route
    async def start_session(self, client_name: str, industry: str) -> str:
        return await self.manager.create_session(client_name, industry)

    async def submit_brief(self, session_id: str, brief: ProgramBrief | Mapping[str, Any]) -> WorkflowSession:
        await self._at(session_id, S.BRIEF)
        await self.manager.save_step_data(session_id, K.BRIEF, brief)
        return await self.manager.advance(session_id)

    async def generate_frameworks(self, session_id: str, feedback: Optional[str] = None) -> FrameworkOptions:
        await self._at(session_id, S.FRAMEWORK_SELECTION)
        brief = await self._brief(session_id)
        content = await self.manager.get_step_data(session_id, K.EXTRACTED_CONTENT)
        options = await self.steps.generate_frameworks(brief, content=content, feedback=feedback)
        await self.manager.save_step_data(session_id, K.FRAMEWORK_OPTIONS, options)
        return options

    async def select_framework(
        self, session_id: str, framework_id: str, feedback: Optional[str] = None
    ) -> WorkflowSession:
        await self._at(session_id, S.FRAMEWORK_SELECTION)
        await self.manager.save_step_data(session_id, K.SELECTED_FRAMEWORK, framework_id)
        await self.manager.record_decision(session_id, S.FRAMEWORK_SELECTION, framework_id, feedback)
        return await self.manager.advance(session_id)

    async def choose_route(self, session_id: str, route: Route | str) -> WorkflowSession:
        """Commit the route and enter its first step."""
        route = Route(route)
        await self.manager.set_route(session_id, route)
        await self.manager.record_decision(session_id, S.ROUTE_SELECTION, route.value)
        return await self.manager.advance(session_id)

    # ------------------------------------------------------------------
    # Route A
    async def submit_content(self, session_id: str, documents: Mapping[str, str]) -> ContentAnalysis:
        """Store extracted document text (file name to text) and move to review."""
        await self._at(session_id, S.ROUTE_A_UPLOAD)
        if not documents:
            raise ValueError("At least one document is required")
        files = [
            UploadedFile(original_name=name, size=len(text.encode()), word_count=len(text.split()))
            for name, text in documents.items()
        ]
        combined = "\n\n".join(f"=== {name} ===\n{text}" for name, text in documents.items())
        total_words = sum(f.word_count for f in files)
        analysis = ContentAnalysis(
            total_words=total_words,
            estimated_reading_time=f"{math.ceil(total_words / WORDS_PER_MINUTE)} minutes",
            documents=len(files),
        )
        await self.manager.save_step_data(session_id, K.UPLOADED_FILES, files)
        await self.manager.save_step_data(session_id, K.EXTRACTED_CONTENT, combined)
        await self.manager.save_step_data(session_id, K.CONTENT_ANALYSIS, analysis)
        await self.manager.advance(session_id)
        return analysis

    async def review_content(
        self, session_id: str, decision: str = APPROVE, feedback: Optional[str] = None
    ) -> WorkflowSession:
        return await self.manager.apply_decision(session_id, S.CONTENT_REVIEW, decision, feedback)

    async def generate_approaches(self, session_id: str) -> ApproachOptions:
        """Approaches from uploaded content on route A, from research on route B."""
        session = await self._at(session_id, S.APPROACH_SELECTION_A, S.APPROACH_SELECTION_B)
        brief = await self._brief(session_id)
        if session.route == Route.A:
            data = await self.manager.require_step_data(session_id, K.EXTRACTED_CONTENT)
            options = await self.steps.generate_approaches(
                brief, content=data[K.EXTRACTED_CONTENT.value]
            )
        else:
            data = await self.manager.require_step_data(session_id, K.RESEARCH_RESULTS)
            options = await self.steps.generate_approaches(
                brief, research=data[K.RESEARCH_RESULTS.value]
            )
        await self.manager.save_step_data(session_id, K.GENERATED_APPROACHES, options)
        return options

    async def select_approach(
        self, session_id: str, approach_id: str, feedback: Optional[str] = None
    ) -> WorkflowSession:
        session = await self._at(session_id, S.APPROACH_SELECTION_A, S.APPROACH_SELECTION_B)
        await self.manager.save_step_data(session_id, K.SELECTED_APPROACH, approach_id)
        await self.manager.record_decision(session_id, session.current_step, approach_id, feedback)
        return await self.manager.advance(session_id)

    async def generate_arc(self, session_id: str, feedback: Optional[str] = None) -> LearningArc:
        await self._at(session_id, S.ARC_GENERATION)
        brief = await self._brief(session_id)
        data = await self.manager.require_step_data(session_id, K.EXTRACTED_CONTENT)
        approach = await self._approach(session_id)
        arc = await self.steps.generate_arc(
            brief, data[K.EXTRACTED_CONTENT.value], approach, feedback=feedback
        )
        await self.manager.save_step_data(session_id, K.LEARNING_ARC, arc)
        await self.manager.advance(session_id)
        return arc

    async def regenerate_arc(self, session_id: str, feedback: str) -> LearningArc:
        await self._at(session_id, S.ARC_REVIEW)
        brief = await self._brief(session_id)
        data = await self.manager.require_step_data(session_id, K.LEARNING_ARC)
        arc = await self.steps.regenerate_arc(brief, data[K.LEARNING_ARC.value], feedback)
        await self.manager.save_step_data(session_id, K.LEARNING_ARC, arc)
        return arc

    async def review_arc(
        self, session_id: str, decision: str = APPROVE, feedback: Optional[str] = None
    ) -> WorkflowSession:
        return await self.manager.apply_decision(session_id, S.ARC_REVIEW, decision, feedback)

    # ------------------------------------------------------------------
    # Route B
    async def conduct_research(self, session_id: str) -> ResearchResults:
        await self._at(session_id, S.ROUTE_B_RESEARCH)
        research = await self.steps.conduct_research(await self._brief(session_id))
        await self.manager.save_step_data(session_id, K.RESEARCH_RESULTS, research)
        await self.manager.advance(session_id)
        return research

    # ------------------------------------------------------------------
    # Matrix and sample
    async def generate_matrix(self, session_id: str) -> ProgramMatrix:
        session = await self._at(session_id, S.MATRIX_GENERATION)
        brief = await self._brief(session_id)
        approach = await self._approach(session_id)
        if session.route == Route.A:
            data = await self.manager.require_step_data(session_id, K.EXTRACTED_CONTENT)
            arc = await self.manager.get_typed_step_data(session_id, K.LEARNING_ARC)
            matrix = await self.steps.generate_matrix_from_content(
                brief, data[K.EXTRACTED_CONTENT.value], approach, arc=arc
            )
        else:
            data = await self.manager.require_step_data(session_id, K.RESEARCH_RESULTS)
            matrix = await self.steps.generate_matrix_from_research(
                brief, data[K.RESEARCH_RESULTS.value], approach
            )
        await self.manager.save_step_data(session_id, K.PROGRAM_MATRIX, matrix)
        await self.manager.advance(session_id)
        return matrix

    async def regenerate_matrix(self, session_id: str, feedback: str) -> ProgramMatrix:
        await self._at(session_id, S.MATRIX_REVIEW)
        brief = await self._brief(session_id)
        data = await self.manager.require_step_data(session_id, K.PROGRAM_MATRIX)
        matrix = await self.steps.regenerate_matrix(brief, data[K.PROGRAM_MATRIX.value], feedback)
        await self.manager.save_step_data(session_id, K.PROGRAM_MATRIX, matrix)
        return matrix

    async def review_matrix(
        self, session_id: str, decision: str = APPROVE, feedback: Optional[str] = None
    ) -> WorkflowSession:
        return await self.manager.apply_decision(session_id, S.MATRIX_REVIEW, decision, feedback)

    async def generate_sample(self, session_id: str, feedback: Optional[str] = None) -> SampleContent:
        await self._at(session_id, S.SAMPLE_GENERATION)
        brief = await self._brief(session_id)
        data = await self.manager.require_step_data(session_id, K.PROGRAM_MATRIX)
        arc = await self.manager.get_typed_step_data(session_id, K.LEARNING_ARC)
        sample = await self.steps.generate_sample(
            brief, data[K.PROGRAM_MATRIX.value], arc=arc, feedback=feedback
        )
        await self.manager.save_step_data(session_id, K.SAMPLE_CONTENT, sample)
        await self.manager.advance(session_id)
        return sample

    async def regenerate_sample(self, session_id: str, feedback: str) -> SampleContent:
        await self._at(session_id, S.SAMPLE_VALIDATION)
        brief = await self._brief(session_id)
        data = await self.manager.require_step_data(session_id, K.PROGRAM_MATRIX, K.SAMPLE_CONTENT)
        sample = await self.steps.regenerate_sample(
            brief, data[K.PROGRAM_MATRIX.value], data[K.SAMPLE_CONTENT.value], feedback
        )
        await self.manager.save_step_data(session_id, K.SAMPLE_CONTENT, sample)
        return sample

    async def validate_sample(
        self, session_id: str, decision: str = APPROVE, feedback: Optional[str] = None
    ) -> WorkflowSession:
        return await self.manager.apply_decision(session_id, S.SAMPLE_VALIDATION, decision, feedback)

    # ------------------------------------------------------------------
    # Batch
    async def start_batch(self, session_id: str) -> str:
        await self._at(session_id, S.BATCH_GENERATION)
        return await self.batch.start(session_id)

    async def wait_for_batch(self, job_id: str) -> JobRecord:
        return await self.batch.wait(job_id)

    def subscribe(self, job_id: str) -> Subscription:
        return self.broadcaster.subscribe(job_id)

    async def get_batch_content(self, session_id: str) -> BatchContent:
        data = await self.manager.require_step_data(session_id, K.ALL_CONTENT)
        return data[K.ALL_CONTENT.value]

    async def rerun_qc(self, session_id: str) -> BatchContent:
        """Send every generated unit through the quality loop again.

        Units are rechecked one after another; scores, unit averages and the
        batch summary are recomputed and ``allContent`` is replaced.
        """
        data = await self.manager.require_step_data(session_id, K.BRIEF, K.ALL_CONTENT)
        brief: ProgramBrief = data[K.BRIEF.value]
        batch: BatchContent = data[K.ALL_CONTENT.value]
        matrix = await self.manager.get_typed_step_data(session_id, K.PROGRAM_MATRIX)
        planned = {u.session_number: u for u in matrix.units()} if matrix else {}

        logger.info(f"Session {session_id}: re-running QC for {len(batch.units)} units")
        units = [
            await self.units.recheck(brief, unit, planned.get(unit.session_number))
            for unit in batch.units
        ]
        batch = batch.model_copy(update={"units": units, "summary": summarize(units)})
        await self.manager.save_step_data(session_id, K.ALL_CONTENT, batch)
        return batch

    async def export_batch(self, session_id: str, fmt: ExportFormat | str = ExportFormat.JSON) -> str:
        return export_batch(await self.get_batch_content(session_id), fmt)

    async def decisions(self, session_id: str) -> List[Decision]:
        return await self.manager.get_decisions(session_id)
