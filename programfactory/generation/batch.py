"""Background batch job generating every unit of a session's program."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Dict, List, Optional

from ..constants import DEFAULT_BATCH_CONCURRENCY
from ..contracts import (
    BatchContent,
    BatchSummary,
    LearningArc,
    ProgramBrief,
    ProgramMatrix,
    SampleContent,
    SessionStatus,
    StepDataKey,
    UnitContent,
    utcnow,
)
from ..persistence import JobRecord
from ..progress import ProgressBroadcaster
from ..quality import mean_score
from ..workflow import WorkflowManager
from .units import UnitGenerator

logger = logging.getLogger(__name__)


def summarize(units: List[UnitContent]) -> BatchSummary:
    completed = [u for u in units if not u.failed]
    return BatchSummary(
        total_units=len(units),
        completed_units=len(completed),
        failed_units=len(units) - len(completed),
        average_qc_score=mean_score(u.qc_score for u in units),
    )


class BatchRunner:
    """Schedules batch jobs as tasks keyed by job id.

    :meth:`start` validates the session's prerequisites and returns the job
    id immediately; the pipeline runs as an :class:`asyncio.Task`. The job id
    correlates progress events with the persisted :class:`JobRecord`.
    """

    def __init__(
        self,
        manager: WorkflowManager,
        units: UnitGenerator,
        broadcaster: ProgressBroadcaster,
        concurrency: int = DEFAULT_BATCH_CONCURRENCY,
    ) -> None:
        self._manager = manager
        self._units = units
        self._broadcaster = broadcaster
        self._concurrency = max(1, concurrency)
        self._tasks: Dict[str, asyncio.Task] = {}

    async def start(self, session_id: str) -> str:
        await self._manager.get_session(session_id)
        data = await self._manager.require_step_data(
            session_id,
            StepDataKey.BRIEF,
            StepDataKey.PROGRAM_MATRIX,
            StepDataKey.SAMPLE_CONTENT,
        )
        arc = await self._manager.get_typed_step_data(session_id, StepDataKey.LEARNING_ARC)

        job_id = str(uuid.uuid4())
        await self._manager.repository.save_job(JobRecord(job_id=job_id, session_id=session_id))
        task = asyncio.create_task(
            self._run(
                job_id,
                session_id,
                data[StepDataKey.BRIEF.value],
                data[StepDataKey.PROGRAM_MATRIX.value],
                data[StepDataKey.SAMPLE_CONTENT.value],
                arc,
            ),
            name=f"batch-{job_id}",
        )
        self._tasks[job_id] = task
        task.add_done_callback(lambda t: self._forget(job_id, t))
        logger.info(f"Started batch job {job_id} for session {session_id}")
        return job_id

    def _forget(self, job_id: str, task: asyncio.Task) -> None:
        self._tasks.pop(job_id, None)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Batch job {job_id} crashed: {task.exception()}")

    def is_running(self, job_id: str) -> bool:
        task = self._tasks.get(job_id)
        return task is not None and not task.done()

    async def wait(self, job_id: str) -> JobRecord:
        """Wait for ``job_id`` to finish and return its record.

        Finished jobs are answered from the stored :class:`JobRecord`.
        """
        task = self._tasks.get(job_id)
        if task is not None:
            await task
        job = await self._manager.repository.get_job(job_id)
        if job is None:
            raise LookupError(f"Unknown batch job: {job_id}")
        return job

    async def run(self, session_id: str) -> JobRecord:
        return await self.wait(await self.start(session_id))

    async def _run(
        self,
        job_id: str,
        session_id: str,
        brief: ProgramBrief,
        matrix: ProgramMatrix,
        sample: SampleContent,
        arc: Optional[LearningArc],
    ) -> Optional[BatchContent]:
        repository = self._manager.repository
        job = await repository.get_job(job_id) or JobRecord(job_id=job_id, session_id=session_id)
        try:
            batch = await self._generate(job_id, brief, matrix, sample, arc)
            await self._manager.save_step_data(session_id, StepDataKey.ALL_CONTENT, batch)
            session = await self._manager.get_session(session_id)
            if session.status != SessionStatus.COMPLETED:
                await self._manager.complete_session(session_id)
        except Exception as e:
            logger.error(f"Batch job {job_id} failed: {e}")
            self._broadcaster.error(job_id, str(e))
            job.status = "failed"
            job.error = str(e)
            job.finished_at = utcnow()
            await repository.save_job(job)
            return None

        summary = batch.summary
        logger.info(
            f"Batch job {job_id} finished: {summary.completed_units}/{summary.total_units} "
            f"units completed, {summary.failed_units} failed"
        )
        job.status = "completed"
        job.result = batch.model_dump(mode="json")
        job.finished_at = utcnow()
        try:
            await repository.save_job(job)
        finally:
            self._broadcaster.complete(
                job_id,
                data=summary.model_dump(),
                message=f"Generated {summary.completed_units} of {summary.total_units} units",
            )
        return batch

    async def _generate(
        self,
        job_id: str,
        brief: ProgramBrief,
        matrix: ProgramMatrix,
        sample: SampleContent,
        arc: Optional[LearningArc],
    ) -> BatchContent:
        semaphore = asyncio.Semaphore(self._concurrency)
        work = [
            (chapter, unit) for chapter in matrix.chapters for unit in chapter.sessions
        ]
        results: List[Optional[UnitContent]] = [None] * len(work)

        async def generate_unit(index: int) -> None:
            chapter, unit = work[index]
            step = f"session-{unit.session_number}"
            async with semaphore:
                self._broadcaster.step_started(
                    job_id, step, f"Generating session {unit.session_number}: {unit.title}"
                )
                try:
                    content = await self._units.generate(
                        brief, unit, index, sample, arc=arc, chapter=chapter
                    )
                except Exception as e:
                    logger.warning(f"Unit {unit.session_number} failed: {e}")
                    content = UnitContent(
                        id=step,
                        session_number=unit.session_number,
                        title=unit.title,
                        error=str(e),
                    )
                    self._broadcaster.error(job_id, str(e), step=step)
                results[index] = content
                self._broadcaster.step_completed(
                    job_id,
                    step,
                    data={
                        "session_number": content.session_number,
                        "title": content.title,
                        "qc_score": content.qc_score,
                        "error": content.error,
                    },
                )

        await asyncio.gather(*(generate_unit(i) for i in range(len(work))))
        units = [u for u in results if u is not None]
        return BatchContent(
            program_title=matrix.program_title,
            client_name=brief.client_name,
            industry=brief.industry,
            target_audience=matrix.target_audience or brief.audience,
            units=units,
            summary=summarize(units),
        )
