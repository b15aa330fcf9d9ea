"""
Worker Loop
Claims due jobs one at a time, runs the matching stage handler and records
the outcome. The retry policy in JobQueue.fail is the only recovery path.
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID

from citecast.config import settings
from citecast.core.jobs.queue import JobQueue, make_worker_id
from citecast.core.jobs.stages import PipelineStages
from citecast.core.logging import get_logger, job_context
from citecast.schema import Job, JobLogLevel
from citecast.services.repository import PipelineRepository

logger = get_logger(__name__)


@dataclass
class SweepResult:
    processed: int = 0
    errors: int = 0


class JobLogger:
    """
    Job-scoped logger. Every call writes a JobLog row and a structlog event
    (tagged with the ids bound by job_context).
    """

    def __init__(self, repository: PipelineRepository, job: Job):
        self.repository = repository
        self.job_id = job.id
        self.log = logger

    def _write(self, level: JobLogLevel, message: str, meta: dict) -> None:
        self.repository.append_log(self.job_id, level, message, meta)

    def info(self, message: str, **meta: Any) -> None:
        self.log.info("job_log", detail=message, **meta)
        self._write(JobLogLevel.INFO, message, meta)

    def warn(self, message: str, **meta: Any) -> None:
        self.log.warning("job_log", detail=message, **meta)
        self._write(JobLogLevel.WARN, message, meta)

    def error(self, message: str, **meta: Any) -> None:
        self.log.error("job_log", detail=message, **meta)
        self._write(JobLogLevel.ERROR, message, meta)


class Worker:
    def __init__(
        self,
        repository: PipelineRepository,
        queue: JobQueue,
        stages: PipelineStages,
        worker_id: Optional[str] = None,
        batch_size: Optional[int] = None,
    ):
        self.repository = repository
        self.queue = queue
        self.stages = stages
        self.worker_id = worker_id or make_worker_id()
        self.batch_size = batch_size or settings.sweep_batch_size
        self.log = logger.bind(worker_id=self.worker_id)

    async def execute_job(self, job_id: UUID) -> bool:
        """
        Run one claimed job to completion or to a retry decision.

        Returns True when the stage succeeded.
        """
        job = self.repository.get_job(job_id)
        if job is None:
            self.log.warning("claimed_job_missing", job_id=str(job_id))
            return False

        with job_context(job_id=str(job.id), job_type=job.type.value, worker_id=self.worker_id):
            return await self._execute(job)

    async def _execute(self, job: Job) -> bool:
        job_log = JobLogger(self.repository, job)
        try:
            await self.stages.dispatch(job, job_log)
        except Exception as e:
            error = str(e) or e.__class__.__name__
            job_log.error("Job failed", error=error, errorType=e.__class__.__name__, attempt=job.attempts + 1)

            decision = self.queue.fail(job.id, self.worker_id, error)
            if decision.lease_lost:
                # The new lease holder owns the job and its source or run now
                job_log.warn("Lease lost, failure not recorded", attempts=decision.attempts)
            elif decision.exhausted:
                job_log.error("Job permanently failed", attempts=decision.attempts)
                self.stages.mark_dependents_failed(job, decision.error_message)
            else:
                job_log.warn(
                    "Job scheduled for retry",
                    attempts=decision.attempts,
                    nextRunAt=decision.next_run_at.isoformat(),
                )
            return False

        if not self.queue.complete(job.id, self.worker_id):
            job_log.warn("Lease lost, completion not recorded")
            return True
        job_log.info("Job completed successfully")
        return True

    async def run_sweep(self, batch_size: Optional[int] = None) -> SweepResult:
        """Claim and execute up to batch_size due jobs."""
        limit = batch_size or self.batch_size
        result = SweepResult()

        for _ in range(limit):
            job_id = self.queue.claim(self.worker_id)
            if job_id is None:
                break

            try:
                succeeded = await self.execute_job(job_id)
            except Exception as e:
                # Bookkeeping itself failed; the lease expires and the job is retried
                self.log.error("job_execution_crashed", job_id=str(job_id), error=str(e), exc_info=True)
                succeeded = False

            result.processed += 1
            if not succeeded:
                result.errors += 1

        self.log.info("sweep_finished", processed=result.processed, errors=result.errors)
        return result

    async def run_forever(self, interval: float, stop: Optional[asyncio.Event] = None) -> None:
        """Periodic sweep until stop is set."""
        stop = stop or asyncio.Event()
        self.log.info("worker_started", interval=interval, batch_size=self.batch_size)
        while not stop.is_set():
            try:
                await self.run_sweep()
            except Exception as e:
                self.log.error("sweep_failed", error=str(e), exc_info=True)
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue
        self.log.info("worker_stopped")
