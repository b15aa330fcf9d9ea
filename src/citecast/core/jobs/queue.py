"""
Job Queue
Enqueue, lease, release and the retry policy. All state lives in the jobs
table; this module only decides what the next state is.
"""
import os
import secrets
import socket
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional
from uuid import UUID

from citecast.config import settings
from citecast.core.logging import get_logger
from citecast.schema import Job, JobStatus, JobType, utc_now
from citecast.services.repository import PipelineRepository

logger = get_logger(__name__)

EXHAUSTED_PREFIX = "Max attempts exceeded. Last error: "


def make_worker_id() -> str:
    """hostname-pid-random, unique per worker instance."""
    return f"{socket.gethostname()}-{os.getpid()}-{secrets.token_hex(4)}"


def retry_delay(attempts: int) -> timedelta:
    """Backoff after the n-th failed attempt: 2^n minutes."""
    return timedelta(minutes=2 ** attempts)


@dataclass
class RetryDecision:
    exhausted: bool
    attempts: int
    error_message: str
    next_run_at: Optional[datetime] = None
    # Another worker took the lease over; nothing was recorded
    lease_lost: bool = False


class JobQueue:
    def __init__(
        self,
        repository: PipelineRepository,
        lock_timeout: Optional[timedelta] = None,
        max_attempts: Optional[int] = None,
        on_enqueue: Optional[Callable[[], object]] = None,
    ):
        self.repository = repository
        self.lock_timeout = lock_timeout or timedelta(seconds=settings.job_lock_timeout_seconds)
        self.max_attempts = max_attempts or settings.job_max_attempts
        # Immediate-sweep hook, normally SweepKicker.kick
        self.on_enqueue = on_enqueue

    def enqueue(
        self,
        project_id: UUID,
        job_type: JobType,
        source_id: Optional[UUID] = None,
        run_id: Optional[UUID] = None,
        kick: bool = True,
    ) -> Job:
        job = self.repository.create_job(
            project_id=project_id,
            job_type=job_type,
            max_attempts=self.max_attempts,
            source_id=source_id,
            run_id=run_id,
        )
        logger.info(
            "job_enqueued",
            job_id=str(job.id),
            job_type=job_type.value,
            project_id=str(project_id),
            source_id=str(source_id) if source_id else None,
            run_id=str(run_id) if run_id else None,
        )
        if kick and self.on_enqueue is not None:
            self.on_enqueue()
        return job

    def claim(self, worker_id: str) -> Optional[UUID]:
        job_id = self.repository.claim_next_job(worker_id, self.lock_timeout)
        if job_id is not None:
            logger.info("job_claimed", job_id=str(job_id), worker_id=worker_id)
        return job_id

    def complete(self, job_id: UUID, worker_id: str) -> bool:
        return self.repository.release_job(job_id, worker_id, JobStatus.COMPLETED)

    def fail(self, job_id: UUID, worker_id: str, error: str) -> RetryDecision:
        """
        Record a failed attempt.

        attempts + 1 reaching max_attempts fails the job for good; anything
        less puts it back to pending after retry_delay(attempts).
        """
        job = self.repository.get_job(job_id)
        if job is None:
            raise LookupError(f"Job {job_id} not found")

        if job.status == JobStatus.FAILED:
            return RetryDecision(
                exhausted=True, attempts=job.attempts, error_message=job.error_message or error, lease_lost=True
            )

        attempts = job.attempts + 1
        if attempts >= job.max_attempts:
            message = f"{EXHAUSTED_PREFIX}{error}"
            released = self.repository.release_job(
                job_id, worker_id, JobStatus.FAILED, attempts=attempts, error_message=message
            )
            if not released:
                return RetryDecision(exhausted=False, attempts=job.attempts, error_message=error, lease_lost=True)
            logger.error("job_exhausted", job_id=str(job_id), attempts=attempts, error=error)
            return RetryDecision(exhausted=True, attempts=attempts, error_message=message)

        next_run_at = utc_now() + retry_delay(attempts)
        released = self.repository.release_job(
            job_id,
            worker_id,
            JobStatus.PENDING,
            attempts=attempts,
            next_run_at=next_run_at,
            error_message=error,
        )
        if not released:
            return RetryDecision(exhausted=False, attempts=job.attempts, error_message=error, lease_lost=True)
        logger.warning(
            "job_retry_scheduled",
            job_id=str(job_id),
            attempts=attempts,
            max_attempts=job.max_attempts,
            next_run_at=next_run_at.isoformat(),
        )
        return RetryDecision(exhausted=False, attempts=attempts, error_message=error, next_run_at=next_run_at)
