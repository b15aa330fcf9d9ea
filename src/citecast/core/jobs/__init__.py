"""
Durable job pipeline: lease-based queue, stage handlers, worker loop and
the immediate-sweep trigger.
"""

from .queue import JobQueue, RetryDecision, make_worker_id, retry_delay
from .stages import PipelineStages
from .trigger import SweepKicker
from .worker import JobLogger, SweepResult, Worker

__all__ = [
    "JobQueue",
    "RetryDecision",
    "make_worker_id",
    "retry_delay",
    "PipelineStages",
    "SweepKicker",
    "JobLogger",
    "SweepResult",
    "Worker",
]
