"""
Wiring for the pipeline objects shared by the API and the CLI.
"""
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine

from citecast.agents.copywriter import CopywriterAgent
from citecast.agents.profiler import ContextProfiler
from citecast.core.jobs import JobQueue, PipelineStages, SweepKicker, Worker
from citecast.extraction import SourceExtractor
from citecast.services.projects import ProjectService
from citecast.services.rate_limit import RateLimiter
from citecast.services.repository import PipelineRepository


@dataclass
class Runtime:
    repository: PipelineRepository
    queue: JobQueue
    stages: PipelineStages
    worker: Worker
    kicker: SweepKicker
    projects: ProjectService


def build_runtime(
    engine: Engine,
    worker_id: Optional[str] = None,
    extractor: Optional[SourceExtractor] = None,
    profiler: Optional[ContextProfiler] = None,
    copywriter: Optional[CopywriterAgent] = None,
    immediate_sweeps: bool = True,
) -> Runtime:
    repository = PipelineRepository(engine)
    queue = JobQueue(repository)
    stages = PipelineStages(repository, queue, extractor=extractor, profiler=profiler, copywriter=copywriter)
    worker = Worker(repository, queue, stages, worker_id=worker_id)
    kicker = SweepKicker(worker.run_sweep)
    if immediate_sweeps:
        queue.on_enqueue = kicker.kick

    projects = ProjectService(repository, queue, RateLimiter(engine))
    return Runtime(
        repository=repository,
        queue=queue,
        stages=stages,
        worker=worker,
        kicker=kicker,
        projects=projects,
    )
