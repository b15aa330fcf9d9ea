"""
Project Service
User-facing actions: create projects, add sources, attach transcripts and
queue profile builds and generation runs. Every action that starts work
does so by enqueueing a job.
"""
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse
from uuid import UUID

from citecast.config import settings
from citecast.core.errors import (
    InvalidInputError, NotFoundError, PreconditionFailedError, RateLimitExceededError,
)
from citecast.core.jobs.queue import JobQueue
from citecast.core.logging import get_logger
from citecast.rag.scorer import score_chunks
from citecast.schema import (
    Chunk, ContextProfile, GenerationRun, HashtagDensity, Job, JobType, Project,
    RunStatus, Source, SourceStatus, SourceType, Strictness, TonePreset,
)
from citecast.services.rate_limit import RateLimiter
from citecast.services.repository import PipelineRepository

logger = get_logger(__name__)

ALLOWED_MIME_TYPES = {
    "application/pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/msword",
    "text/plain",
    "text/markdown",
    "audio/mpeg",
    "audio/wav",
    "audio/mp3",
    "video/mp4",
    "video/webm",
}

# Rate limit cost per action, in bucket tokens
PROFILE_COST = 10
GENERATION_COST = 20

READY_FOR_PROFILE = {SourceStatus.CHUNKED, SourceStatus.PROFILING, SourceStatus.PROFILED}


class ProjectService:
    def __init__(self, repository: PipelineRepository, queue: JobQueue, rate_limiter: RateLimiter):
        self.repository = repository
        self.queue = queue
        self.rate_limiter = rate_limiter

    # ============================================
    # PROJECTS
    # ============================================

    def create_project(self, name: str, owner_id: str, description: Optional[str] = None) -> Project:
        name = (name or "").strip()
        if not name:
            raise InvalidInputError("Project name is required")
        project = self.repository.create_project(name=name, owner_id=owner_id, description=description)
        logger.info("project_created", project_id=str(project.id), owner_id=owner_id)
        return project

    def get_project(self, project_id: UUID) -> Project:
        project = self.repository.get_project(project_id)
        if project is None:
            raise NotFoundError("Project not found")
        return project

    def get_project_overview(self, project_id: UUID) -> Dict[str, Any]:
        project = self.get_project(project_id)
        return {
            "project": project,
            "sources": self.repository.list_sources(project_id),
            "profile": self.repository.get_profile(project_id),
            "runs": self.repository.list_runs(project_id),
            "jobs": self.repository.list_jobs(project_id),
        }

    # ============================================
    # SOURCES
    # ============================================

    def add_file_source(self, project_id: UUID, filename: str, mime_type: str, data: bytes) -> Source:
        self.get_project(project_id)
        if not data:
            raise InvalidInputError("No file provided")
        if mime_type not in ALLOWED_MIME_TYPES:
            raise InvalidInputError(f"Unsupported file type: {mime_type}")
        if len(data) > settings.max_upload_bytes:
            limit_mb = settings.max_upload_bytes // (1024 * 1024)
            raise InvalidInputError(f"File size must be under {limit_mb}MB")

        source = self.repository.create_source(
            project_id=project_id,
            type=SourceType.FILE,
            mime_type=mime_type,
            original_name=filename,
            file_bytes=data,
            status=SourceStatus.UPLOADED,
        )
        self.queue.enqueue(project_id, JobType.EXTRACT_TEXT, source_id=source.id)
        logger.info("file_source_added", source_id=str(source.id), mime_type=mime_type, size=len(data))
        return source

    def add_url_source(self, project_id: UUID, url: str) -> Source:
        self.get_project(project_id)
        parsed = urlparse((url or "").strip())
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise InvalidInputError("Invalid URL")

        source = self.repository.create_source(
            project_id=project_id,
            type=SourceType.URL,
            url=parsed.geturl(),
            original_name=parsed.hostname,
            status=SourceStatus.UPLOADED,
        )
        self.queue.enqueue(project_id, JobType.EXTRACT_TEXT, source_id=source.id)
        logger.info("url_source_added", source_id=str(source.id), host=parsed.hostname)
        return source

    def attach_transcript(self, source_id: UUID, transcript: str) -> Source:
        """Manual transcript for media that could not be transcribed automatically."""
        source = self.repository.get_source(source_id)
        if source is None:
            raise NotFoundError("Source not found")
        if not (transcript or "").strip():
            raise InvalidInputError("Transcript text is required")
        if source.status in (SourceStatus.EXTRACTING, SourceStatus.CHUNKING, SourceStatus.PROFILING):
            raise PreconditionFailedError(f"Source is busy ({source.status.value}); try again shortly")

        # The transcript replaces any earlier extraction, so it is what gets chunked
        source = self.repository.update_source(
            source_id,
            extracted_text=None,
            transcript_text=transcript.strip(),
            status=SourceStatus.EXTRACTED,
            error_message=None,
        )
        self.queue.enqueue(source.project_id, JobType.CHUNK_TEXT, source_id=source.id)
        logger.info("transcript_attached", source_id=str(source_id), length=len(transcript))
        return source

    # ============================================
    # PROFILE & GENERATION
    # ============================================

    def _check_rate_limit(self, project: Project, cost: int) -> None:
        result = self.rate_limiter.consume(project.owner_id, cost)
        if not result.allowed:
            minutes = result.minutes_until_reset()
            raise RateLimitExceededError(
                f"Rate limit exceeded. Try again in {minutes} minutes.",
                retry_after_minutes=minutes,
            )

    def build_context_profile(self, project_id: UUID) -> Job:
        project = self.get_project(project_id)
        if not self.repository.list_sources(project_id, READY_FOR_PROFILE):
            raise PreconditionFailedError(
                "No processed sources available. Please upload and wait for sources to be processed."
            )
        self._check_rate_limit(project, PROFILE_COST)
        return self.queue.enqueue(project_id, JobType.BUILD_PROFILE)

    def start_generation_run(
        self,
        project_id: UUID,
        tone_preset: TonePreset = TonePreset.PROFESSIONAL,
        strictness: Strictness = Strictness.MODERATE,
        hashtag_density: HashtagDensity = HashtagDensity.MEDIUM,
    ) -> GenerationRun:
        project = self.get_project(project_id)
        if self.repository.get_profile(project_id) is None:
            raise PreconditionFailedError(
                "Context profile not found. Please build the context profile first."
            )
        self._check_rate_limit(project, GENERATION_COST)

        run = self.repository.create_run(
            project_id=project_id,
            tone_preset=tone_preset,
            strictness=strictness,
            hashtag_density=hashtag_density,
            status=RunStatus.PENDING,
        )
        self.queue.enqueue(project_id, JobType.GENERATE_POSTS, run_id=run.id)
        logger.info("generation_run_started", run_id=str(run.id), project_id=str(project_id))
        return run

    def get_run(self, run_id: UUID) -> Dict[str, Any]:
        run = self.repository.get_run(run_id)
        if run is None:
            raise NotFoundError("Generation run not found")
        return {"run": run, "posts": self.repository.list_posts(run_id)}

    def get_profile(self, project_id: UUID) -> Optional[ContextProfile]:
        self.get_project(project_id)
        return self.repository.get_profile(project_id)

    # ============================================
    # JOBS & SEARCH
    # ============================================

    def get_job(self, job_id: UUID) -> Dict[str, Any]:
        job = self.repository.get_job(job_id)
        if job is None:
            raise NotFoundError("Job not found")
        return {"job": job, "logs": self.repository.list_logs(job_id)}

    def search_chunks(self, project_id: UUID, query: str, limit: int = 10) -> List[Dict[str, Any]]:
        """Rank every chunk of the project against query; chunks matching no term are left out."""
        self.get_project(project_id)
        chunks: List[Chunk] = self.repository.list_project_chunks(project_id)
        by_id = {chunk.id: chunk for chunk in chunks}

        ranked = [item for item in score_chunks(chunks, query) if item.score > 0][:limit]
        return [{"chunk": by_id[item.chunk_id], "score": item.score} for item in ranked]
