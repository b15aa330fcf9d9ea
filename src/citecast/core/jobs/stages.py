"""
Pipeline Stage Handlers

extract_text -> chunk_text -> build_profile -> generate_posts

Each handler validates that its input is in an accepted predecessor state,
does its work, and writes results with delete-then-recreate or upsert
semantics so a second execution after a lost lease is harmless.
"""
from typing import Any, Awaitable, Callable, Dict, Optional

from citecast.agents.copywriter import CopywriterAgent
from citecast.agents.profiler import ContextProfiler
from citecast.config import settings
from citecast.core.errors import ExtractionError, StageInputError, UnknownJobTypeError
from citecast.core.jobs.queue import JobQueue
from citecast.core.logging import get_logger
from citecast.extraction import SourceExtractor
from citecast.preprocessing.chunker import chunk_text
from citecast.schema import Job, JobType, RunStatus, SourceStatus
from citecast.schema.outputs import flatten_posts
from citecast.services.repository import PipelineRepository

logger = get_logger(__name__)

EXTRACTABLE = {SourceStatus.UPLOADED, SourceStatus.EXTRACTING, SourceStatus.FAILED}
CHUNKABLE = {SourceStatus.EXTRACTED, SourceStatus.CHUNKING, SourceStatus.CHUNKED}
# Profiled sources are included so a rebuild covers the whole project
PROFILABLE = {SourceStatus.CHUNKED, SourceStatus.PROFILING, SourceStatus.PROFILED}


class PipelineStages:
    def __init__(
        self,
        repository: PipelineRepository,
        queue: JobQueue,
        extractor: Optional[SourceExtractor] = None,
        profiler: Optional[ContextProfiler] = None,
        copywriter: Optional[CopywriterAgent] = None,
        max_chunk_size: Optional[int] = None,
        overlap_size: Optional[int] = None,
    ):
        self.repository = repository
        self.queue = queue
        self.extractor = extractor or SourceExtractor()
        self._profiler = profiler
        self._copywriter = copywriter
        self.max_chunk_size = max_chunk_size or settings.chunk_max_size
        self.overlap_size = settings.chunk_overlap_size if overlap_size is None else overlap_size

        self.handlers: Dict[JobType, Callable[[Job, Any], Awaitable[None]]] = {
            JobType.EXTRACT_TEXT: self.extract_text,
            JobType.CHUNK_TEXT: self.chunk_text,
            JobType.BUILD_PROFILE: self.build_profile,
            JobType.GENERATE_POSTS: self.generate_posts,
        }

    # Agents need an API key, so they are only built once a stage needs them
    @property
    def profiler(self) -> ContextProfiler:
        if self._profiler is None:
            self._profiler = ContextProfiler()
        return self._profiler

    @property
    def copywriter(self) -> CopywriterAgent:
        if self._copywriter is None:
            self._copywriter = CopywriterAgent()
        return self._copywriter

    async def dispatch(self, job: Job, job_log) -> None:
        handler = self.handlers.get(job.type)
        if handler is None:
            raise UnknownJobTypeError("Unknown job type")
        await handler(job, job_log)

    # ============================================
    # 1. EXTRACT TEXT
    # ============================================

    async def extract_text(self, job: Job, job_log) -> None:
        if job.source_id is None:
            raise StageInputError("Source ID required for extract_text")
        source = self.repository.get_source(job.source_id)
        if source is None:
            raise StageInputError(f"Source {job.source_id} not found")

        if source.status not in EXTRACTABLE:
            job_log.warn("Source already extracted, skipping", status=source.status.value)
            # An earlier attempt may have stored the text and died before queueing chunking
            if source.status == SourceStatus.EXTRACTED and not self.repository.has_open_job(
                JobType.CHUNK_TEXT, source.id
            ):
                job_log.info("Re-queueing text chunking")
                self.queue.enqueue(job.project_id, JobType.CHUNK_TEXT, source_id=source.id, kick=False)
            return

        job_log.info("Starting text extraction", sourceType=source.type.value, mimeType=source.mime_type)
        self.repository.update_source(source.id, status=SourceStatus.EXTRACTING, error_message=None)

        result = await self.extractor.extract(source)
        if not result.success:
            error = result.error or "Extraction failed"
            self.repository.update_source(source.id, status=SourceStatus.FAILED, error_message=error)
            raise ExtractionError(error)

        self.repository.update_source(
            source.id,
            extracted_text=result.text,
            transcript_text=result.transcript or source.transcript_text,
            status=SourceStatus.EXTRACTED,
            error_message=None,
        )
        job_log.info("Text extraction completed", textLength=len(result.text or result.transcript or ""))

        # The running sweep picks this up, no extra kick needed
        self.queue.enqueue(job.project_id, JobType.CHUNK_TEXT, source_id=source.id, kick=False)

    # ============================================
    # 2. CHUNK TEXT
    # ============================================

    async def chunk_text(self, job: Job, job_log) -> None:
        if job.source_id is None:
            raise StageInputError("Source ID required for chunk_text")
        source = self.repository.get_source(job.source_id)
        if source is None:
            raise StageInputError(f"Source {job.source_id} not found")

        if source.status not in CHUNKABLE:
            raise StageInputError(
                f"Source {source.id} is {source.status.value}; chunking needs extracted text"
            )

        text = source.text
        if not text or not text.strip():
            job_log.warn("No text to chunk")
            raise StageInputError("No text to chunk")

        job_log.info("Starting text chunking", textLength=len(text))
        self.repository.update_source(source.id, status=SourceStatus.CHUNKING)

        results = chunk_text(text, max_chunk_size=self.max_chunk_size, overlap_size=self.overlap_size)
        self.repository.replace_chunks(source.id, results)

        self.repository.update_source(source.id, status=SourceStatus.CHUNKED, error_message=None)
        job_log.info("Text chunking completed", chunkCount=len(results))

    # ============================================
    # 3. BUILD PROFILE
    # ============================================

    async def build_profile(self, job: Job, job_log) -> None:
        job_log.info("Starting context profile generation")

        chunks = self.repository.list_project_chunks(job.project_id, PROFILABLE)
        if not chunks:
            job_log.warn("No chunks available for profile generation")
            raise StageInputError("No chunks available for profile generation")

        source_ids = list(dict.fromkeys(chunk.source_id for chunk in chunks))
        # Already profiled sources keep serving generation until the new profile is stored
        gathered = set(source_ids)
        fresh = [s.id for s in self.repository.list_sources(job.project_id, {SourceStatus.CHUNKED}) if s.id in gathered]
        self.repository.set_sources_status(fresh, SourceStatus.PROFILING)
        job_log.info("Processing chunks", chunkCount=len(chunks), sourceCount=len(source_ids))

        profile = await self.profiler.run(chunks)

        self.repository.upsert_profile(
            job.project_id,
            audience=profile.audience,
            tone=profile.tone,
            themes=list(profile.themes),
            key_claims=[claim.model_dump(by_alias=True) for claim in profile.key_claims],
        )
        self.repository.set_sources_status(source_ids, SourceStatus.PROFILED)
        job_log.info("Context profile generated", themes=len(profile.themes), claims=len(profile.key_claims))

    # ============================================
    # 4. GENERATE POSTS
    # ============================================

    async def generate_posts(self, job: Job, job_log) -> None:
        if job.run_id is None:
            raise StageInputError("Run ID required for generate_posts")

        job_log.info("Starting content generation")
        run = self.repository.get_run(job.run_id)
        if run is None:
            job_log.error("Generation run not found")
            raise StageInputError("Generation run not found")

        profile = self.repository.get_profile(run.project_id)
        if profile is None:
            job_log.error("Context profile not found. Please process sources first.")
            raise StageInputError("Context profile not found. Please process sources first.")

        self.repository.set_run_status(run.id, RunStatus.PROCESSING)

        chunks = self.repository.list_project_chunks(run.project_id, {SourceStatus.PROFILED})
        if not chunks:
            job_log.error("No chunks available for content generation")
            raise StageInputError("No chunks available for content generation")

        output = await self.copywriter.run(
            {
                "audience": profile.audience,
                "tone": profile.tone,
                "themes": profile.themes,
                "key_claims": profile.key_claims,
            },
            chunks,
            run,
        )

        self.repository.replace_posts(run.id, flatten_posts(output))
        self.repository.set_run_status(run.id, RunStatus.COMPLETED)
        job_log.info(
            "Content generation completed",
            instagramCount=len(output.instagram.carousels) + len(output.instagram.singles),
            twitterCount=len(output.twitter),
            linkedinCount=len(output.linkedin),
        )

    # ============================================
    # EXHAUSTION
    # ============================================

    def mark_dependents_failed(self, job: Job, error_message: str) -> None:
        """
        A job out of attempts takes its source or run down with it. A profile
        build hands the sources it was profiling back to chunked.
        """
        if job.type in (JobType.EXTRACT_TEXT, JobType.CHUNK_TEXT) and job.source_id:
            if self.repository.get_source(job.source_id) is not None:
                self.repository.update_source(
                    job.source_id, status=SourceStatus.FAILED, error_message=error_message
                )
                logger.info("source_marked_failed", source_id=str(job.source_id), job_id=str(job.id))
        elif job.type == JobType.GENERATE_POSTS and job.run_id:
            if self.repository.get_run(job.run_id) is not None:
                self.repository.set_run_status(job.run_id, RunStatus.FAILED, error_message)
                logger.info("run_marked_failed", run_id=str(job.run_id), job_id=str(job.id))
        elif job.type == JobType.BUILD_PROFILE:
            moved = self.repository.move_project_sources(
                job.project_id, SourceStatus.PROFILING, SourceStatus.CHUNKED
            )
            logger.info("profiling_sources_released", project_id=str(job.project_id), count=moved, job_id=str(job.id))
