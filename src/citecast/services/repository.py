"""
Pipeline Repository
Every read and write the job pipeline and the project service make against
the relational store. Each method runs in its own short transaction.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import and_, delete, or_, update
from sqlalchemy import select as sa_select
from sqlalchemy.engine import Engine
from sqlmodel import Session, col, select

from citecast.core.logging import get_logger
from citecast.preprocessing.chunker import ChunkResult
from citecast.schema import (
    Chunk, ContextProfile, GeneratedPost, GenerationRun, Job, JobLog, JobLogLevel,
    JobStatus, JobType, Project, RunStatus, Source, SourceStatus, utc_now,
)

logger = get_logger(__name__)


class PipelineRepository:
    def __init__(self, engine: Engine):
        self.engine = engine

    def session(self) -> Session:
        return Session(self.engine, expire_on_commit=False)

    # ============================================
    # PROJECTS
    # ============================================

    def create_project(self, name: str, owner_id: str, description: Optional[str] = None) -> Project:
        project = Project(name=name, owner_id=owner_id, description=description)
        return self._add(project)

    def get_project(self, project_id: UUID) -> Optional[Project]:
        with self.session() as session:
            return session.get(Project, project_id)

    # ============================================
    # SOURCES
    # ============================================

    def create_source(self, **fields) -> Source:
        return self._add(Source(**fields))

    def get_source(self, source_id: UUID) -> Optional[Source]:
        with self.session() as session:
            return session.get(Source, source_id)

    def update_source(self, source_id: UUID, **fields) -> Source:
        with self.session() as session:
            source = session.get(Source, source_id)
            if source is None:
                raise LookupError(f"Source {source_id} not found")
            for key, value in fields.items():
                setattr(source, key, value)
            source.updated_at = utc_now()
            session.add(source)
            session.commit()
            return source

    def list_sources(self, project_id: UUID, statuses: Optional[Iterable[SourceStatus]] = None) -> List[Source]:
        query = select(Source).where(Source.project_id == project_id)
        if statuses is not None:
            query = query.where(col(Source.status).in_(list(statuses)))
        query = query.order_by(Source.created_at, Source.id)
        with self.session() as session:
            return list(session.exec(query).all())

    def set_sources_status(self, source_ids: Sequence[UUID], status: SourceStatus) -> int:
        if not source_ids:
            return 0
        stmt = (
            update(Source)
            .where(col(Source.id).in_(list(source_ids)))
            .values(status=status, updated_at=utc_now())
        )
        with self.engine.begin() as conn:
            return conn.execute(stmt).rowcount

    def move_project_sources(self, project_id: UUID, from_status: SourceStatus, to_status: SourceStatus) -> int:
        """Move every source of the project in from_status to to_status."""
        stmt = (
            update(Source)
            .where(Source.project_id == project_id)
            .where(Source.status == from_status)
            .values(status=to_status, updated_at=utc_now())
        )
        with self.engine.begin() as conn:
            return conn.execute(stmt).rowcount

    # ============================================
    # CHUNKS
    # ============================================

    def replace_chunks(self, source_id: UUID, results: Sequence[ChunkResult]) -> List[Chunk]:
        """Delete every chunk of the source and insert the new set, atomically."""
        chunks = [
            Chunk(
                source_id=source_id,
                chunk_index=result.index,
                content=result.content,
                content_hash=result.content_hash,
                headings=list(result.headings),
                keywords=list(result.keywords),
            )
            for result in results
        ]
        with self.session() as session:
            session.connection().execute(delete(Chunk).where(Chunk.source_id == source_id))
            session.add_all(chunks)
            session.commit()
        return chunks

    def list_source_chunks(self, source_id: UUID) -> List[Chunk]:
        query = select(Chunk).where(Chunk.source_id == source_id).order_by(Chunk.chunk_index)
        with self.session() as session:
            return list(session.exec(query).all())

    def list_project_chunks(
        self,
        project_id: UUID,
        source_statuses: Optional[Iterable[SourceStatus]] = None,
    ) -> List[Chunk]:
        """Chunks ordered by source creation, then chunk index."""
        query = (
            select(Chunk)
            .join(Source, Chunk.source_id == Source.id)
            .where(Source.project_id == project_id)
        )
        if source_statuses is not None:
            query = query.where(col(Source.status).in_(list(source_statuses)))
        query = query.order_by(Source.created_at, Source.id, Chunk.chunk_index)
        with self.session() as session:
            return list(session.exec(query).all())

    # ============================================
    # CONTEXT PROFILE
    # ============================================

    def get_profile(self, project_id: UUID) -> Optional[ContextProfile]:
        with self.session() as session:
            return session.exec(
                select(ContextProfile).where(ContextProfile.project_id == project_id)
            ).first()

    def upsert_profile(
        self,
        project_id: UUID,
        audience: str,
        tone: str,
        themes: List[str],
        key_claims: List[Dict[str, Any]],
    ) -> ContextProfile:
        with self.session() as session:
            profile = session.exec(
                select(ContextProfile).where(ContextProfile.project_id == project_id)
            ).first()
            if profile is None:
                profile = ContextProfile(project_id=project_id, audience=audience, tone=tone)
            profile.audience = audience
            profile.tone = tone
            profile.themes = themes
            profile.key_claims = key_claims
            profile.updated_at = utc_now()
            session.add(profile)
            session.commit()
            return profile

    # ============================================
    # GENERATION RUNS & POSTS
    # ============================================

    def create_run(self, **fields) -> GenerationRun:
        return self._add(GenerationRun(**fields))

    def get_run(self, run_id: UUID) -> Optional[GenerationRun]:
        with self.session() as session:
            return session.get(GenerationRun, run_id)

    def list_runs(self, project_id: UUID, limit: int = 10) -> List[GenerationRun]:
        query = (
            select(GenerationRun)
            .where(GenerationRun.project_id == project_id)
            .order_by(col(GenerationRun.created_at).desc())
            .limit(limit)
        )
        with self.session() as session:
            return list(session.exec(query).all())

    def set_run_status(self, run_id: UUID, status: RunStatus, error_message: Optional[str] = None) -> None:
        stmt = (
            update(GenerationRun)
            .where(GenerationRun.id == run_id)
            .values(status=status, error_message=error_message, updated_at=utc_now())
        )
        with self.engine.begin() as conn:
            conn.execute(stmt)

    def replace_posts(self, run_id: UUID, records: Sequence[Dict[str, Any]]) -> List[GeneratedPost]:
        """Delete every post of the run and insert the new batch, atomically."""
        posts = [GeneratedPost(run_id=run_id, **record) for record in records]
        with self.session() as session:
            session.connection().execute(delete(GeneratedPost).where(GeneratedPost.run_id == run_id))
            session.add_all(posts)
            session.commit()
        return posts

    def list_posts(self, run_id: UUID) -> List[GeneratedPost]:
        query = (
            select(GeneratedPost)
            .where(GeneratedPost.run_id == run_id)
            .order_by(GeneratedPost.created_at, GeneratedPost.id)
        )
        with self.session() as session:
            return list(session.exec(query).all())

    # ============================================
    # JOBS
    # ============================================

    def create_job(
        self,
        project_id: UUID,
        job_type: JobType,
        max_attempts: int,
        source_id: Optional[UUID] = None,
        run_id: Optional[UUID] = None,
    ) -> Job:
        job = Job(
            project_id=project_id,
            type=job_type,
            source_id=source_id,
            run_id=run_id,
            max_attempts=max_attempts,
            status=JobStatus.PENDING,
            next_run_at=utc_now(),
        )
        return self._add(job)

    def get_job(self, job_id: UUID) -> Optional[Job]:
        with self.session() as session:
            return session.get(Job, job_id)

    def has_open_job(self, job_type: JobType, source_id: UUID) -> bool:
        """True when a pending or processing job of job_type exists for the source."""
        query = (
            select(Job.id)
            .where(Job.type == job_type)
            .where(Job.source_id == source_id)
            .where(col(Job.status).in_([JobStatus.PENDING, JobStatus.PROCESSING]))
            .limit(1)
        )
        with self.session() as session:
            return session.exec(query).first() is not None

    def list_jobs(self, project_id: UUID, limit: int = 50) -> List[Job]:
        query = (
            select(Job)
            .where(Job.project_id == project_id)
            .order_by(col(Job.created_at).desc())
            .limit(limit)
        )
        with self.session() as session:
            return list(session.exec(query).all())

    def claim_next_job(self, worker_id: str, lock_timeout: timedelta, now: Optional[datetime] = None) -> Optional[UUID]:
        """
        Lease the earliest eligible job with a single conditional UPDATE.

        Eligible: status pending or processing, next_run_at due, and no lease
        or a lease older than lock_timeout. The eligibility predicate is
        repeated on the UPDATE so two workers racing for the same row cannot
        both win it.
        """
        now = now or utc_now()
        eligible = and_(
            col(Job.status).in_([JobStatus.PENDING, JobStatus.PROCESSING]),
            col(Job.next_run_at) <= now,
            or_(col(Job.locked_at).is_(None), col(Job.locked_at) < now - lock_timeout),
        )

        candidate = (
            sa_select(Job.id)
            .where(eligible)
            .order_by(Job.next_run_at, Job.created_at)
            .limit(1)
        )
        if self.engine.dialect.name == "postgresql":
            candidate = candidate.with_for_update(skip_locked=True)

        stmt = (
            update(Job)
            .where(Job.id == candidate.scalar_subquery())
            .where(eligible)
            .values(status=JobStatus.PROCESSING, locked_at=now, locked_by=worker_id, updated_at=now)
            .returning(Job.id)
        )
        with self.engine.begin() as conn:
            return conn.execute(stmt).scalar_one_or_none()

    def release_job(
        self,
        job_id: UUID,
        worker_id: str,
        status: JobStatus,
        attempts: Optional[int] = None,
        next_run_at: Optional[datetime] = None,
        error_message: Optional[str] = None,
    ) -> bool:
        """
        Clear the lease and move the job to its next status.

        Only applies while worker_id still holds the lease; returns False when
        the lease was lost to another worker in the meantime.
        """
        values: Dict[str, Any] = {
            "status": status,
            "locked_at": None,
            "locked_by": None,
            "error_message": error_message,
            "updated_at": utc_now(),
        }
        if attempts is not None:
            values["attempts"] = attempts
        if next_run_at is not None:
            values["next_run_at"] = next_run_at

        stmt = (
            update(Job)
            .where(Job.id == job_id)
            .where(Job.locked_by == worker_id)
            .where(Job.status == JobStatus.PROCESSING)
            .values(**values)
        )
        with self.engine.begin() as conn:
            released = conn.execute(stmt).rowcount == 1

        if not released:
            logger.warning("job_lease_lost", job_id=str(job_id), worker_id=worker_id, status=status.value)
        return released

    # ============================================
    # JOB LOGS
    # ============================================

    def append_log(
        self,
        job_id: UUID,
        level: JobLogLevel,
        message: str,
        meta: Optional[Dict[str, Any]] = None,
    ) -> JobLog:
        return self._add(JobLog(job_id=job_id, level=level, message=message, meta=meta or {}))

    def list_logs(self, job_id: UUID) -> List[JobLog]:
        query = select(JobLog).where(JobLog.job_id == job_id).order_by(JobLog.created_at, JobLog.id)
        with self.session() as session:
            return list(session.exec(query).all())

    # ============================================
    # HELPERS
    # ============================================

    def _add(self, instance):
        with self.session() as session:
            session.add(instance)
            session.commit()
            return instance
