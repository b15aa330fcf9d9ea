"""
Durable job queue tables.

A Job row is the unit of work and of mutual exclusion: a worker owns it
while locked_at is within the lock timeout. JobLog rows are an append-only
audit trail written for every stage transition and retry decision.
"""
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID
from sqlmodel import Field
from sqlalchemy import Column, Index, Text

from .base import UUIDMixin, TimestampMixin, json_column, utc_now
from .enums import JobType, JobStatus, JobLogLevel


class Job(UUIDMixin, TimestampMixin, table=True):
    __tablename__ = "jobs"
    __table_args__ = (
        Index("ix_jobs_claim", "status", "next_run_at"),
    )

    project_id: UUID = Field(index=True, foreign_key="projects.id")
    source_id: Optional[UUID] = Field(default=None, foreign_key="sources.id", index=True)
    run_id: Optional[UUID] = Field(default=None, foreign_key="generation_runs.id", index=True)

    type: JobType
    status: JobStatus = Field(default=JobStatus.PENDING)

    # Retry bookkeeping
    attempts: int = 0
    max_attempts: int = 3
    next_run_at: datetime = Field(default_factory=utc_now)

    # Lease
    locked_at: Optional[datetime] = None
    locked_by: Optional[str] = None

    error_message: Optional[str] = Field(default=None, sa_column=Column(Text))


class JobLog(UUIDMixin, table=True):
    __tablename__ = "job_logs"

    job_id: UUID = Field(index=True, foreign_key="jobs.id")
    level: JobLogLevel = JobLogLevel.INFO
    message: str
    meta: Dict[str, Any] = Field(default_factory=dict, sa_column=json_column())
    created_at: datetime = Field(default_factory=utc_now, index=True)
