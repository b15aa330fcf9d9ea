from .base import UUIDMixin, TimestampMixin, utc_now
from .enums import (
    SourceType, SourceStatus, JobType, JobStatus, JobLogLevel, RunStatus,
    TonePreset, Strictness, HashtagDensity, Platform, InstagramType
)
from .project import Project
from .library import Source, Chunk
from .generation import ContextProfile, GenerationRun, GeneratedPost
from .jobs import Job, JobLog
from .limits import RateLimitState

__all__ = [
    "UUIDMixin", "TimestampMixin", "utc_now",
    "SourceType", "SourceStatus", "JobType", "JobStatus", "JobLogLevel", "RunStatus",
    "TonePreset", "Strictness", "HashtagDensity", "Platform", "InstagramType",
    "Project",
    "Source", "Chunk",
    "ContextProfile", "GenerationRun", "GeneratedPost",
    "Job", "JobLog",
    "RateLimitState",
]
