from typing import Any, Dict, List, Optional
from uuid import UUID
from sqlmodel import Field
from sqlalchemy import Column, Text

from .base import UUIDMixin, TimestampMixin, json_column
from .enums import (
    RunStatus, TonePreset, Strictness, HashtagDensity, Platform, InstagramType
)

# ============================================
# 1. CONTEXT PROFILE (one per project)
# ============================================
class ContextProfile(UUIDMixin, TimestampMixin, table=True):
    """
    Condensed understanding of a project's sources. Rebuilt wholesale
    by every build_profile job.
    """
    __tablename__ = "context_profiles"

    project_id: UUID = Field(foreign_key="projects.id", unique=True, index=True)
    audience: str = Field(sa_column=Column(Text, nullable=False))
    tone: str = Field(sa_column=Column(Text, nullable=False))
    themes: List[str] = Field(default_factory=list, sa_column=json_column())

    # [{"claim": ..., "chunkIds": [...], "quote": ...}]
    key_claims: List[Dict[str, Any]] = Field(default_factory=list, sa_column=json_column())


# ============================================
# 2. GENERATION RUN
# ============================================
class GenerationRun(UUIDMixin, TimestampMixin, table=True):
    __tablename__ = "generation_runs"

    project_id: UUID = Field(index=True, foreign_key="projects.id")
    tone_preset: TonePreset = TonePreset.PROFESSIONAL
    strictness: Strictness = Strictness.MODERATE
    hashtag_density: HashtagDensity = HashtagDensity.MEDIUM

    status: RunStatus = Field(default=RunStatus.PENDING, index=True)
    error_message: Optional[str] = Field(default=None, sa_column=Column(Text))


# ============================================
# 3. GENERATED POST
# ============================================
class GeneratedPost(UUIDMixin, TimestampMixin, table=True):
    """
    One post of a run's batch. A re-run deletes and replaces every post of the run.
    """
    __tablename__ = "generated_posts"

    run_id: UUID = Field(index=True, foreign_key="generation_runs.id")
    platform: Platform
    instagram_type: Optional[InstagramType] = None

    payload: Dict[str, Any] = Field(default_factory=dict, sa_column=json_column())
    # [{"chunkId": ..., "quote": ...}]
    citations: List[Dict[str, Any]] = Field(default_factory=list, sa_column=json_column())
