from typing import List, Optional
from uuid import UUID
from sqlmodel import Field
from sqlalchemy import Column, LargeBinary, Text, UniqueConstraint

from .base import UUIDMixin, TimestampMixin, json_column
from .enums import SourceType, SourceStatus

# ============================================
# 1. SOURCE MODEL
# ============================================
class Source(UUIDMixin, TimestampMixin, table=True):
    """
    A single piece of input material: an uploaded file or a URL.

    Status is advanced by the pipeline stages only
    (uploaded -> extracting -> extracted -> chunking -> chunked -> profiling -> profiled).
    """
    __tablename__ = "sources"

    project_id: UUID = Field(index=True, foreign_key="projects.id")
    type: SourceType

    mime_type: Optional[str] = None
    original_name: Optional[str] = None
    url: Optional[str] = None
    file_bytes: Optional[bytes] = Field(default=None, sa_column=Column(LargeBinary))

    # Filled by extract_text (or a manual transcript)
    extracted_text: Optional[str] = Field(default=None, sa_column=Column(Text))
    transcript_text: Optional[str] = Field(default=None, sa_column=Column(Text))

    status: SourceStatus = Field(default=SourceStatus.UPLOADED, index=True)
    error_message: Optional[str] = Field(default=None, sa_column=Column(Text))

    @property
    def text(self) -> Optional[str]:
        """Text the chunker should work on: extracted text first, transcript otherwise."""
        return self.extracted_text or self.transcript_text


# ============================================
# 2. CHUNK MODEL
# ============================================
class Chunk(UUIDMixin, TimestampMixin, table=True):
    """
    Overlapping segment of a source's text.

    Immutable once written. Re-chunking a source deletes every chunk and
    recreates the full set, so chunk_index stays contiguous from 0.
    """
    __tablename__ = "chunks"
    __table_args__ = (
        UniqueConstraint("source_id", "chunk_index", name="uq_chunks_source_index"),
    )

    source_id: UUID = Field(index=True, foreign_key="sources.id")
    chunk_index: int

    content: str = Field(sa_column=Column(Text, nullable=False))
    content_hash: str = Field(index=True)

    headings: List[str] = Field(default_factory=list, sa_column=json_column())
    keywords: List[str] = Field(default_factory=list, sa_column=json_column())
