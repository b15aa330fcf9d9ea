"""
Citecast Preprocessing Module

Text normalization and chunking for the job pipeline.
"""

from citecast.preprocessing.chunker import (
    ChunkResult,
    chunk_text,
    extract_headings,
    extract_keywords,
    normalize_text,
)

__all__ = [
    "ChunkResult",
    "chunk_text",
    "extract_headings",
    "extract_keywords",
    "normalize_text",
]
