"""
Text extraction collaborators: PDF, Word, web pages and media transcription.
"""

from citecast.extraction.extractor import ExtractionResult, SourceExtractor

__all__ = [
    "ExtractionResult",
    "SourceExtractor",
]
