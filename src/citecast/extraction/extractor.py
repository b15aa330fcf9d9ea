"""
Source Extractor
Routes a Source to the right text extractor by type and MIME type.

Failures come back as ExtractionResult(success=False, error=...) instead of
raising, so the extract_text stage can record the message on the source.
"""
import asyncio
from dataclasses import dataclass
from typing import Optional

from citecast.core.logging import get_logger
from citecast.schema import Source, SourceType
from .media import transcribe_media
from .pdf import extract_pdf_text
from .web import fetch_url_text
from .word import extract_docx_text

logger = get_logger(__name__)

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
DOC_MIME = "application/msword"
TEXT_MIMES = {"text/plain", "text/markdown"}


@dataclass
class ExtractionResult:
    success: bool
    text: Optional[str] = None
    transcript: Optional[str] = None
    error: Optional[str] = None


class SourceExtractor:
    """Default extraction collaborator used by the extract_text stage."""

    async def extract(self, source: Source) -> ExtractionResult:
        return await asyncio.to_thread(
            self.extract_sync,
            source.type,
            source.mime_type,
            source.url,
            source.file_bytes,
            source.original_name,
        )

    def extract_sync(
        self,
        source_type: SourceType,
        mime_type: Optional[str],
        url: Optional[str],
        file_bytes: Optional[bytes],
        original_name: Optional[str],
    ) -> ExtractionResult:
        try:
            if source_type == SourceType.URL:
                if not url:
                    return ExtractionResult(success=False, error="URL is required for URL sources")
                return ExtractionResult(success=True, text=fetch_url_text(url))

            if not file_bytes:
                return ExtractionResult(success=False, error="File bytes are required for file sources")
            if not mime_type:
                return ExtractionResult(success=False, error="MIME type is required for file sources")

            if mime_type == PDF_MIME:
                return ExtractionResult(success=True, text=extract_pdf_text(file_bytes))
            if mime_type in (DOCX_MIME, DOC_MIME):
                return ExtractionResult(success=True, text=extract_docx_text(file_bytes))
            if mime_type in TEXT_MIMES:
                return ExtractionResult(success=True, text=file_bytes.decode("utf-8"))
            if mime_type.startswith(("audio/", "video/")):
                result = transcribe_media(file_bytes, mime_type, original_name)
                if result.success:
                    return ExtractionResult(success=True, transcript=result.transcript)
                return ExtractionResult(success=False, error=result.error or "Transcription failed")

            return ExtractionResult(success=False, error=f"Unsupported MIME type: {mime_type}")
        except Exception as e:
            logger.warning("extraction_failed", mime_type=mime_type, url=url, error=str(e))
            return ExtractionResult(success=False, error=f"Extraction failed: {e}")
