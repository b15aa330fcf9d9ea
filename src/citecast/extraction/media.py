"""
Audio/video transcription through the OpenAI audio API.
"""
from dataclasses import dataclass
from typing import Optional

from openai import OpenAI

from citecast.config import settings
from citecast.core.logging import get_logger

logger = get_logger(__name__)

MANUAL_TRANSCRIPT_HINT = (
    "Automatic transcription is not configured. "
    "Attach a transcript to this source manually."
)


@dataclass
class TranscriptionResult:
    success: bool
    transcript: Optional[str] = None
    error: Optional[str] = None


def transcribe_media(data: bytes, mime_type: str, filename: Optional[str] = None, client: OpenAI = None) -> TranscriptionResult:
    if client is None:
        if not settings.openai_api_key:
            logger.warning("transcription_unavailable", mime_type=mime_type)
            return TranscriptionResult(success=False, error=MANUAL_TRANSCRIPT_HINT)
        client = OpenAI(api_key=settings.openai_api_key)

    name = filename or f"media.{mime_type.split('/')[-1]}"
    logger.info("transcribing_media", model=settings.transcription_model, mime_type=mime_type, bytes=len(data))

    result = client.audio.transcriptions.create(
        model=settings.transcription_model,
        file=(name, data, mime_type),
    )
    transcript = (result.text or "").strip()
    if not transcript:
        return TranscriptionResult(success=False, error="Transcription returned no text")
    return TranscriptionResult(success=True, transcript=transcript)
