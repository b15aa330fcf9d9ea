"""
Paragraph Chunker
Splits source text into overlapping, size-bounded chunks annotated with
headings and keywords for lexical retrieval and citation.
"""
import hashlib
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import List

from citecast.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_CHUNK_SIZE = 1500
DEFAULT_OVERLAP_SIZE = 200

MAX_HEADINGS = 10
MAX_KEYWORDS = 20

PARAGRAPH_SEPARATOR = "\n\n"

_MARKDOWN_HEADING = re.compile(r"^#{1,6}\s+(.+)$", re.MULTILINE)
_KEYWORD = re.compile(r"\b[a-z]{4,}\b")
_WORD = re.compile(r"\S+")

STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "as", "is", "was", "are", "were", "been",
    "be", "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "may", "might", "can", "this", "that", "these", "those", "it",
    "its", "they", "them", "their", "we", "us", "our", "you", "your", "i",
    "me", "my", "he", "him", "his", "she", "her", "not", "no", "yes", "all",
    "any", "some", "most", "more", "less", "than", "then", "just", "only",
    "also", "very", "too", "so", "such", "what", "which", "who", "when",
    "where", "why", "how", "if", "because", "about", "into", "through",
})


@dataclass
class ChunkResult:
    index: int
    content: str
    content_hash: str
    headings: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)
    # Length of the prefix carried over from the previous chunk
    overlap_length: int = 0


def normalize_text(text: str) -> str:
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def split_paragraphs(text: str) -> List[str]:
    return [p.strip() for p in re.split(r"\n\n+", text) if p.strip()]


def content_hash(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:16]


def extract_headings(text: str) -> List[str]:
    """
    Markdown headings first, then lines that look like titles:
    4-99 chars, capitalized, not ending in '.' or ','.
    """
    headings = [m.group(1).strip() for m in _MARKDOWN_HEADING.finditer(text)]

    for line in text.split("\n"):
        candidate = line.strip()
        if (
            3 < len(candidate) < 100
            and candidate[0].isascii()
            and candidate[0].isupper()
            and not candidate.endswith((".", ","))
        ):
            headings.append(candidate)

    # dict keeps first-seen order
    return list(dict.fromkeys(headings))[:MAX_HEADINGS]


def extract_keywords(text: str) -> List[str]:
    """Most frequent non stop-words of 4+ letters. Ties keep first appearance."""
    words = [w for w in _KEYWORD.findall(text.lower()) if w not in STOP_WORDS]
    return [word for word, _ in Counter(words).most_common(MAX_KEYWORDS)]


def overlap_tail(buffer: str, overlap_size: int) -> str:
    """
    Shortest suffix of buffer that starts on a word boundary and is at
    least overlap_size long. The whole buffer when it is shorter.
    """
    if overlap_size <= 0:
        return ""
    if len(buffer) <= overlap_size:
        return buffer

    start = 0
    for match in _WORD.finditer(buffer):
        if len(buffer) - match.start() < overlap_size:
            break
        start = match.start()
    return buffer[start:]


def _build_chunk(index: int, content: str, overlap_length: int) -> ChunkResult:
    return ChunkResult(
        index=index,
        content=content,
        content_hash=content_hash(content),
        headings=extract_headings(content),
        keywords=extract_keywords(content),
        overlap_length=overlap_length,
    )


def chunk_text(
    text: str,
    max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
    overlap_size: int = DEFAULT_OVERLAP_SIZE,
) -> List[ChunkResult]:
    """
    Greedy paragraph packing with word-boundary overlap.

    Paragraphs are never split: one longer than max_chunk_size becomes a
    chunk on its own (plus the carried overlap).
    """
    if max_chunk_size <= 0:
        raise ValueError("max_chunk_size must be positive")
    if overlap_size < 0 or overlap_size >= max_chunk_size:
        raise ValueError("overlap_size must be in [0, max_chunk_size)")

    normalized = normalize_text(text or "")
    if not normalized:
        return []

    chunks: List[ChunkResult] = []
    buffer = ""
    buffer_overlap = 0

    for paragraph in split_paragraphs(normalized):
        if buffer and len(buffer) + len(paragraph) + len(PARAGRAPH_SEPARATOR) > max_chunk_size:
            chunks.append(_build_chunk(len(chunks), buffer, buffer_overlap))

            tail = overlap_tail(buffer, overlap_size)
            buffer = f"{tail}{PARAGRAPH_SEPARATOR}{paragraph}" if tail else paragraph
            buffer_overlap = len(tail)
        else:
            buffer = f"{buffer}{PARAGRAPH_SEPARATOR}{paragraph}" if buffer else paragraph

    if buffer:
        chunks.append(_build_chunk(len(chunks), buffer, buffer_overlap))

    logger.debug(
        "text_chunked",
        input_length=len(normalized),
        chunk_count=len(chunks),
        max_chunk_size=max_chunk_size,
        overlap_size=overlap_size,
    )
    return chunks
