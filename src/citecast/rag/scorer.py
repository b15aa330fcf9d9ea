"""
Lexical Scorer
BM25 ranking of chunks for a free-text query, with boosts for terms that
appear in a chunk's headings or keywords.
"""
import math
from dataclasses import dataclass
from typing import Any, List, Sequence

K1 = 1.2
B = 0.75
HEADING_BOOST = 1.5
KEYWORD_BOOST = 1.2


@dataclass
class ScoredChunk:
    chunk_id: Any
    score: float


def query_terms(query: str) -> List[str]:
    return [term for term in query.lower().split() if len(term) > 2]


def _in_headings(chunk, term: str) -> bool:
    return any(term in heading.lower() for heading in chunk.headings or [])


def _in_keywords(chunk, term: str) -> bool:
    return any(term in keyword for keyword in chunk.keywords or [])


def score_chunks(chunks: Sequence[Any], query: str) -> List[ScoredChunk]:
    """
    Score and rank chunks against query.

    Chunks only need id, content, headings and keywords attributes, so both
    Chunk rows and lightweight test doubles work. The heading and keyword
    boosts multiply each term's own contribution. Ties keep input order.
    """
    if not chunks:
        return []

    terms = query_terms(query)
    n_docs = len(chunks)
    contents = [chunk.content.lower() for chunk in chunks]
    avg_len = sum(len(c) for c in contents) / n_docs

    doc_freq = {
        term: sum(
            1 for chunk, content in zip(chunks, contents)
            if term in content or _in_headings(chunk, term) or _in_keywords(chunk, term)
        )
        for term in terms
    }

    scored = []
    for chunk, content in zip(chunks, contents):
        length_ratio = len(content) / avg_len if avg_len else 0.0
        score = 0.0
        for term in terms:
            tf = content.count(term)
            df = doc_freq[term]
            idf = math.log((n_docs - df + 0.5) / (df + 0.5) + 1)
            term_score = idf * (tf * (K1 + 1)) / (tf + K1 * (1 - B + B * length_ratio))

            if _in_headings(chunk, term):
                term_score *= HEADING_BOOST
            if _in_keywords(chunk, term):
                term_score *= KEYWORD_BOOST
            score += term_score

        scored.append(ScoredChunk(chunk_id=chunk.id, score=score))

    return sorted(scored, key=lambda item: item.score, reverse=True)
