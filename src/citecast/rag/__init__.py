from citecast.rag.scorer import ScoredChunk, score_chunks

__all__ = ["ScoredChunk", "score_chunks"]
