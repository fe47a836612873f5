"""
topic_index.py — One chapter's chunks, embedded and searchable
===============================================================

A Topic is an ingested chapter: its text cut into chunks, each chunk
carrying a precomputed embedding. Retrieval is brute force — score
every chunk against the query vector and sort. Chapters have tens to
hundreds of chunks, so exact search is instant and there is no
approximation to worry about.

Why not a vector index:
  Embeddings are compared with a truncating cosine (see embedder.py)
  so that vectors of different lengths still produce a score. An ANN
  index needs one fixed dimensionality for the whole corpus.

Usage:
  from rag_tutor.topic_index import build_topic, retrieve_top_k
  topic = build_topic(text, embedder, title="Chapter 12: Sound")
  results = retrieve_top_k(embedder.embed(question), topic.chunks, k=4)
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone

import numpy as np

from rag_tutor.chunkers import DEFAULT_MAX_CHARS, Chunk, SentenceChunker
from rag_tutor.embedder import Embedder, as_vector, cosine_similarity

DEFAULT_TITLE = "Uploaded Chapter"


class EmptyCorpusError(ValueError):
    """Ingested text produced no chunks."""


# ==================== DATA STRUCTURES ====================

@dataclass(frozen=True)
class RetrievalResult:
    """A chunk scored against a query."""
    chunk_id: int
    text: str
    score: float

    def __repr__(self):
        preview = self.text[:60].replace('\n', ' ')
        return f"RetrievalResult(chunk_id={self.chunk_id}, score={self.score:.4f}, text={preview!r}...)"


@dataclass
class Topic:
    """An ingested chapter: id, title, embedded chunks, creation time."""
    id: str
    title: str
    chunks: list[Chunk] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        """Record shape used on disk."""
        return {
            "id": self.id,
            "title": self.title,
            "chunks": [
                {"id": c.id, "text": c.text, "embedding": [float(x) for x in c.embedding]}
                for c in self.chunks
            ],
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Topic":
        created = data.get("createdAt")
        return cls(
            id=data["id"],
            title=data.get("title", DEFAULT_TITLE),
            chunks=[
                Chunk(id=c["id"], text=c["text"], embedding=as_vector(c.get("embedding") or []))
                for c in data.get("chunks", [])
            ],
            created_at=_parse_timestamp(created) if created else datetime.now(timezone.utc),
        )


def _parse_timestamp(value: str) -> datetime:
    # JS toISOString() writes a trailing "Z"
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def new_topic_id() -> str:
    return f"topic_{int(time.time() * 1000)}"


# ==================== BUILD ====================

def build_chunks(text: str, embedder: Embedder, max_chars: int = DEFAULT_MAX_CHARS) -> list[Chunk]:
    """
    Chunk the text and embed each chunk in order.

    Ids are positions 0..n-1. A chunk whose embedding fails keeps an
    empty vector — it scores 0 against every query instead of aborting
    the whole build.
    """
    texts = SentenceChunker(max_chars).chunk(text)
    vectors = embedder.embed_many(texts)
    return [Chunk(id=i, text=t, embedding=v) for i, (t, v) in enumerate(zip(texts, vectors))]


def build_topic(
    text: str,
    embedder: Embedder,
    title: str | None = None,
    topic_id: str | None = None,
    max_chars: int = DEFAULT_MAX_CHARS,
) -> Topic:
    """Build a Topic from raw chapter text. Raises EmptyCorpusError if nothing to index."""
    chunks = build_chunks(text, embedder, max_chars)
    if not chunks:
        raise EmptyCorpusError("Document text is empty — nothing to index")

    return Topic(
        id=topic_id or new_topic_id(),
        title=title or DEFAULT_TITLE,
        chunks=chunks,
    )


# ==================== RETRIEVAL ====================

def score_chunks(query_vector: np.ndarray, chunks: list[Chunk]) -> list[RetrievalResult]:
    """Score every chunk against the query, in chunk order."""
    return [
        RetrievalResult(chunk_id=c.id, text=c.text, score=cosine_similarity(query_vector, c.embedding))
        for c in chunks
    ]


def retrieve_top_k(query_vector: np.ndarray, chunks: list[Chunk], k: int = 4) -> list[RetrievalResult]:
    """
    Top-k chunks by similarity, best first.

    Equal scores keep their original chunk order (sorted() is stable,
    also with reverse=True). Fewer than k chunks → all of them.
    """
    if k <= 0:
        return []
    scored = score_chunks(query_vector, chunks)
    scored = sorted(scored, key=lambda r: r.score, reverse=True)
    return scored[:k]


def max_similarity(query_vector: np.ndarray, chunks: list[Chunk]) -> float:
    """Highest similarity between the query and ANY chunk (0.0 if no chunks)."""
    return max((r.score for r in score_chunks(query_vector, chunks)), default=0.0)
