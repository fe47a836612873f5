"""
chunkers.py — Sentence-respecting chunking for chapter text
============================================================

A chapter gets cut into chunks of at most ~800 characters. Chunks are
built from whole sentences: a sentence is never split, even when it is
longer than the limit on its own.

HOW IT WORKS:
  1. Split on sentence boundaries — ". ", "! " or "? " (any whitespace
     after the punctuation; the whitespace itself is dropped)
  2. Append sentences to a running buffer, joined by single spaces
  3. When the next sentence would push the buffer over max_chars,
     flush the buffer as a chunk and start a new one with that sentence

Rejoining all chunks with single spaces gives back the original
sentence sequence (with whitespace normalized).

Usage:
  from rag_tutor.chunkers import chunk_text
  chunks = chunk_text(chapter_text, max_chars=800)
"""

import re
from dataclasses import dataclass

import numpy as np


# Position right after . ! ? followed by whitespace
_SENTENCE_BOUNDARY = re.compile(r'(?<=[.!?])\s+')

DEFAULT_MAX_CHARS = 800


@dataclass(frozen=True)
class Chunk:
    """A chunk of a topic: its position, text and embedding."""
    id: int
    text: str
    embedding: np.ndarray

    def __repr__(self):
        preview = self.text[:60].replace('\n', ' ')
        return f"Chunk(id={self.id}, words={len(self.text.split())}, dim={len(self.embedding)}, text={preview!r}...)"


def split_sentences(text: str) -> list[str]:
    """Split text after . ! ? followed by whitespace."""
    return _SENTENCE_BOUNDARY.split(text)


def chunk_text(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> list[str]:
    """
    Group sentences into chunks of at most max_chars characters.

    A single sentence longer than max_chars is kept whole in its own
    chunk. Empty (or whitespace-only) text gives no chunks.
    """
    if max_chars <= 0:
        raise ValueError("max_chars must be positive")

    chunks = []
    current = ""

    for sentence in split_sentences(text):
        if len(current + " " + sentence) > max_chars:
            if current.strip():
                chunks.append(current.strip())
            current = sentence
        else:
            current += (" " if current else "") + sentence

    if current.strip():
        chunks.append(current.strip())
    return chunks


class SentenceChunker:
    """Configured chunker — keeps max_chars in one place for ingestion."""

    def __init__(self, max_chars: int = DEFAULT_MAX_CHARS):
        if max_chars <= 0:
            raise ValueError("max_chars must be positive")
        self.max_chars = max_chars

    def chunk(self, text: str) -> list[str]:
        return chunk_text(text, self.max_chars)


# ==================== STATS ====================

def chunk_stats(texts: list[str]) -> dict:
    """Compute statistics about a list of chunk texts."""
    if not texts:
        return {"count": 0}

    sizes = [len(t) for t in texts]
    words = [len(t.split()) for t in texts]
    mean = sum(sizes) / len(sizes)

    return {
        "count": len(texts),
        "total_chars": sum(sizes),
        "total_words": sum(words),
        "avg_chars": round(mean),
        "avg_words": round(sum(words) / len(words)),
        "min_chars": min(sizes),
        "max_chars": max(sizes),
        "std_chars": round((sum((s - mean) ** 2 for s in sizes) / len(sizes)) ** 0.5),
    }


def print_stats(texts: list[str]):
    """Print a short chunk size overview."""
    stats = chunk_stats(texts)
    labels = {
        "count": "Chunk count",
        "avg_chars": "Avg chars/chunk",
        "avg_words": "Avg words/chunk",
        "min_chars": "Smallest chunk",
        "max_chars": "Largest chunk",
        "std_chars": "Std deviation",
        "total_chars": "Total chars",
    }
    for key, label in labels.items():
        if key in stats:
            print(f"  {label:<20}{stats[key]:>10}")
