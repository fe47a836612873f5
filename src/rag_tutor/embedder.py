"""
embedder.py — Turn text into vectors, and compare vectors
==========================================================

Everything in the tutor ranks by embedding similarity: chunks against
a question, images against a question + answer. One embedding model
serves all of it, so it is loaded once and shared.

Model:
  all-MiniLM-L6-v2 via sentence-transformers — 384 dims, mean pooling
  over token embeddings, L2-normalized output.

Loading:
  The model loads lazily on the first embed() call. Loading is
  single-flight: a lock with a double check means concurrent first
  callers wait for the one in-flight load instead of starting their own.
  If that load fails, the callers that waited on it fail with it; the
  next call after that tries again.

Failures:
  embed() never raises. If the model can't load or inference fails,
  the error is logged and an EMPTY vector comes back. Empty vectors
  score 0 against everything, so ranking stays total — a chunk without
  an embedding just never wins.

Usage:
  from rag_tutor.embedder import Embedder, cosine_similarity
  emb = Embedder()
  q = emb.embed("What is resonance?")
  score = cosine_similarity(q, chunk.embedding)
"""

import logging
import threading
from typing import Sequence

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "all-MiniLM-L6-v2"


def empty_vector() -> np.ndarray:
    """The "no embedding available" sentinel."""
    return _freeze(np.zeros(0, dtype=np.float32))


def _freeze(vec: np.ndarray) -> np.ndarray:
    vec.setflags(write=False)
    return vec


def as_vector(values: Sequence[float]) -> np.ndarray:
    """Read-only float32 vector from any sequence of floats (e.g. loaded JSON)."""
    return _freeze(np.array(values, dtype=np.float32).reshape(-1))


class Embedder:
    """
    Encode text with a lazily loaded sentence-transformers model.

    One instance per process; pass it to everything that needs vectors
    (topic building, question answering, the image index).
    """

    def __init__(self, model_name: str = DEFAULT_MODEL, device: str | None = None):
        self.model_name = model_name
        self.device = device
        self.dim: int | None = None
        self._model = None
        self._lock = threading.Lock()
        self._attempts = 0
        self._load_error: Exception | None = None

    def _load_model(self):
        from sentence_transformers import SentenceTransformer

        return SentenceTransformer(self.model_name, device=self.device)

    def _get_model(self):
        if self._model is not None:
            return self._model

        seen_attempts = self._attempts
        with self._lock:
            if self._model is not None:
                return self._model
            if self._attempts != seen_attempts:
                # Waited on an attempt that failed; share its outcome
                raise RuntimeError(f"Embedding model unavailable: {self._load_error}")

            logger.info("Loading embedding model: %s", self.model_name)
            try:
                model = self._load_model()
                self.dim = model.get_sentence_embedding_dimension()
            except Exception as exc:
                self._load_error = exc
                raise
            finally:
                self._attempts += 1
            self._model = model
            logger.info("Embedding model loaded (%s dims)", self.dim)
        return self._model

    def embed(self, text: str) -> np.ndarray:
        """
        Encode a single text. Returns shape (dim,), or shape (0,) on failure.
        """
        try:
            model = self._get_model()
            vector = model.encode(
                text,
                normalize_embeddings=True,
                convert_to_numpy=True,
                show_progress_bar=False,
            )
        except Exception:
            logger.exception("Embedding failed (%d chars), returning empty vector", len(text))
            return empty_vector()
        return _freeze(np.asarray(vector, dtype=np.float32).reshape(-1))

    def embed_many(self, texts: list[str]) -> list[np.ndarray]:
        """Encode texts one by one — a failure only empties that text's vector."""
        return [self.embed(t) for t in texts]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity over the first min(len(a), len(b)) dimensions.

    Both norms are computed over that same truncated range. Returns
    exactly 0.0 if either vector is empty or has zero norm.
    """
    n = min(len(a), len(b))
    if n == 0:
        return 0.0

    a = np.asarray(a[:n], dtype=np.float64)
    b = np.asarray(b[:n], dtype=np.float64)
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))
