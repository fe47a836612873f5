"""
image_index.py — Pick an illustrative image for a question + answer
===================================================================

The catalog (images.json) lists diagrams with a title, description and
keywords, grouped by topic/category:

  [{"id": "img_wave", "title": "Sound wave", "description": "...",
    "keywords": ["compression", "rarefaction"], "topicId": "sound",
    "filename": "sound_wave.png"}, ...]

At startup every asset is embedded once from
  "<title>. <description>. <kw1>, <kw2>, ..."
and the best image for a piece of text is simply the asset with the
highest cosine similarity — same mechanism as chunk retrieval.

No threshold:
  best_match() always returns an asset when there is at least one
  candidate, however weak the match. Thresholding is up to the caller.

Missing catalog:
  The index stays "not ready" and every lookup returns nothing. Images
  are decoration; a missing catalog must not take the tutor down.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np

from rag_tutor.embedder import Embedder, cosine_similarity, empty_vector

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "sound"


@dataclass
class ImageAsset:
    """A catalog entry plus its embedding."""
    id: str
    title: str
    description: str
    keywords: list[str]
    topic_id: str
    filename: str
    embedding: np.ndarray = field(default_factory=empty_vector, repr=False)

    @property
    def embedding_text(self) -> str:
        return f"{self.title}. {self.description}. {', '.join(self.keywords)}"

    @classmethod
    def from_dict(cls, data: dict) -> "ImageAsset":
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            description=data.get("description", ""),
            keywords=list(data.get("keywords") or []),
            topic_id=data.get("topicId", data.get("category", "")),
            filename=data.get("filename", ""),
        )

    def to_public_dict(self, static_prefix: str = "/static/images") -> dict:
        """What a caller shows to the user."""
        return {
            "id": self.id,
            "title": self.title,
            "url": f"{static_prefix.rstrip('/')}/{self.filename}",
            "description": self.description,
        }


class ImageIndex:
    """Read-only catalog of images with precomputed embeddings."""

    def __init__(self, embedder: Embedder):
        self.embedder = embedder
        self.images: list[ImageAsset] = []
        self.ready = False

    def init(self, catalog_path: str | Path):
        """Load the catalog and embed every asset. Missing file → stays not ready."""
        catalog_path = Path(catalog_path)
        if not catalog_path.exists():
            logger.warning("Image catalog %s not found, skipping image index init", catalog_path)
            return

        with open(catalog_path, encoding="utf-8") as f:
            records = json.load(f)

        images = [ImageAsset.from_dict(r) for r in records]
        vectors = self.embedder.embed_many([img.embedding_text for img in images])
        for img, vec in zip(images, vectors):
            img.embedding = vec

        self.images = images
        self.ready = True
        logger.info("Loaded %d images with embeddings", len(images))

    def by_topic(self, topic_id: str) -> list[ImageAsset]:
        """All images whose topic/category equals topic_id exactly."""
        if not self.ready:
            return []
        return [img for img in self.images if img.topic_id == topic_id]

    def best_match(self, text: str, topic_id: str | None = None) -> ImageAsset | None:
        """
        Most similar image to text, optionally restricted to one category.

        Ties go to the first candidate in catalog order.
        """
        if not self.ready:
            return None

        candidates = self.by_topic(topic_id) if topic_id else self.images
        if not candidates:
            return None

        query = self.embedder.embed(text)
        best = None
        best_score = float("-inf")
        for img in candidates:
            score = cosine_similarity(query, img.embedding)
            if score > best_score:
                best_score = score
                best = img
        return best


class CategoryPolicy:
    """
    Which image category to search for a given topic.

    Explicit mapping first, then the default category. The default is
    the single "sound" category the chapter tutor shipped with; a
    warning is logged whenever it is used for an unmapped topic.
    """

    def __init__(self, mapping: dict[str, str] | None = None, default: str | None = DEFAULT_CATEGORY):
        self.mapping = dict(mapping or {})
        self.default = default

    def resolve(self, topic_id: str) -> str | None:
        if topic_id in self.mapping:
            return self.mapping[topic_id]
        if self.default is not None:
            logger.warning(
                "No image category mapped for topic %s, using default %r", topic_id, self.default
            )
        return self.default
