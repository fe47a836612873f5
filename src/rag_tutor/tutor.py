"""
tutor.py — The chapter tutor, wired together
=============================================

One object that owns the pieces and exposes what callers need:

  ingest(text)                 → Topic          (chunk, embed, persist)
  ask(topic_id, question)      → AnswerResult   (grounded answer / fallback)
  best_image(text, category)   → ImageAsset | None
  images_for_topic(category)   → list[ImageAsset]
  illustrate(topic_id, q, a)   → ImageAsset | None  (image for an answered question)

Usage:
  from rag_tutor.tutor import Tutor
  tutor = Tutor.from_settings(Settings.from_env())
  topic = tutor.ingest(chapter_text, title="Chapter 12: Sound")
  result = tutor.ask(topic.id, "How does sound travel?")
"""

import logging
from typing import Callable

from rag_tutor.config import Settings
from rag_tutor.embedder import Embedder
from rag_tutor.generator import AnswerComposer, AnswerResult
from rag_tutor.image_index import CategoryPolicy, ImageAsset, ImageIndex
from rag_tutor.topic_index import EmptyCorpusError, Topic, build_topic
from rag_tutor.topic_store import TopicStore, is_valid_topic_id

logger = logging.getLogger(__name__)


class Tutor:
    """
    Facade over embedder, topic store, answer composer and image index.

    The composer can be given directly or as a factory. A factory runs on
    first use, so image-only callers never need an LLM API key.
    """

    def __init__(
        self,
        embedder: Embedder,
        composer: AnswerComposer | None,
        store: TopicStore,
        images: ImageIndex,
        category_policy: CategoryPolicy | None = None,
        max_chunk_chars: int = 800,
        composer_factory: Callable[[], AnswerComposer] | None = None,
    ):
        if composer is None and composer_factory is None:
            raise ValueError("Tutor needs a composer or a composer_factory")
        self.embedder = embedder
        self._composer = composer
        self._composer_factory = composer_factory
        self.store = store
        self.images = images
        self.category_policy = category_policy or CategoryPolicy()
        self.max_chunk_chars = max_chunk_chars

    @property
    def composer(self) -> AnswerComposer:
        """Raises ValueError / ImportError if the generator backend can't be built."""
        if self._composer is None:
            self._composer = self._composer_factory()
        return self._composer

    @composer.setter
    def composer(self, composer: AnswerComposer):
        self._composer = composer

    @classmethod
    def from_settings(cls, settings: Settings, composer: AnswerComposer | None = None) -> "Tutor":
        """Build everything from settings: load stored topics and the image catalog."""
        embedder = Embedder(model_name=settings.embed_model)

        def build_composer() -> AnswerComposer:
            return AnswerComposer(
                embedder,
                preset=settings.model_preset,
                top_k=settings.top_k,
                relevance_threshold=settings.relevance_threshold,
                timeout=settings.generation_timeout,
            )

        store = TopicStore(settings.topics_dir)
        store.load_all()

        images = ImageIndex(embedder)
        images.init(settings.image_catalog)

        return cls(
            embedder=embedder,
            composer=composer,
            store=store,
            images=images,
            category_policy=CategoryPolicy(default=settings.image_category),
            max_chunk_chars=settings.max_chunk_chars,
            composer_factory=build_composer,
        )

    def ingest(self, text: str, title: str | None = None, topic_id: str | None = None) -> Topic:
        """
        Chunk, embed and persist a document.

        Raises EmptyCorpusError (blank text) or ValueError (invalid topic_id)
        before anything is embedded or stored.
        """
        if not text or not text.strip():
            raise EmptyCorpusError("Document text is empty — nothing to index")
        if topic_id is not None and not is_valid_topic_id(topic_id):
            raise ValueError(f"Invalid topicId: {topic_id!r}")

        topic = build_topic(text, self.embedder, title=title, topic_id=topic_id,
                            max_chars=self.max_chunk_chars)
        self.store.put(topic)
        return topic

    def ask(self, topic_id: str, question: str) -> AnswerResult:
        """Raises UnknownTopicError for unknown ids, GenerationError if the LLM fails."""
        topic = self.store.get(topic_id)
        return self.composer.answer(question, topic)

    def best_image(self, text: str, topic_id: str | None = None) -> ImageAsset | None:
        return self.images.best_match(text, topic_id)

    def images_for_topic(self, topic_id: str) -> list[ImageAsset]:
        return self.images.by_topic(topic_id)

    def illustrate(self, topic_id: str, question: str, answer: str) -> ImageAsset | None:
        """Best image for a question and its answer, in the topic's image category."""
        category = self.category_policy.resolve(topic_id)
        return self.best_image(f"{question}\n\n{answer}", category)
