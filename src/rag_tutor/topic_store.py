"""
topic_store.py — Persist topics as one JSON file each
=====================================================

Layout:
  <directory>/<topic_id>.json   — {id, title, chunks: [{id, text, embedding}], createdAt}

The store is a write-through cache:
  - put(topic): write the file, then remember it in memory
  - get(id):    memory first, else load the file, else UnknownTopicError
  - load_all(): warm the cache at startup

Topic ids become file names, so they are limited to letters, digits,
"_", "-" and "." (and may not be "." or ".."). Files are written to a
temp file in the same directory and renamed into place, so a crash
mid-write never leaves a truncated <id>.json behind.

Embeddings are stored as plain float lists. That's bulky, but a chapter
has at most a few hundred chunks and the file stays readable.
"""

import json
import logging
import os
import re
import tempfile
from pathlib import Path

from rag_tutor.topic_index import Topic

logger = logging.getLogger(__name__)

_TOPIC_ID = re.compile(r"[A-Za-z0-9_.-]+")


def is_valid_topic_id(topic_id: str) -> bool:
    return bool(_TOPIC_ID.fullmatch(topic_id)) and topic_id not in (".", "..")


class UnknownTopicError(KeyError):
    """No topic with this id in memory or on disk."""

    def __init__(self, topic_id: str):
        super().__init__(topic_id)
        self.topic_id = topic_id

    def __str__(self):
        return f"Unknown topicId: {self.topic_id!r}"


class TopicStore:
    """Repository of topics backed by a directory of JSON files."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._topics: dict[str, Topic] = {}

    def _path(self, topic_id: str) -> Path:
        if not is_valid_topic_id(topic_id):
            raise ValueError(f"Invalid topicId {topic_id!r}: use letters, digits, '_', '-' or '.'")
        return self.directory / f"{topic_id}.json"

    def put(self, topic: Topic):
        """Write the topic to disk, then cache it. Raises ValueError for an invalid id."""
        path = self._path(topic.id)
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=f".{topic.id}_", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(topic.to_dict(), f, indent=2)
            os.replace(tmp_path, path)
        except Exception:
            os.unlink(tmp_path)
            raise
        self._topics[topic.id] = topic
        logger.info("Saved topic %s (%d chunks)", topic.id, len(topic.chunks))

    def get(self, topic_id: str) -> Topic:
        """Cached topic, else the one on disk. Raises UnknownTopicError."""
        topic = self._topics.get(topic_id)
        if topic is not None:
            return topic

        if not is_valid_topic_id(topic_id):
            raise UnknownTopicError(topic_id)
        path = self._path(topic_id)
        if not path.exists():
            raise UnknownTopicError(topic_id)

        topic = self._read(path)
        self._topics[topic.id] = topic
        return topic

    def __contains__(self, topic_id: str) -> bool:
        if topic_id in self._topics:
            return True
        return is_valid_topic_id(topic_id) and self._path(topic_id).exists()

    def ids(self) -> list[str]:
        on_disk = {p.stem for p in self.directory.glob("*.json")}
        return sorted(on_disk | set(self._topics))

    def load_all(self) -> int:
        """Load every topic file into memory. Unreadable files are skipped."""
        loaded = 0
        for path in sorted(self.directory.glob("*.json")):
            try:
                topic = self._read(path)
            except (OSError, ValueError, KeyError) as exc:
                logger.warning("Skipping unreadable topic file %s: %s", path.name, exc)
                continue
            self._topics[topic.id] = topic
            loaded += 1
        logger.info("Loaded %d topics from %s", loaded, self.directory)
        return loaded

    @staticmethod
    def _read(path: Path) -> Topic:
        with open(path, encoding="utf-8") as f:
            return Topic.from_dict(json.load(f))
