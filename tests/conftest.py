"""Shared fakes: a bag-of-words embedder and a scripted LLM backend."""

import re

import pytest

from rag_tutor.embedder import as_vector, empty_vector
from rag_tutor.generator import LLMBackend

VOCAB = [
    "photosynthesis", "chlorophyll", "sunlight", "plants",
    "volcanoes", "magma", "lava",
    "sound", "vibration", "wave", "echo", "vacuum",
    "sky", "water", "fire",
]


class FakeEmbedder:
    """Counts vocabulary words. Texts in fail_on get the empty vector."""

    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.calls = []

    def embed(self, text):
        self.calls.append(text)
        if text in self.fail_on:
            return empty_vector()
        tokens = re.findall(r"[a-z]+", text.lower())
        return as_vector([float(tokens.count(w)) for w in VOCAB])

    def embed_many(self, texts):
        return [self.embed(t) for t in texts]


class FakeBackend(LLMBackend):
    """Returns scripted replies in order and records every call."""

    def __init__(self, replies=None, error=None):
        self.replies = list(replies or [])
        self.error = error
        self.calls = []

    @property
    def name(self):
        return "fake"

    def call(self, system, user):
        self.calls.append((system, user))
        if self.error is not None:
            raise self.error
        reply = self.replies.pop(0) if self.replies else "An answer."
        return reply, {"input_tokens": 10, "output_tokens": 5}


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def backend():
    return FakeBackend()


PHOTOSYNTHESIS = (
    "Photosynthesis lets plants turn sunlight into sugar. "
    "Chlorophyll in plants captures sunlight for photosynthesis."
)
VOLCANOES = "Volcanoes erupt when magma rises. Lava flows from volcanoes."


@pytest.fixture
def two_topic_text():
    """Chunks into [photosynthesis, volcanoes] with max_chars=120."""
    return f"{PHOTOSYNTHESIS} {VOLCANOES}"
