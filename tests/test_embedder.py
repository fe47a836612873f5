import threading
import time

import numpy as np
import pytest

from rag_tutor.embedder import Embedder, as_vector, cosine_similarity, empty_vector


class FakeModel:
    def __init__(self, fail=False):
        self.fail = fail

    def get_sentence_embedding_dimension(self):
        return 3

    def encode(self, text, **kwargs):
        if self.fail:
            raise RuntimeError("inference exploded")
        assert kwargs["normalize_embeddings"] is True
        v = np.array([len(text) + 1.0, 1.0, 0.0], dtype=np.float32)
        return v / np.linalg.norm(v)


# ==================== SIMILARITY ====================

@pytest.mark.parametrize("vec", [[1.0, 2.0, 3.0], [-0.5, 0.25, 4.0, 1e-3], [7.0]])
def test_self_similarity_is_one(vec):
    assert cosine_similarity(vec, vec) == pytest.approx(1.0)


def test_similarity_is_symmetric():
    rng = np.random.default_rng(7)
    for _ in range(20):
        a, b = rng.normal(size=16), rng.normal(size=16)
        assert cosine_similarity(a, b) == cosine_similarity(b, a)


def test_empty_vectors_score_zero():
    assert cosine_similarity([], [1.0, 2.0]) == 0.0
    assert cosine_similarity([1.0, 2.0], []) == 0.0
    assert cosine_similarity(empty_vector(), empty_vector()) == 0.0


def test_zero_norm_scores_zero():
    assert cosine_similarity([0.0, 0.0], [1.0, 2.0]) == 0.0


def test_mismatched_lengths_truncate():
    # Only the first two dims count, and the norms use them too
    assert cosine_similarity([1.0, 0.0, 5.0], [1.0, 0.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [-1.0, 0.0, 3.0]) == pytest.approx(-1.0)


def test_similarity_is_bounded():
    rng = np.random.default_rng(3)
    for _ in range(20):
        score = cosine_similarity(rng.normal(size=8), rng.normal(size=5))
        assert -1.0 <= score <= 1.0


def test_vectors_are_read_only():
    vec = as_vector([1.0, 2.0])
    with pytest.raises(ValueError):
        vec[0] = 3.0


# ==================== EMBEDDER ====================

def test_model_loads_lazily_and_once():
    emb = Embedder()
    loads = []

    def load():
        loads.append(1)
        return FakeModel()

    emb._load_model = load
    assert loads == []

    first = emb.embed("sound")
    second = emb.embed("")

    assert len(loads) == 1
    assert emb.dim == 3
    assert first.shape == (3,) and second.shape == (3,)
    assert np.linalg.norm(first) == pytest.approx(1.0)
    assert not first.flags.writeable


def test_concurrent_first_calls_share_one_load():
    emb = Embedder()
    loads = []

    def slow_load():
        loads.append(1)
        time.sleep(0.05)
        return FakeModel()

    emb._load_model = slow_load
    barrier = threading.Barrier(8)
    results = []

    def worker():
        barrier.wait()
        results.append(emb.embed("echo"))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(loads) == 1
    assert len(results) == 8
    assert all(r.shape == (3,) for r in results)


def test_concurrent_callers_share_a_failed_load():
    emb = Embedder()
    loads = []

    def slow_broken_load():
        loads.append(1)
        time.sleep(0.05)
        raise OSError("download failed")

    emb._load_model = slow_broken_load
    barrier = threading.Barrier(8)
    results = []

    def worker():
        barrier.wait()
        results.append(emb.embed("echo"))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(loads) == 1
    assert [r.shape for r in results] == [(0,)] * 8

    # A later call starts a fresh attempt
    emb._load_model = FakeModel
    assert emb.embed("echo").shape == (3,)


def test_load_failure_returns_empty_vector_and_retries():
    emb = Embedder()

    def broken():
        raise OSError("model not found")

    emb._load_model = broken
    assert emb.embed("sound").shape == (0,)
    assert emb.dim is None

    emb._load_model = FakeModel
    assert emb.embed("sound").shape == (3,)


def test_inference_failure_returns_empty_vector():
    emb = Embedder()
    emb._load_model = lambda: FakeModel(fail=True)
    assert len(emb.embed("sound")) == 0


def test_embed_many_degrades_per_item():
    emb = Embedder()

    class Picky(FakeModel):
        def encode(self, text, **kwargs):
            if text == "bad":
                raise RuntimeError("nope")
            return super().encode(text, **kwargs)

    emb._load_model = Picky
    vectors = emb.embed_many(["good", "bad", "also good"])
    assert [len(v) for v in vectors] == [3, 0, 3]
