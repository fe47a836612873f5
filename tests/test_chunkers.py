import pytest

from rag_tutor.chunkers import SentenceChunker, chunk_stats, chunk_text, split_sentences


def test_short_text_is_one_chunk():
    text = "The sky is blue. Water is wet. Fire is hot."
    assert chunk_text(text, 800) == [text]


def test_short_text_chunk_is_trimmed():
    assert chunk_text("  The sky is blue. Water is wet.  ") == ["The sky is blue. Water is wet."]


def test_empty_text_gives_no_chunks():
    assert chunk_text("") == []
    assert chunk_text("   \n\t ") == []


def test_sentence_boundaries():
    assert split_sentences("One. Two!\n\nThree?  Four.") == ["One.", "Two!", "Three?", "Four."]


def test_no_split_without_whitespace():
    assert split_sentences("Version 1.5 is out.") == ["Version 1.5 is out."]


def test_exact_fit_stays_together():
    assert chunk_text("Aaaa. Bbbb.", max_chars=11) == ["Aaaa. Bbbb."]
    assert chunk_text("Aaaa. Bbbb.", max_chars=10) == ["Aaaa.", "Bbbb."]


def test_overlong_sentence_kept_whole():
    chunks = chunk_text("This sentence is long. Hi.", max_chars=10)
    assert chunks == ["This sentence is long.", "Hi."]


def test_chunks_respect_limit():
    sentences = [f"Sentence number {i} talks about sound waves." for i in range(40)]
    sentences.insert(7, "This one is a very long sentence that is definitely longer than the limit allows.")
    text = " ".join(sentences)

    chunks = chunk_text(text, max_chars=120)

    assert len(chunks) > 1
    for chunk in chunks:
        assert len(chunk) <= 120 or len(split_sentences(chunk)) == 1


def test_rejoining_chunks_restores_sentences():
    text = "Sound is a wave.\nIt needs a medium!   Can it cross a vacuum? No. " * 20
    chunks = chunk_text(text, max_chars=100)
    assert " ".join(chunks) == " ".join(s for s in split_sentences(text) if s)


def test_invalid_max_chars():
    with pytest.raises(ValueError):
        chunk_text("Hello.", max_chars=0)
    with pytest.raises(ValueError):
        SentenceChunker(max_chars=-1)


def test_sentence_chunker_uses_configured_limit():
    chunker = SentenceChunker(max_chars=10)
    assert chunker.chunk("Aaaa. Bbbb.") == ["Aaaa.", "Bbbb."]


def test_chunk_stats():
    stats = chunk_stats(["ab", "abcd"])
    assert stats["count"] == 2
    assert stats["min_chars"] == 2
    assert stats["max_chars"] == 4
    assert stats["avg_chars"] == 3
    assert chunk_stats([]) == {"count": 0}
