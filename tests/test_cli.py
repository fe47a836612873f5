import sys

import pytest

from rag_tutor import ask, ingest
from rag_tutor.topic_index import build_topic
from rag_tutor.topic_store import TopicStore


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("RAG_TUTOR_DATA_DIR", str(tmp_path))
    return tmp_path


def test_ask_args():
    args = ask.parse_args(["sound", "Why is there an echo?", "--model", "claude"])
    assert args["topic_id"] == "sound"
    assert args["question"] == "Why is there an echo?"
    assert args["model"] == "claude"
    assert not args["images"]


def test_ask_flags():
    assert ask.parse_args(["--list-models"])["list_models"]
    args = ask.parse_args(["sound", "--images", "--verbose"])
    assert args["images"]
    assert args["question"] is None


def test_ingest_args():
    args = ingest.parse_args(["chapters/sound.pdf", "--title", "Chapter 12: Sound", "--id", "sound"])
    assert args == {"filepath": "chapters/sound.pdf", "title": "Chapter 12: Sound", "topic_id": "sound"}
    assert ingest.parse_args([])["filepath"] is None


def test_ingest_rejects_non_utf8_file(data_dir, monkeypatch, capsys):
    path = data_dir / "chapter.txt"
    path.write_bytes("Résonance is sound.".encode("latin-1"))
    monkeypatch.setattr(sys, "argv", ["tutor-ingest", str(path)])

    with pytest.raises(SystemExit) as exc_info:
        ingest.main()

    assert exc_info.value.code == 1
    assert "Error:" in capsys.readouterr().out
    assert not (data_dir / "topics").exists()


def test_ingest_rejects_path_like_id(data_dir, monkeypatch, capsys):
    path = data_dir / "chapter.txt"
    path.write_text("Sound is a wave.", encoding="utf-8")
    monkeypatch.setattr(sys, "argv", ["tutor-ingest", str(path), "--id", "../escape"])

    with pytest.raises(SystemExit) as exc_info:
        ingest.main()

    assert exc_info.value.code == 1
    assert "invalid --id" in capsys.readouterr().out
    assert not (data_dir / "escape.json").exists()


def test_images_listing_needs_no_api_key(data_dir, embedder, monkeypatch, capsys):
    for var in ("GEMINI_API_KEY", "GOOGLE_API_KEY"):
        monkeypatch.delenv(var, raising=False)
    TopicStore(data_dir / "topics").put(build_topic("Sound is a wave.", embedder, topic_id="sound"))
    monkeypatch.setattr(sys, "argv", ["tutor-ask", "sound", "--images"])

    ask.main()

    out = capsys.readouterr().out
    assert "Images for category 'sound': 0" in out
    assert "Error" not in out
