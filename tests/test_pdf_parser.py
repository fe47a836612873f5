import pytest

from rag_tutor.pdf_parser import DocumentLoadError, _strip_page_furniture, clean_text, load_document


def test_clean_text_fixes_extraction_artifacts():
    raw = "The ﬁrst vibra-\ntion\n\n\n\nmakes “sound” — it’s a wave.  "
    assert clean_text(raw) == "The first vibration\n\nmakes \"sound\" -- it's a wave."


def test_strip_page_furniture():
    page = "12\nSound travels.\nMore text\nPage 3"
    assert _strip_page_furniture(page) == "Sound travels.\nMore text"


def test_furniture_only_at_page_edges():
    page = "Intro line\nSecond line\n42\nMiddle text\nAlmost done\nLast line"
    assert "42" in _strip_page_furniture(page)


def test_load_text_file(tmp_path):
    path = tmp_path / "chapter.txt"
    path.write_text("Sound needs a medium.\n\n\n\nIt can’t cross a vacuum.", encoding="utf-8")
    assert load_document(path) == "Sound needs a medium.\n\nIt can't cross a vacuum."


def test_load_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_document(tmp_path / "missing.txt")
    with pytest.raises(FileNotFoundError):
        load_document(tmp_path / "missing.pdf")


def test_non_utf8_text_is_rejected(tmp_path):
    path = tmp_path / "chapter.txt"
    path.write_bytes("Café noise is sound.".encode("latin-1"))
    with pytest.raises(DocumentLoadError, match="not UTF-8"):
        load_document(path)


def test_unreadable_pdf_is_rejected(tmp_path):
    path = tmp_path / "chapter.pdf"
    path.write_bytes(b"")
    with pytest.raises(DocumentLoadError):
        load_document(path)
