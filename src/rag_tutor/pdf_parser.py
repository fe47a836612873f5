"""
pdf_parser.py — Get plain text out of a chapter file
=====================================================

The tutor only needs the chapter's running text — no sections, no
layout. Sentence-based chunking does the rest.

But PDFs still need cleaning, or the chunker sees garbage:
  - "algo-\\nrithm" hyphenation across line breaks
  - ligatures (ﬁ, ﬂ) and curly quotes
  - page numbers / running headers at the top and bottom of pages

Supported:
  .pdf  — PyMuPDF, page by page
  other — read as UTF-8 text

A file that can't be decoded or parsed raises DocumentLoadError.
"""

import re
from pathlib import Path


class DocumentLoadError(ValueError):
    """The file exists but its text can't be extracted."""


# ==================== CLEANING ====================

HEADER_FOOTER_PATTERNS = [
    r'^[\d]+$',                                    # bare page numbers
    r'^page\s+\d+',                                # "Page 3"
    r'^\d+\s+of\s+\d+',                            # "3 of 12"
    r'^(chapter|unit)\s+\d+\s*$',                  # running chapter headers
    r'^reprint\s+\d{4}',
]
_header_footer_re = [re.compile(p, re.IGNORECASE) for p in HEADER_FOOTER_PATTERNS]


def _is_header_footer(line: str) -> bool:
    """Detect if a line is likely a page header or footer."""
    line = line.strip()
    if not line or len(line) > 150:
        return False
    return any(p.match(line) for p in _header_footer_re)


def _strip_page_furniture(page_text: str) -> str:
    """Drop header/footer lines from the first and last two lines of a page."""
    lines = page_text.split('\n')
    kept = [
        line for i, line in enumerate(lines)
        if not ((i < 2 or i >= len(lines) - 2) and _is_header_footer(line))
    ]
    return '\n'.join(kept)


def clean_text(text: str) -> str:
    """Clean extracted text — fix common PDF extraction artifacts."""
    # Fix hyphenated line breaks: "algo-\nrithm" → "algorithm"
    text = re.sub(r'(\w)-\n(\w)', r'\1\2', text)

    # Collapse multiple newlines but preserve paragraph breaks
    text = re.sub(r'\n{3,}', '\n\n', text)

    replacements = {
        'ﬁ': 'fi', 'ﬂ': 'fl', 'ﬀ': 'ff', 'ﬃ': 'ffi', 'ﬄ': 'ffl',
        '\u2019': "'", '\u2018': "'", '\u201c': '"', '\u201d': '"',
        '\u2013': '-', '\u2014': '--',
    }
    for old, new in replacements.items():
        text = text.replace(old, new)

    return text.strip()


# ==================== LOADERS ====================

def extract_pdf_text(filepath: str | Path) -> str:
    """Extract and clean the text of every page of a PDF."""
    try:
        import fitz  # PyMuPDF
    except ImportError:
        raise ImportError("pip install pymupdf  # required for PDF parsing")

    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"PDF not found: {filepath}")

    try:
        with fitz.open(str(filepath)) as doc:
            pages = [_strip_page_furniture(page.get_text("text")) for page in doc]
    except RuntimeError as exc:
        # fitz.FileDataError and friends subclass RuntimeError
        raise DocumentLoadError(f"Could not read PDF {filepath.name}: {exc}") from exc
    return clean_text('\n\n'.join(pages))


def load_document(filepath: str | Path) -> str:
    """Plain text of a chapter file (.pdf or any UTF-8 text file)."""
    filepath = Path(filepath)
    if filepath.suffix.lower() == ".pdf":
        return extract_pdf_text(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"File not found: {filepath}")
    try:
        text = filepath.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise DocumentLoadError(f"{filepath.name} is not UTF-8 text: {exc}") from exc
    return clean_text(text)
