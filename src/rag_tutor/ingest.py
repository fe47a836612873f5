"""
ingest.py — Turn a chapter file into a stored topic
===================================================

Usage:
  uv run tutor-ingest chapters/sound.pdf
  uv run tutor-ingest chapters/sound.pdf --title "Chapter 12: Sound" --id sound
  uv run tutor-ingest notes.txt
"""

import logging
import sys
from pathlib import Path

from rag_tutor.chunkers import print_stats
from rag_tutor.config import Settings
from rag_tutor.embedder import Embedder
from rag_tutor.pdf_parser import DocumentLoadError, load_document
from rag_tutor.topic_index import EmptyCorpusError, build_topic
from rag_tutor.topic_store import TopicStore, is_valid_topic_id


def parse_args(argv: list[str]) -> dict:
    """
    Parses:
      tutor-ingest <file> [--title T] [--id ID]
    """
    args = {"filepath": None, "title": None, "topic_id": None}

    positional = []
    i = 0
    while i < len(argv):
        if argv[i] == "--title" and i + 1 < len(argv):
            args["title"] = argv[i + 1]
            i += 2
        elif argv[i] == "--id" and i + 1 < len(argv):
            args["topic_id"] = argv[i + 1]
            i += 2
        elif argv[i].startswith("--"):
            i += 1  # skip unknown flags
        else:
            positional.append(argv[i])
            i += 1

    if positional:
        args["filepath"] = positional[0]
    return args


def main():
    """Entry point for `uv run tutor-ingest`"""
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")

    args = parse_args(sys.argv[1:])
    if not args["filepath"]:
        print("Usage:")
        print('  uv run tutor-ingest chapters/sound.pdf')
        print('  uv run tutor-ingest chapters/sound.pdf --title "Chapter 12: Sound" --id sound')
        sys.exit(1)

    if args["topic_id"] is not None and not is_valid_topic_id(args["topic_id"]):
        print(f"  Error: invalid --id {args['topic_id']!r} (use letters, digits, '_', '-' or '.')")
        sys.exit(1)

    filepath = Path(args["filepath"])
    print(f"\n[1/3] Reading {filepath.name}...")
    try:
        text = load_document(filepath)
    except (FileNotFoundError, ImportError, DocumentLoadError) as e:
        print(f"  Error: {e}")
        sys.exit(1)
    print(f"  {len(text):,} chars")

    print(f"\n[2/3] Chunking & embedding...")
    embedder = Embedder(model_name=settings.embed_model)
    try:
        topic = build_topic(
            text, embedder,
            title=args["title"] or filepath.stem,
            topic_id=args["topic_id"],
            max_chars=settings.max_chunk_chars,
        )
    except EmptyCorpusError as e:
        print(f"  Error: {e}")
        sys.exit(1)
    print_stats([c.text for c in topic.chunks])

    unembedded = sum(1 for c in topic.chunks if len(c.embedding) == 0)
    if unembedded:
        print(f"  ⚠ {unembedded} chunks have no embedding and will never be retrieved.")

    print(f"\n[3/3] Saving...")
    store = TopicStore(settings.topics_dir)
    if topic.id in store:
        print(f"  Replacing existing topic {topic.id}")
    store.put(topic)

    print(f"\n  topicId: {topic.id}")
    print(f"  title:   {topic.title}")
    print(f"  chunks:  {len(topic.chunks)}")
    print(f'\nAsk away: uv run tutor-ask {topic.id} "your question"')
