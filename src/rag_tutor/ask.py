"""
ask.py — Ask questions about an ingested chapter
=================================================

Usage:
  uv run tutor-ask sound "Why can't sound travel through a vacuum?"

  # Switch models with --model
  uv run tutor-ask sound "query" --model claude

  # Interactive mode (keep asking, topic stays loaded)
  uv run tutor-ask sound

  # Images available for the topic's category
  uv run tutor-ask sound --images

  # List available presets
  uv run tutor-ask --list-models
"""

import logging
import sys

from rag_tutor.config import Settings
from rag_tutor.generator import (
    AnswerComposer,
    GenerationError,
    backend_from_preset,
    list_presets,
    print_answer,
)
from rag_tutor.topic_store import UnknownTopicError
from rag_tutor.tutor import Tutor


def parse_args(argv: list[str]) -> dict:
    """
    Parses:
      tutor-ask <topicId> [question] [--model preset] [--list-models] [--images]
    """
    args = {
        "topic_id": None,
        "question": None,
        "model": None,
        "list_models": False,
        "images": False,
    }

    positional = []
    i = 0
    while i < len(argv):
        if argv[i] == "--model" and i + 1 < len(argv):
            args["model"] = argv[i + 1]
            i += 2
        elif argv[i] == "--list-models":
            args["list_models"] = True
            i += 1
        elif argv[i] == "--images":
            args["images"] = True
            i += 1
        elif argv[i].startswith("--"):
            i += 1  # skip unknown flags
        else:
            positional.append(argv[i])
            i += 1

    if len(positional) >= 1:
        args["topic_id"] = positional[0]
    if len(positional) >= 2:
        args["question"] = positional[1]

    return args


def print_images(tutor: Tutor, topic_id: str, static_prefix: str):
    category = tutor.category_policy.resolve(topic_id)
    images = tutor.images_for_topic(category) if category else []
    print(f"\n  Images for category {category!r}: {len(images)}")
    for img in images:
        info = img.to_public_dict(static_prefix)
        print(f"    {info['id']:<20} {info['title']}  ({info['url']})")


def ask(tutor: Tutor, topic_id: str, question: str, static_prefix: str):
    """Answer one question and show the illustrative image."""
    print(f"\n  Thinking...")
    try:
        result = tutor.ask(topic_id, question)
    except GenerationError as e:
        print(f"  Error: could not generate an answer ({e})")
        return None

    print_answer(result)

    image = tutor.illustrate(topic_id, question, result.answer)
    if image:
        info = image.to_public_dict(static_prefix)
        print(f"\n  Illustration: {info['title']}  ({info['url']})")
        print(f"    {info['description']}")
    return result


def main():
    """Entry point for `uv run tutor-ask`"""
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")

    args = parse_args(sys.argv[1:])

    if args["list_models"]:
        print(list_presets())
        print("\nUsage: uv run tutor-ask <topicId> \"question\" --model <preset>")
        sys.exit(0)

    if not args["topic_id"]:
        print("Usage:")
        print('  uv run tutor-ask sound "Why can\'t sound travel through a vacuum?"')
        print('  uv run tutor-ask sound "query" --model claude')
        print('  uv run tutor-ask sound --images')
        print('  uv run tutor-ask --list-models')
        sys.exit(1)

    if args["model"]:
        settings.model_preset = args["model"]

    topic_id = args["topic_id"]
    prefix = settings.static_images_url

    print(f"\n{'='*70}")
    print(f"  CHAPTER TUTOR")
    print(f"  Topic: {topic_id}")
    print(f"  Model: {settings.model_preset}")
    print(f"{'='*70}")

    try:
        tutor = Tutor.from_settings(settings)
    except (ValueError, ImportError) as e:
        print(f"  Error: {e}")
        sys.exit(1)

    try:
        topic = tutor.store.get(topic_id)
    except UnknownTopicError as e:
        print(f"  Error: {e}")
        print(f"  Known topics: {', '.join(tutor.store.ids()) or '(none)'}")
        sys.exit(1)
    print(f"  {topic.title} — {len(topic.chunks)} chunks")

    if args["images"]:
        print_images(tutor, topic_id, prefix)
        return

    try:
        composer = tutor.composer
    except (ValueError, ImportError) as e:
        print(f"  Error: {e}")
        sys.exit(1)
    print(f"  Generator: {composer.backend.name} ({composer.model})")

    # Single question mode
    if args["question"]:
        ask(tutor, topic_id, args["question"], prefix)
        return

    # Interactive mode
    print(f"\n{'='*70}")
    print(f"  Ready! Ask questions about the chapter. (model: {settings.model_preset})")
    print(f"  Type 'quit' to stop, 'switch <preset>' to change model.")
    print(f"{'='*70}")

    while True:
        try:
            user_input = input("\n> ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nBye!")
            break

        if not user_input:
            continue
        if user_input.lower() in ("quit", "exit", "q"):
            print("Bye!")
            break

        # Allow switching models mid-session
        if user_input.lower().startswith("switch "):
            new_preset = user_input.split(None, 1)[1].strip()
            try:
                backend, model = backend_from_preset(new_preset, timeout=settings.generation_timeout)
            except (ValueError, ImportError) as e:
                print(f"  Error: {e}")
                continue
            tutor.composer = AnswerComposer(
                tutor.embedder,
                backend=backend,
                model=model,
                top_k=settings.top_k,
                relevance_threshold=settings.relevance_threshold,
            )
            print(f"  Switched to {new_preset}")
            continue

        if user_input.lower() == "models":
            print(list_presets())
            continue

        ask(tutor, topic_id, user_input, prefix)
