"""
config.py — Settings from environment variables
================================================

Every knob has a default, so a bare `tutor-ask` works out of the box.
Override with RAG_TUTOR_* variables:

  RAG_TUTOR_DATA_DIR             ./data
  RAG_TUTOR_TOPICS_DIR           <data>/topics
  RAG_TUTOR_IMAGE_CATALOG        <data>/images.json
  RAG_TUTOR_STATIC_IMAGES_URL    /static/images
  RAG_TUTOR_EMBED_MODEL          all-MiniLM-L6-v2
  RAG_TUTOR_MODEL                gemini            (generator preset)
  RAG_TUTOR_TOP_K                4
  RAG_TUTOR_RELEVANCE_THRESHOLD  0.3
  RAG_TUTOR_MAX_CHUNK_CHARS      800
  RAG_TUTOR_IMAGE_CATEGORY       sound             (empty → no default)
  RAG_TUTOR_GENERATION_TIMEOUT   60                (seconds)
  RAG_TUTOR_LOG_LEVEL            INFO

API keys are read by the generator backends themselves.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from rag_tutor.chunkers import DEFAULT_MAX_CHARS
from rag_tutor.embedder import DEFAULT_MODEL
from rag_tutor.generator import DEFAULT_RELEVANCE_THRESHOLD, DEFAULT_TOP_K
from rag_tutor.image_index import DEFAULT_CATEGORY

ENV_PREFIX = "RAG_TUTOR_"


def _clean_env(name: str, default: str = "") -> str:
    value = os.getenv(ENV_PREFIX + name, default)
    return value.strip().strip('"').strip("'")


def _env_number(name: str, default, cast):
    raw = _clean_env(name)
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}")


@dataclass
class Settings:
    data_dir: Path = Path("data")
    topics_dir: Path = Path("data/topics")
    image_catalog: Path = Path("data/images.json")
    static_images_url: str = "/static/images"
    embed_model: str = DEFAULT_MODEL
    model_preset: str = "gemini"
    top_k: int = DEFAULT_TOP_K
    relevance_threshold: float = DEFAULT_RELEVANCE_THRESHOLD
    max_chunk_chars: int = DEFAULT_MAX_CHARS
    image_category: str | None = DEFAULT_CATEGORY
    generation_timeout: float = 60.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        data_dir = Path(_clean_env("DATA_DIR", "data"))
        topics_dir = _clean_env("TOPICS_DIR")
        catalog = _clean_env("IMAGE_CATALOG")
        category = os.getenv(ENV_PREFIX + "IMAGE_CATEGORY")

        settings = cls(
            data_dir=data_dir,
            topics_dir=Path(topics_dir) if topics_dir else data_dir / "topics",
            image_catalog=Path(catalog) if catalog else data_dir / "images.json",
            static_images_url=_clean_env("STATIC_IMAGES_URL", "/static/images"),
            embed_model=_clean_env("EMBED_MODEL", DEFAULT_MODEL),
            model_preset=_clean_env("MODEL", "gemini"),
            top_k=_env_number("TOP_K", DEFAULT_TOP_K, int),
            relevance_threshold=_env_number("RELEVANCE_THRESHOLD", DEFAULT_RELEVANCE_THRESHOLD, float),
            max_chunk_chars=_env_number("MAX_CHUNK_CHARS", DEFAULT_MAX_CHARS, int),
            image_category=(category.strip() or None) if category is not None else DEFAULT_CATEGORY,
            generation_timeout=_env_number("GENERATION_TIMEOUT", 60.0, float),
            log_level=_clean_env("LOG_LEVEL", "INFO").upper(),
        )
        if settings.top_k <= 0:
            raise ValueError(f"{ENV_PREFIX}TOP_K must be positive")
        if settings.max_chunk_chars <= 0:
            raise ValueError(f"{ENV_PREFIX}MAX_CHUNK_CHARS must be positive")
        return settings
