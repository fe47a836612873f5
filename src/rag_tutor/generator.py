"""
generator.py — Grounded answers with a relevance-gated fallback
================================================================

This is where a question becomes an answer:
  Question → embed → top-4 chunks → LLM restricted to those chunks → answer

The refusal problem:
  The LLM is told to say "I am not sure based on this chapter." when the
  chunks don't support an answer. Sometimes that refusal is correct (the
  question is off-topic). Sometimes it isn't — the chapter covers the
  question, but the 4 retrieved chunks happened to miss the relevant one.

The fallback gate — BOTH must hold:
  1. the answer contains the refusal phrase
  2. the question's best similarity against EVERY chunk of the chapter
     (not just the top 4) is above the relevance threshold (0.3)

  Then we ask the LLM again, unconstrained, with just the question, and
  tag the answer with a disclaimer. Off-topic questions fail (2) and
  keep their refusal.

Provider-agnostic:
  Same adapter pattern for every LLM: system prompt + user message → text.
  - Google Gemini (default — gemini-2.5-flash)
  - Anthropic Claude (native SDK)
  - OpenAI-compatible APIs (GPT, OpenRouter, DeepSeek, etc.)
  - Ollama (local models, no API key needed)

API keys (PowerShell):
  $env:GEMINI_API_KEY = "..."                     # Gemini
  $env:ANTHROPIC_API_KEY = "sk-ant-..."           # Claude
  $env:OPENAI_API_KEY = "sk-..."                  # OpenAI / OpenRouter

Usage:
  from rag_tutor.generator import AnswerComposer
  composer = AnswerComposer(embedder, preset="gemini")
  result = composer.answer("Why does sound need a medium?", topic)
"""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from rag_tutor.embedder import Embedder
from rag_tutor.topic_index import RetrievalResult, Topic, max_similarity, retrieve_top_k

logger = logging.getLogger(__name__)

REFUSAL_PHRASE = "I am not sure based on this chapter."
FALLBACK_DISCLAIMER = (
    "\n\n*Note: This answer was generated outside the chapter context and may be open-ended.*"
)
DEFAULT_TOP_K = 4
DEFAULT_RELEVANCE_THRESHOLD = 0.3


class GenerationError(RuntimeError):
    """The LLM call failed (network, quota, timeout, bad response)."""


# ==================== DATA STRUCTURES ====================

@dataclass
class AnswerResult:
    """Final answer plus provenance."""
    answer: str
    used_chunks: list[RetrievalResult] = field(default_factory=list)
    fallback_used: bool = False
    question: str = ""
    max_similarity: float = 0.0
    model: str = ""
    provider: str = ""
    usage: dict = field(default_factory=dict)

    def summary(self) -> str:
        lines = [
            f"Question: {self.question!r}",
            f"Provider: {self.provider} | Model: {self.model}",
            f"Chunks used: {[c.chunk_id for c in self.used_chunks]}",
            f"Max similarity: {self.max_similarity:.3f}",
            f"Fallback used: {self.fallback_used}",
        ]
        if self.usage:
            inp = self.usage.get('input_tokens', '?')
            out = self.usage.get('output_tokens', '?')
            lines.append(f"Tokens: {inp} in, {out} out")
        return "\n".join(lines)


# ==================== PROMPTS ====================

def build_context_block(results: list[RetrievalResult]) -> str:
    """Label chunks "Chunk 1", "Chunk 2", ... in retrieval order."""
    return "\n\n".join(f"Chunk {i}:\n{r.text}" for i, r in enumerate(results, 1))


def build_system_prompt(results: list[RetrievalResult]) -> str:
    return f"""You are an AI Tutor for a specific textbook chapter.
You must answer ONLY using the provided context chunks.
If the answer is not clearly supported by the context, say:
"{REFUSAL_PHRASE}"

Context:
{build_context_block(results)}"""


def build_user_message(question: str) -> str:
    return f"Question: {question}\nAnswer in a clear, student-friendly way."


# ==================== LLM BACKENDS ====================

class LLMBackend(ABC):
    """
    Abstract base for LLM providers.

    Every backend implements one method: call().
    Takes an optional system prompt + user message, returns (text, usage_dict).
    """

    @abstractmethod
    def call(self, system: str | None, user: str) -> tuple[str, dict]:
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        ...


class GeminiBackend(LLMBackend):
    """Google Gemini via google-generativeai."""

    def __init__(self, model: str, max_tokens: int, temperature: float,
                 timeout: float | None = None, api_key: str | None = None):
        try:
            import google.generativeai as genai
        except ImportError:
            raise ImportError("pip install google-generativeai")

        api_key = api_key or os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY")
        if not api_key:
            raise ValueError(
                "GEMINI_API_KEY not set.\n"
                "PowerShell: $env:GEMINI_API_KEY = '...'"
            )
        genai.configure(api_key=api_key)
        self.client = genai.GenerativeModel(model)
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout

    @property
    def name(self) -> str:
        return "gemini"

    def call(self, system: str | None, user: str) -> tuple[str, dict]:
        # Gemini takes the system prompt as the first content part
        parts = [system, user] if system else user
        request_options = {"timeout": self.timeout} if self.timeout else None
        response = self.client.generate_content(
            parts,
            generation_config={
                "max_output_tokens": self.max_tokens,
                "temperature": self.temperature,
            },
            request_options=request_options,
        )
        usage = {}
        meta = getattr(response, "usage_metadata", None)
        if meta:
            usage = {
                "input_tokens": meta.prompt_token_count,
                "output_tokens": meta.candidates_token_count,
            }
        return response.text, usage


class ClaudeBackend(LLMBackend):
    """Anthropic Claude via native SDK."""

    def __init__(self, model: str, max_tokens: int, temperature: float,
                 timeout: float | None = None):
        try:
            import anthropic
        except ImportError:
            raise ImportError("pip install anthropic")

        api_key = os.environ.get("ANTHROPIC_API_KEY")
        if not api_key:
            raise ValueError(
                "ANTHROPIC_API_KEY not set.\n"
                "PowerShell: $env:ANTHROPIC_API_KEY = 'sk-ant-...'"
            )
        kwargs = {"api_key": api_key}
        if timeout:
            kwargs["timeout"] = timeout
        self.client = anthropic.Anthropic(**kwargs)
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    @property
    def name(self) -> str:
        return "claude"

    def call(self, system: str | None, user: str) -> tuple[str, dict]:
        kwargs = {}
        if system:
            kwargs["system"] = system
        response = self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            messages=[{"role": "user", "content": user}],
            **kwargs,
        )
        text = response.content[0].text
        usage = {
            "input_tokens": response.usage.input_tokens,
            "output_tokens": response.usage.output_tokens,
        }
        return text, usage


def _chat_messages(system: str | None, user: str) -> list[dict]:
    messages = [{"role": "system", "content": system}] if system else []
    messages.append({"role": "user", "content": user})
    return messages


class OpenAIBackend(LLMBackend):
    """
    OpenAI-compatible API — covers GPT, OpenRouter, DeepSeek, etc.

    Any provider that speaks /v1/chat/completions works here.
    """

    def __init__(self, model: str, max_tokens: int, temperature: float,
                 base_url: str | None = None, api_key: str | None = None,
                 timeout: float | None = None):
        try:
            import openai
        except ImportError:
            raise ImportError("pip install openai")

        # Smart API key resolution
        if api_key is None:
            if base_url and "openrouter" in base_url:
                api_key = os.environ.get("OPENROUTER_API_KEY")
            elif base_url and "deepseek" in base_url:
                api_key = os.environ.get("DEEPSEEK_API_KEY")
            if not api_key:
                api_key = os.environ.get("OPENAI_API_KEY")
        if not api_key:
            raise ValueError(
                "No API key found. Set one of:\n"
                "  $env:OPENAI_API_KEY = '...'\n"
                "  $env:OPENROUTER_API_KEY = '...'\n"
                "  $env:DEEPSEEK_API_KEY = '...'"
            )

        kwargs = {"api_key": api_key}
        if base_url:
            kwargs["base_url"] = base_url
        if timeout:
            kwargs["timeout"] = timeout
        self.client = openai.OpenAI(**kwargs)
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._base_url = base_url or "openai"

    @property
    def name(self) -> str:
        for keyword in ["openrouter", "deepseek", "together"]:
            if keyword in self._base_url:
                return keyword
        return "openai"

    def call(self, system: str | None, user: str) -> tuple[str, dict]:
        response = self.client.chat.completions.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            messages=_chat_messages(system, user),
        )
        text = response.choices[0].message.content or ""
        usage = {}
        if response.usage:
            usage = {
                "input_tokens": response.usage.prompt_tokens,
                "output_tokens": response.usage.completion_tokens,
            }
        return text, usage


class OllamaBackend(OpenAIBackend):
    """
    Ollama for local models — no API key, no cost, full privacy.

    ollama pull llama3.1
    Then it just works at localhost:11434.
    """

    def __init__(self, model: str, max_tokens: int, temperature: float,
                 host: str = "http://localhost:11434", timeout: float | None = None):
        super().__init__(
            model, max_tokens, temperature,
            base_url=f"{host}/v1",
            api_key="ollama",  # Ollama ignores this but SDK requires it
            timeout=timeout,
        )

    @property
    def name(self) -> str:
        return "ollama"


# ==================== PRESETS ====================

PRESETS = {
    # --- Google ---
    "gemini":       {"provider": "gemini",  "model": "gemini-2.5-flash"},
    "gemini-pro":   {"provider": "gemini",  "model": "gemini-2.5-pro"},

    # --- Anthropic ---
    "claude":       {"provider": "claude",  "model": "claude-sonnet-4-20250514"},
    "claude-haiku": {"provider": "claude",  "model": "claude-haiku-4-5-20251001"},

    # --- OpenAI ---
    "gpt4o":        {"provider": "openai",  "model": "gpt-4o"},
    "gpt4o-mini":   {"provider": "openai",  "model": "gpt-4o-mini"},

    # --- DeepSeek ---
    "deepseek":     {"provider": "openai",  "model": "deepseek-chat",
                     "base_url": "https://api.deepseek.com/v1"},

    # --- Local (Ollama) ---
    "llama3":       {"provider": "ollama",  "model": "llama3.1"},
    "qwen":         {"provider": "ollama",  "model": "qwen2.5"},
}


def list_presets() -> str:
    """List available model presets."""
    lines = ["Available presets:"]
    for name, cfg in PRESETS.items():
        url = cfg.get("base_url", "")
        extra = f"  ({url})" if url else ""
        lines.append(f"  {name:<16} {cfg['provider']:<8} {cfg['model']}{extra}")
    return "\n".join(lines)


def create_backend(
    provider: str,
    model: str,
    max_tokens: int = 1024,
    temperature: float = 0.0,
    base_url: str | None = None,
    api_key: str | None = None,
    timeout: float | None = None,
) -> LLMBackend:
    """Factory — create the right backend from provider string."""
    if provider == "gemini":
        return GeminiBackend(model, max_tokens, temperature, timeout=timeout, api_key=api_key)
    elif provider == "claude":
        return ClaudeBackend(model, max_tokens, temperature, timeout=timeout)
    elif provider == "openai":
        return OpenAIBackend(model, max_tokens, temperature, base_url, api_key, timeout=timeout)
    elif provider == "ollama":
        return OllamaBackend(model, max_tokens, temperature, timeout=timeout)
    else:
        raise ValueError(f"Unknown provider: {provider!r}. Use: gemini, claude, openai, ollama")


def backend_from_preset(preset: str, timeout: float | None = None, **kwargs) -> tuple[LLMBackend, str]:
    """Build the backend for a preset name. Returns (backend, model)."""
    if preset not in PRESETS:
        raise ValueError(f"Unknown preset: {preset!r}\n{list_presets()}")
    cfg = PRESETS[preset]
    backend = create_backend(
        provider=cfg["provider"], model=cfg["model"],
        base_url=cfg.get("base_url"), timeout=timeout, **kwargs,
    )
    return backend, cfg["model"]


# ==================== ANSWER COMPOSER ====================

class AnswerComposer:
    """
    Retrieve → Generate → EvaluateFallback → Done, once per question.

    Holds no per-request state, so one composer can serve any number of
    questions (and topics) concurrently.
    """

    def __init__(
        self,
        embedder: Embedder,
        backend: LLMBackend | None = None,
        preset: str = "gemini",
        model: str = "",
        top_k: int = DEFAULT_TOP_K,
        relevance_threshold: float = DEFAULT_RELEVANCE_THRESHOLD,
        timeout: float | None = 60.0,
    ):
        if top_k <= 0:
            raise ValueError("top_k must be positive")
        if backend is None:
            backend, model = backend_from_preset(preset, timeout=timeout)
        self.embedder = embedder
        self.backend = backend
        self.model = model
        self.top_k = top_k
        self.relevance_threshold = relevance_threshold

    def _call(self, system: str | None, user: str, usage: dict) -> str:
        try:
            text, call_usage = self.backend.call(system, user)
        except Exception as exc:
            raise GenerationError(f"{self.backend.name} call failed: {exc}") from exc
        for key, value in (call_usage or {}).items():
            if isinstance(value, (int, float)):
                usage[key] = usage.get(key, 0) + value
        return (text or "").strip()

    def answer(self, question: str, topic: Topic) -> AnswerResult:
        """Answer a question from a topic's chunks. Raises GenerationError."""
        usage: dict = {}

        # Retrieve
        query_vector = self.embedder.embed(question)
        top = retrieve_top_k(query_vector, topic.chunks, self.top_k)

        # Generate
        answer = self._call(build_system_prompt(top), build_user_message(question), usage)

        # EvaluateFallback
        best = max_similarity(query_vector, topic.chunks)
        fallback_used = False
        if REFUSAL_PHRASE in answer and best > self.relevance_threshold:
            logger.warning(
                "Grounded answer refused but question looks relevant (max sim %.3f), falling back",
                best,
            )
            answer = self._call(None, question, usage) + FALLBACK_DISCLAIMER
            fallback_used = True

        return AnswerResult(
            answer=answer,
            used_chunks=top,
            fallback_used=fallback_used,
            question=question,
            max_similarity=best,
            model=self.model,
            provider=self.backend.name,
            usage=usage,
        )


# ==================== DISPLAY ====================

def print_answer(result: AnswerResult):
    """Pretty-print an answer with diagnostics."""
    print(f"\n{'='*70}")
    print(f"  ANSWER")
    print(f"{'='*70}")
    print(f"\n{result.answer}")

    print(f"\n{'─'*70}")
    print(f"  DIAGNOSTICS")
    print(f"{'─'*70}")
    for line in result.summary().split("\n"):
        print(f"  {line}")

    if result.used_chunks:
        print(f"\n  Retrieved chunks:")
        for i, r in enumerate(result.used_chunks, 1):
            preview = r.text[:90].replace('\n', ' ')
            print(f"    Chunk {i} (#{r.chunk_id}, score={r.score:.3f}): {preview}...")

    if result.fallback_used:
        print(f"\n  ⚠ FALLBACK: the chapter context was not enough; answer is ungrounded.")
