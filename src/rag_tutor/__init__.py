"""
RAG Chapter Tutor
=================
Ask questions about a textbook chapter; get answers grounded in it,
plus a matching diagram.

Modules:
  1. chunkers     — sentence-respecting chunking
  2. embedder     — lazily loaded embedding model, cosine similarity
  3. topic_index  — chunks + embeddings per chapter, top-k retrieval
  4. topic_store  — one JSON file per topic
  5. image_index  — illustrative images matched by embedding
  6. generator    — LLM backends, grounded answers with fallback
  7. tutor        — everything wired together

Usage:
  uv run tutor-ingest chapters/sound.pdf --id sound
  uv run tutor-ask sound "How does sound travel?"
"""
