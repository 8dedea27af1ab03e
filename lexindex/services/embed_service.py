"""Embedding generation over a pluggable backend.

Default backend is Ollama (local-first, no heavy python deps). Switch via env:
- EMBED_BACKEND=ollama|openai|st

Backends have input-size limits, so every text is truncated to
EMBED_MAX_CHARS before submission; truncation is silent by policy. Responses
are checked item by item: a short, empty or malformed answer is an
`EmbeddingBackendError`, never patched up.
"""

from __future__ import annotations

import logging
import math
from numbers import Real

from lexindex.adapters.embedding.base import EmbeddingBackend
from lexindex.core.config import Settings
from lexindex.core.errors import EmbeddingBackendError

logger = logging.getLogger(__name__)


def build_backend(settings: Settings) -> EmbeddingBackend:
    backend = (settings.EMBED_BACKEND or "ollama").lower()
    if backend in {"st", "sentence_transformers", "sentence-transformer"}:
        from lexindex.adapters.embedding.sentence_transformers import SentenceTransformerBackend

        return SentenceTransformerBackend(settings.EMBED_MODEL, batch_size=settings.EMBED_MAX_BATCH)
    if backend in {"openai", "openrouter"}:
        from lexindex.adapters.embedding.openai import OpenAIEmbeddingBackend

        return OpenAIEmbeddingBackend(
            settings.OPENAI_API_KEY,
            settings.OPENAI_EMBED_MODEL,
            base_url=settings.OPENAI_BASE_URL,
        )
    # default
    from lexindex.adapters.embedding.ollama import OllamaEmbeddingBackend

    return OllamaEmbeddingBackend(settings.OLLAMA_BASE_URL, settings.OLLAMA_EMBED_MODEL, timeout=settings.HTTP_TIMEOUT)


def _check_vector(vec, position: int) -> list[float]:
    if not isinstance(vec, (list, tuple)) or not vec:
        raise EmbeddingBackendError(f"Malformed embedding at position {position}: expected a non-empty list")
    if not all(isinstance(x, Real) and not isinstance(x, bool) and math.isfinite(x) for x in vec):
        raise EmbeddingBackendError(f"Malformed embedding at position {position}: non-numeric values")
    return [float(x) for x in vec]


class EmbeddingGenerator:
    def __init__(self, backend: EmbeddingBackend, *, max_input_chars: int = 8000, max_batch_size: int = 64):
        self.backend = backend
        self.max_input_chars = max_input_chars
        self.max_batch_size = max_batch_size

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmbeddingGenerator":
        return cls(
            build_backend(settings),
            max_input_chars=settings.EMBED_MAX_CHARS,
            max_batch_size=settings.EMBED_MAX_BATCH,
        )

    def _truncate(self, text: str | None) -> str:
        return (text or "")[: self.max_input_chars]

    def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed `texts`, preserving order; output length always equals input length."""
        if not texts:
            return []
        truncated = [self._truncate(t) for t in texts]

        out: list[list[float]] = []
        for i in range(0, len(truncated), self.max_batch_size):
            batch = truncated[i : i + self.max_batch_size]
            vecs = self.backend.embed_batch(batch)
            if not isinstance(vecs, list) or len(vecs) != len(batch):
                got = len(vecs) if isinstance(vecs, list) else type(vecs).__name__
                raise EmbeddingBackendError(
                    f"Embedding backend returned {got} vectors for {len(batch)} inputs",
                    {"backend": self.backend.name},
                )
            out.extend(_check_vector(v, i + j) for j, v in enumerate(vecs))
        logger.debug("Embedded %d texts with %s", len(out), self.backend.name)
        return out

    def embed_one(self, text: str) -> list[float]:
        return _check_vector(self.backend.embed_query(self._truncate(text)), 0)
