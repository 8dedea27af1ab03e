from __future__ import annotations

import logging
from typing import Any

import httpx

from lexindex.adapters.embedding.base import EmbeddingBackend
from lexindex.core.errors import EmbeddingBackendError

logger = logging.getLogger(__name__)


class OllamaEmbeddingBackend(EmbeddingBackend):
    """Ollama embeddings.

    Ollama has changed embedding endpoints across versions:
    - Newer: POST /api/embed  {"model": "...", "input": ["...", ...]}
    - Older: POST /api/embeddings {"model": "...", "prompt": "..."}

    We prefer /api/embed (batch) and fall back to /api/embeddings when the
    server does not know the batch route (404).
    """

    name = "ollama"

    def __init__(self, base_url: str, model: str, *, timeout: float = 120.0, client: httpx.Client | None = None):
        self.base = base_url.rstrip("/")
        self.model = model
        self._client = client or httpx.Client(timeout=timeout)

    def _post(self, path: str, body: dict[str, Any]) -> httpx.Response:
        try:
            return self._client.post(f"{self.base}{path}", json=body)
        except httpx.HTTPError as e:
            raise EmbeddingBackendError(f"Ollama request to {path} failed: {e}") from e

    def _json(self, r: httpx.Response, path: str) -> dict[str, Any]:
        if r.status_code != 200:
            raise EmbeddingBackendError(
                f"Ollama {path} returned HTTP {r.status_code}",
                {"model": self.model, "body": r.text[:300]},
            )
        try:
            data = r.json()
        except ValueError as e:
            raise EmbeddingBackendError(f"Ollama {path} returned invalid JSON", {"model": self.model}) from e
        if not isinstance(data, dict):
            raise EmbeddingBackendError(
                f"Ollama {path} returned {type(data).__name__}, expected an object",
                {"model": self.model},
            )
        return data

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        r = self._post("/api/embed", {"model": self.model, "input": texts})
        if r.status_code == 404:
            logger.debug("Ollama /api/embed unavailable; falling back to /api/embeddings")
            return [self._embed_legacy(t) for t in texts]
        embs = self._json(r, "/api/embed").get("embeddings")
        if not isinstance(embs, list):
            raise EmbeddingBackendError("Ollama /api/embed response missing 'embeddings'", {"model": self.model})
        return embs

    def _embed_legacy(self, text: str) -> list[float]:
        r = self._post("/api/embeddings", {"model": self.model, "prompt": text})
        vec = self._json(r, "/api/embeddings").get("embedding")
        if not vec:
            raise EmbeddingBackendError("Ollama embedding response missing 'embedding'", {"model": self.model})
        return vec
