from __future__ import annotations

import openai
from openai import OpenAI

from lexindex.adapters.embedding.base import EmbeddingBackend
from lexindex.core.errors import EmbeddingBackendError


class OpenAIEmbeddingBackend(EmbeddingBackend):
    """OpenAI embeddings; any OpenAI-compatible API (e.g. OpenRouter) via `base_url`."""

    name = "openai"

    def __init__(self, api_key: str | None, model: str, *, base_url: str | None = None, client: OpenAI | None = None):
        if client is None and not api_key:
            raise RuntimeError("OPENAI_API_KEY is not set")
        self.model = model
        self._client = client or OpenAI(api_key=api_key, base_url=base_url)

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            resp = self._client.embeddings.create(model=self.model, input=texts)
        except openai.APIStatusError as e:
            raise EmbeddingBackendError(f"Embedding API error: {e.message} (status: {e.status_code})") from e
        except openai.OpenAIError as e:
            raise EmbeddingBackendError(f"Embedding API error: {e}") from e
        data = sorted(resp.data or [], key=lambda d: d.index)
        return [d.embedding for d in data]
