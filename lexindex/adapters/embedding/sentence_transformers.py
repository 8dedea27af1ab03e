from __future__ import annotations

from lexindex.adapters.embedding.base import EmbeddingBackend
from lexindex.core.errors import EmbeddingBackendError


class SentenceTransformerBackend(EmbeddingBackend):
    """Local embeddings; needs the optional deps (pip install .[local_ml])."""

    name = "st"

    def __init__(self, model_name: str, *, batch_size: int = 32):
        try:
            from sentence_transformers import SentenceTransformer  # optional dependency
        except ImportError as e:
            raise RuntimeError(
                "sentence-transformers is not installed. Install with: pip install .[local_ml]"
            ) from e
        self._model = SentenceTransformer(model_name)
        self.batch_size = batch_size

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            vecs = self._model.encode(texts, normalize_embeddings=True, batch_size=self.batch_size)
        except (RuntimeError, ValueError) as e:
            raise EmbeddingBackendError(f"sentence-transformers encode failed: {e}") from e
        return vecs.tolist()
