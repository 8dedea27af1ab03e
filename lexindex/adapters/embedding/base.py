from abc import ABC, abstractmethod


class EmbeddingBackend(ABC):
    name: str = "backend"

    @abstractmethod
    def embed_batch(self, texts: list[str]) -> list[list[float]]: ...

    # Backends with a cheaper single-text path can override this.
    def embed_query(self, text: str) -> list[float]:
        vecs = self.embed_batch([text])
        return vecs[0] if vecs else []
