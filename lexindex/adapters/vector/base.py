from abc import ABC, abstractmethod

from lexindex.core.models import IndexPoint, SearchHit


class VectorStore(ABC):
    @abstractmethod
    def ensure_collection(self, dim: int, distance: str = "Cosine") -> None: ...
    @abstractmethod
    def upsert(self, points: list[IndexPoint]) -> None: ...
    @abstractmethod
    def search(self, vector: list[float], top_k: int, filter: dict | None = None) -> list[SearchHit]: ...
    @abstractmethod
    def delete_by_document(self, document_id: str) -> None: ...
