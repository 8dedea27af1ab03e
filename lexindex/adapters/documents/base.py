from abc import ABC, abstractmethod

from lexindex.core.models import Document, DocumentStatus


class DocumentStore(ABC):
    """Boundary to the store that owns document records and their status."""

    @abstractmethod
    def update_status(self, doc_id: str, status: DocumentStatus) -> None: ...
    @abstractmethod
    def get_source_locator(self, doc_id: str) -> str: ...
    @abstractmethod
    def get_document(self, doc_id: str) -> Document | None: ...
