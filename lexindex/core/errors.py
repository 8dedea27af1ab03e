"""
Error taxonomy for the indexing pipeline.

Loader-level problems (`SourceReadError`, `UnsupportedFormatError`) are
recovered inside the loader with placeholder content. Everything else is
fatal to the current indexing run and reaches the caller.
"""

from typing import Any


class IndexingError(Exception):
    """Base class for pipeline errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class SourceReadError(IndexingError):
    """The source locator could not be resolved or read."""

    def __init__(self, locator: str, reason: str) -> None:
        super().__init__(f"Cannot read source '{locator}': {reason}", {"locator": locator})


class UnsupportedFormatError(IndexingError):
    """No reader is registered for the locator's extension."""

    def __init__(self, locator: str, extension: str) -> None:
        super().__init__(
            f"Unsupported format '{extension or '<none>'}' for '{locator}'",
            {"locator": locator, "extension": extension},
        )


class EmptyDocumentError(IndexingError):
    """Chunking produced no chunks."""

    def __init__(self, document_id: str) -> None:
        super().__init__(f"Document {document_id} produced no chunks", {"document_id": document_id})


class EmbeddingDimensionMismatch(IndexingError):
    """A vector's length differs from the collection dimension."""

    def __init__(self, expected: int, actual: int, details: dict[str, Any] | None = None) -> None:
        details = dict(details or {})
        details.update({"expected": expected, "actual": actual})
        super().__init__(f"Embedding dimension mismatch: expected {expected}, got {actual}", details)


class EmbeddingBackendError(IndexingError):
    """The embedding backend failed or returned a malformed/short response."""


class VectorBackendError(IndexingError):
    """A vector database call (create/upsert/search/delete) failed."""


class DocumentNotFoundError(IndexingError):
    """The document store has no record for the given id."""

    def __init__(self, document_id: str) -> None:
        super().__init__(f"Document not found: {document_id}", {"document_id": document_id})


# Errors worth retrying: the backend may recover on its own.
TRANSIENT_ERRORS = (EmbeddingBackendError, VectorBackendError)
