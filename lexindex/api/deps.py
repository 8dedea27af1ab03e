import threading
from contextlib import contextmanager
from typing import Iterator

from fastapi import HTTPException, Request

from lexindex.adapters.documents.base import DocumentStore
from lexindex.core.errors import (
    DocumentNotFoundError,
    EmbeddingBackendError,
    EmptyDocumentError,
    IndexingError,
    VectorBackendError,
)
from lexindex.services.indexing_service import IndexingService


class DocumentLocks:
    """One lock per document id; serializes pipeline runs for the same document.

    An entry lives only while some request holds or waits on it.
    """

    def __init__(self):
        self._guard = threading.Lock()
        # doc_id -> (lock, number of holders and waiters)
        self._locks: dict[str, tuple[threading.Lock, int]] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, doc_id: str) -> Iterator[None]:
        with self._guard:
            lock, users = self._locks.get(doc_id, (None, 0))
            lock = lock or threading.Lock()
            self._locks[doc_id] = (lock, users + 1)
        try:
            with lock:
                yield
        finally:
            with self._guard:
                lock, users = self._locks[doc_id]
                if users <= 1:
                    del self._locks[doc_id]
                else:
                    self._locks[doc_id] = (lock, users - 1)


def get_indexing(request: Request) -> IndexingService:
    return request.app.state.indexing


def get_document_store(request: Request) -> DocumentStore:
    return request.app.state.document_store


def get_locks(request: Request) -> DocumentLocks:
    return request.app.state.locks


def to_http_error(message: str, e: IndexingError) -> HTTPException:
    """Generic failure message plus the cause string; no tracebacks."""
    if isinstance(e, DocumentNotFoundError):
        code = 404
    elif isinstance(e, EmptyDocumentError):
        code = 422
    elif isinstance(e, (EmbeddingBackendError, VectorBackendError)):
        code = 503
    else:
        code = 500
    return HTTPException(status_code=code, detail={"error": message, "cause": e.message})
