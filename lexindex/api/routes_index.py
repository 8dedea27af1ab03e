from fastapi import APIRouter, Depends
from pydantic import BaseModel

from lexindex.adapters.documents.base import DocumentStore
from lexindex.api.deps import DocumentLocks, get_document_store, get_indexing, get_locks, to_http_error
from lexindex.core.errors import DocumentNotFoundError, IndexingError
from lexindex.services.indexing_service import IndexingService

router = APIRouter(prefix="/index", tags=["index"])


class IndexRequest(BaseModel):
    # both default to what the document store holds
    source_locator: str | None = None
    title: str | None = None


def _resolve(store: DocumentStore, doc_id: str, req: IndexRequest | None) -> tuple[str, str]:
    doc = store.get_document(doc_id)
    if doc is None:
        raise DocumentNotFoundError(doc_id)
    req = req or IndexRequest()
    return (req.source_locator or doc.source_locator), (req.title or doc.title)


@router.post("/{doc_id}")
def index_doc(
    doc_id: str,
    req: IndexRequest | None = None,
    indexing: IndexingService = Depends(get_indexing),
    store: DocumentStore = Depends(get_document_store),
    locks: DocumentLocks = Depends(get_locks),
):
    try:
        locator, title = _resolve(store, doc_id, req)
        with locks.hold(doc_id):
            n = indexing.index_document(doc_id, locator, title)
    except IndexingError as e:
        raise to_http_error("Failed to index document", e)
    return {"ok": True, "doc_id": doc_id, "chunks": n}


@router.post("/{doc_id}/reindex")
def reindex_doc(
    doc_id: str,
    req: IndexRequest | None = None,
    indexing: IndexingService = Depends(get_indexing),
    store: DocumentStore = Depends(get_document_store),
    locks: DocumentLocks = Depends(get_locks),
):
    try:
        locator, title = _resolve(store, doc_id, req)
        with locks.hold(doc_id):
            n = indexing.reindex_document(doc_id, locator, title)
    except IndexingError as e:
        raise to_http_error("Failed to reindex document", e)
    return {"ok": True, "doc_id": doc_id, "chunks": n}


@router.delete("/{doc_id}")
def remove_doc(
    doc_id: str,
    indexing: IndexingService = Depends(get_indexing),
    locks: DocumentLocks = Depends(get_locks),
):
    try:
        with locks.hold(doc_id):
            indexing.remove_document_from_index(doc_id)
    except IndexingError as e:
        raise to_http_error("Failed to remove document from index", e)
    return {"ok": True, "doc_id": doc_id}
