"""Indexing orchestrator.

Status lifecycle per document: Pending -> Indexing -> Indexed | Error.
Indexed/Error stay put until `reindex_document` re-enters Indexing.

A failed run is not rolled back: points upserted before the failure remain
in the collection and the document is marked Error, meaning "indeterminate,
safe to reindex". Reindex deletes first, so recovery is idempotent.

Runs for the same document must be serialized by the caller; runs for
different documents touch disjoint point ids and can proceed in parallel.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, TypeVar

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from lexindex.adapters.documents.base import DocumentStore
from lexindex.adapters.vector.base import VectorStore
from lexindex.core.config import ChunkingConfig, IndexingConfig
from lexindex.core.errors import (
    TRANSIENT_ERRORS,
    EmbeddingBackendError,
    EmbeddingDimensionMismatch,
    EmptyDocumentError,
)
from lexindex.core.models import Chunk, DocumentStatus, IndexPoint, PointPayload, SearchFilter, SearchHit
from lexindex.services.chunk_service import chunk_text
from lexindex.services.embed_service import EmbeddingGenerator
from lexindex.services.loader_service import ContentLoader

logger = logging.getLogger(__name__)

T = TypeVar("T")


class IndexingService:
    def __init__(
        self,
        *,
        loader: ContentLoader,
        embedder: EmbeddingGenerator,
        vector_store: VectorStore,
        document_store: DocumentStore,
        chunking: ChunkingConfig | None = None,
        config: IndexingConfig | None = None,
    ):
        self.loader = loader
        self.embedder = embedder
        self.vector_store = vector_store
        self.document_store = document_store
        self.chunking = chunking or ChunkingConfig()
        self.config = config or IndexingConfig()
        self._collection_ready = False
        self._collection_lock = threading.Lock()
        self._retrying = Retrying(
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            stop=stop_after_attempt(self.config.retry_attempts),
            wait=wait_exponential_jitter(
                initial=self.config.retry_initial_wait,
                max=self.config.retry_max_wait,
                jitter=self.config.retry_initial_wait,
            ),
            before_sleep=lambda rs: logger.warning(
                "Retry %d/%d after %s", rs.attempt_number, self.config.retry_attempts, rs.outcome.exception()
            ),
            reraise=True,
        )

    def _retry(self, fn: Callable[..., T], *args: Any) -> T:
        # copy(): each call gets its own attempt state, so concurrent runs don't share it
        return self._retrying.copy()(fn, *args)

    def ensure_collection(self) -> None:
        with self._collection_lock:
            if self._collection_ready:
                return
            self._retry(self.vector_store.ensure_collection, self.config.embedding_dimension, self.config.distance_metric)
            self._collection_ready = True

    # -- indexing -----------------------------------------------------------

    def index_document(self, document_id: str, source_locator: str, title: str) -> int:
        """Load, chunk, embed and upsert one document; returns the chunk count.

        Raises EmptyDocumentError, EmbeddingBackendError,
        EmbeddingDimensionMismatch or VectorBackendError. On any failure the
        document is marked Error (best effort) before the original error is
        re-raised.
        """
        logger.info("Indexing document %s (%s) from %s", document_id, title, source_locator)
        try:
            self.document_store.update_status(document_id, DocumentStatus.INDEXING)

            text = self.loader.load(source_locator)
            chunks = chunk_text(text, self.chunking)
            if not chunks:
                raise EmptyDocumentError(document_id)
            logger.info("Document %s split into %d chunks", document_id, len(chunks))

            self.ensure_collection()
            self._embed_and_upsert(document_id, title, chunks)

            self.document_store.update_status(document_id, DocumentStatus.INDEXED)
        except BaseException as exc:
            # BaseException: a cancelled or interrupted run must not stay "Indexing"
            self._mark_error(document_id, exc)
            raise
        logger.info("Indexed document %s (%d chunks)", document_id, len(chunks))
        return len(chunks)

    def _embed_and_upsert(self, document_id: str, title: str, chunks: list[Chunk]) -> None:
        ebs = self.config.embedding_batch_size
        ubs = self.config.upsert_batch_size
        total_batches = (len(chunks) + ebs - 1) // ebs

        pending: list[IndexPoint] = []
        for b, i in enumerate(range(0, len(chunks), ebs), start=1):
            batch = chunks[i : i + ebs]
            logger.debug("Embedding batch %d/%d (chunks %d-%d)", b, total_batches, i + 1, i + len(batch))
            vectors = self._retry(self.embedder.embed, [c.text for c in batch])
            if len(vectors) != len(batch):
                raise EmbeddingBackendError(
                    f"Got {len(vectors)} embeddings for {len(batch)} chunks",
                    {"document_id": document_id},
                )

            for chunk, vector in zip(batch, vectors):
                if len(vector) != self.config.embedding_dimension:
                    raise EmbeddingDimensionMismatch(
                        self.config.embedding_dimension,
                        len(vector),
                        {"document_id": document_id, "chunk_index": chunk.index},
                    )
                pending.append(
                    IndexPoint(
                        # from the chunk's own index, never from batch position
                        id=IndexPoint.make_id(document_id, chunk.index),
                        vector=vector,
                        payload=PointPayload(
                            text=chunk.text,
                            document_id=document_id,
                            chunk_index=chunk.index,
                            title=title,
                        ),
                    )
                )
                if len(pending) >= ubs:
                    self._retry(self.vector_store.upsert, pending)
                    pending = []

        if pending:
            self._retry(self.vector_store.upsert, pending)

    def _mark_error(self, document_id: str, exc: BaseException) -> None:
        logger.error("Indexing failed for document %s: %s", document_id, exc)
        try:
            self.document_store.update_status(document_id, DocumentStatus.ERROR)
        except Exception:
            # never mask the original failure
            logger.exception("Could not set status Error for document %s", document_id)

    # -- removal / reindex ----------------------------------------------------

    def remove_document_from_index(self, document_id: str) -> None:
        self._retry(self.vector_store.delete_by_document, document_id)
        logger.info("Removed document %s from the index", document_id)

    def reindex_document(self, document_id: str, source_locator: str, title: str) -> int:
        try:
            self.remove_document_from_index(document_id)
        except BaseException as exc:
            # old points may be partly gone; the index state is indeterminate
            self._mark_error(document_id, exc)
            raise
        return self.index_document(document_id, source_locator, title)

    # -- retrieval -------------------------------------------------------------

    def similarity_search(
        self,
        query: str,
        k: int = 5,
        filter: SearchFilter | dict | None = None,
    ) -> list[SearchHit]:
        if k <= 0:
            return []
        if isinstance(filter, dict):
            filter = SearchFilter(**filter)
        meta_filter = filter.model_dump(exclude_none=True) if filter else None

        vector = self._retry(self.embedder.embed_one, query)
        if len(vector) != self.config.embedding_dimension:
            raise EmbeddingDimensionMismatch(self.config.embedding_dimension, len(vector), {"query": query[:80]})
        return self._retry(self.vector_store.search, vector, k, meta_filter or None)
