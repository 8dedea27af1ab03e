"""Application factory.

Run with: uvicorn lexindex.main:create_app --factory
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lexindex.adapters.documents.base import DocumentStore
from lexindex.adapters.documents.sqlite import SqliteDocumentStore
from lexindex.adapters.vector.base import VectorStore
from lexindex.adapters.vector.qdrant import QdrantVectorStore
from lexindex.api.deps import DocumentLocks
from lexindex.api.routes_index import router as index_router
from lexindex.api.routes_search import router as search_router
from lexindex.core.config import Settings, load_settings
from lexindex.core.errors import VectorBackendError
from lexindex.core.logging import setup_logging
from lexindex.services.embed_service import EmbeddingGenerator
from lexindex.services.indexing_service import IndexingService
from lexindex.services.loader_service import ContentLoader

logger = logging.getLogger(__name__)


def build_indexing_service(
    settings: Settings,
    *,
    document_store: DocumentStore,
    vector_store: VectorStore | None = None,
    embedder: EmbeddingGenerator | None = None,
    loader: ContentLoader | None = None,
) -> IndexingService:
    return IndexingService(
        loader=loader or ContentLoader(
            base_path=settings.DOCUMENTS_BASE_PATH,
            data_dir=settings.DATA_DIR,
            pdf_page_window=settings.PDF_PAGE_WINDOW,
            http_timeout=settings.HTTP_TIMEOUT,
        ),
        embedder=embedder or EmbeddingGenerator.from_settings(settings),
        vector_store=vector_store or QdrantVectorStore(
            settings.VECTOR_DB_URL,
            settings.VECTOR_COLLECTION,
            api_key=settings.VECTOR_API_KEY,
            upsert_batch_size=settings.UPSERT_BATCH,
            timeout=settings.VECTOR_TIMEOUT,
        ),
        document_store=document_store,
        chunking=settings.chunking_config(),
        config=settings.indexing_config(),
    )


def create_app(
    settings: Settings | None = None,
    *,
    document_store: DocumentStore | None = None,
    vector_store: VectorStore | None = None,
    embedder: EmbeddingGenerator | None = None,
    loader: ContentLoader | None = None,
):
    settings = settings or load_settings()
    setup_logging(settings)

    if document_store is None:
        document_store = SqliteDocumentStore(settings.DB_PATH)
        document_store.init_db()

    indexing = build_indexing_service(
        settings,
        document_store=document_store,
        vector_store=vector_store,
        embedder=embedder,
        loader=loader,
    )
    # Ensure the vector collection exists early. A dimension mismatch is an
    # operator error and stops startup; an unreachable backend does not.
    try:
        indexing.ensure_collection()
    except VectorBackendError as e:
        logger.warning("Vector collection bootstrap deferred: %s", e)

    app = FastAPI(title=settings.APP_NAME)
    app.state.settings = settings
    app.state.indexing = indexing
    app.state.document_store = document_store
    app.state.locks = DocumentLocks()

    # Allow browser-based UIs to call the API from localhost
    origins = [o.strip() for o in (settings.CORS_ORIGINS or "").split(",") if o.strip()]
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(index_router)
    app.include_router(search_router)

    @app.get("/health")
    def health():
        vec = indexing.vector_store
        checks = {"vector_db": vec.healthy() if hasattr(vec, "healthy") else True}
        ok = all(checks.values())
        return {"ok": ok, "app": settings.APP_NAME, "env": settings.ENV, "deps": checks}

    return app
