"""Shared pytest configuration and fixtures."""

from __future__ import annotations

import hashlib
import json
import math
from pathlib import Path

import httpx
import pytest

from lexindex.adapters.documents.base import DocumentStore
from lexindex.adapters.embedding.base import EmbeddingBackend
from lexindex.adapters.vector.qdrant import QdrantVectorStore
from lexindex.core.config import ChunkingConfig, IndexingConfig
from lexindex.core.errors import DocumentNotFoundError
from lexindex.core.models import Document, DocumentStatus
from lexindex.services.embed_service import EmbeddingGenerator
from lexindex.services.indexing_service import IndexingService
from lexindex.services.loader_service import ContentLoader

DIM = 8
QDRANT_URL = "http://qdrant.test"


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fake embedding backend ──────────────────────────────────────────────


def fake_vector(text: str, dim: int = DIM) -> list[float]:
    """Deterministic non-zero vector derived from the text."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return [digest[i % len(digest)] / 255.0 + 0.01 for i in range(dim)]


class FakeEmbeddingBackend(EmbeddingBackend):
    name = "fake"

    def __init__(self, dim: int = DIM) -> None:
        self.dim = dim
        self.calls: list[list[str]] = []
        self.query_calls: list[str] = []

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [fake_vector(t, self.dim) for t in texts]

    def embed_query(self, text: str) -> list[float]:
        self.query_calls.append(text)
        return fake_vector(text, self.dim)


# ── In-memory document store ────────────────────────────────────────────


class InMemoryDocumentStore(DocumentStore):
    def __init__(self) -> None:
        self.docs: dict[str, Document] = {}
        self.history: list[tuple[str, DocumentStatus]] = []
        self.fail_on: set[DocumentStatus] = set()

    def add(self, doc_id: str, title: str = "Doc", locator: str = "doc.txt") -> Document:
        doc = Document(doc_id=doc_id, title=title, source_locator=locator)
        self.docs[doc_id] = doc
        return doc

    def update_status(self, doc_id: str, status: DocumentStatus) -> None:
        if status in self.fail_on:
            raise RuntimeError(f"store unavailable while writing {status.value}")
        if doc_id not in self.docs:
            raise DocumentNotFoundError(doc_id)
        self.history.append((doc_id, status))
        self.docs[doc_id].status = status

    def get_source_locator(self, doc_id: str) -> str:
        if doc_id not in self.docs:
            raise DocumentNotFoundError(doc_id)
        return self.docs[doc_id].source_locator

    def get_document(self, doc_id: str) -> Document | None:
        return self.docs.get(doc_id)


# ── In-memory Qdrant REST server ────────────────────────────────────────


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(y * y for y in b))
    return dot / (na * nb) if na and nb else 0.0


def _matches(payload: dict, qfilter: dict | None) -> bool:
    if not qfilter:
        return True
    return all(payload.get(c["key"]) == c["match"]["value"] for c in qfilter.get("must", []))


class FakeQdrant:
    """Implements the handful of Qdrant REST routes the adapter uses."""

    def __init__(self) -> None:
        self.collections: dict[str, dict] = {}
        self.requests: list[tuple[str, str, dict | None]] = []
        # (method, route suffix) -> status code to return instead of handling
        self.fail: dict[tuple[str, str], int] = {}

    def count(self, method: str, suffix: str) -> int:
        return sum(1 for m, p, _ in self.requests if m == method and p.endswith(suffix))

    def bodies(self, method: str, suffix: str) -> list[dict]:
        return [b for m, p, b in self.requests if m == method and p.endswith(suffix)]

    def points(self, name: str) -> dict:
        return self.collections[name]["points"]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        path = request.url.path
        self.requests.append((request.method, path, body))

        parts = path.strip("/").split("/")
        suffix = "/" + "/".join(parts[2:]) if len(parts) > 2 else ""
        if (request.method, suffix) in self.fail:
            return httpx.Response(self.fail[(request.method, suffix)], json={"status": {"error": "boom"}})

        if parts == ["collections"]:
            names = [{"name": n} for n in self.collections]
            return httpx.Response(200, json={"result": {"collections": names}})

        name = parts[1]
        coll = self.collections.get(name)

        if len(parts) == 2:
            if request.method == "GET":
                if coll is None:
                    return httpx.Response(404, json={"status": {"error": "Not found"}})
                vectors = {"size": coll["size"], "distance": coll["distance"]}
                return httpx.Response(200, json={"result": {"config": {"params": {"vectors": vectors}}}})
            if request.method == "PUT":
                if coll is not None:
                    return httpx.Response(409, json={"status": {"error": "already exists"}})
                vectors = body["vectors"]
                self.collections[name] = {"size": vectors["size"], "distance": vectors["distance"], "points": {}}
                return httpx.Response(200, json={"result": True})

        if coll is None:
            return httpx.Response(404, json={"status": {"error": "Not found"}})

        if suffix == "/index":
            return httpx.Response(200, json={"result": {"status": "acknowledged"}})

        if suffix == "/points" and request.method == "PUT":
            for p in body["points"]:
                if len(p["vector"]) != coll["size"]:
                    return httpx.Response(400, json={"status": {"error": "wrong vector size"}})
                coll["points"][p["id"]] = p
            return httpx.Response(200, json={"result": {"status": "completed"}})

        if suffix == "/points/search":
            hits = [
                {"id": p["id"], "score": _cosine(body["vector"], p["vector"]), "payload": p["payload"]}
                for p in coll["points"].values()
                if _matches(p["payload"], body.get("filter"))
            ]
            hits.sort(key=lambda h: h["score"], reverse=True)
            return httpx.Response(200, json={"result": hits[: body["limit"]]})

        if suffix == "/points/delete":
            keep = {k: p for k, p in coll["points"].items() if not _matches(p["payload"], body.get("filter"))}
            coll["points"] = keep
            return httpx.Response(200, json={"result": {"status": "completed"}})

        return httpx.Response(404, json={"status": {"error": f"unhandled {request.method} {path}"}})


# ── Fixtures ────────────────────────────────────────────────────────────


@pytest.fixture()
def fake_qdrant() -> FakeQdrant:
    return FakeQdrant()


@pytest.fixture()
def qdrant_store(fake_qdrant: FakeQdrant) -> QdrantVectorStore:
    client = httpx.Client(base_url=QDRANT_URL, transport=httpx.MockTransport(fake_qdrant))
    return QdrantVectorStore(QDRANT_URL, "test_chunks", upsert_batch_size=10, client=client)


@pytest.fixture()
def backend() -> FakeEmbeddingBackend:
    return FakeEmbeddingBackend()


@pytest.fixture()
def doc_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture()
def docs_dir(tmp_path: Path) -> Path:
    d = tmp_path / "documents"
    d.mkdir()
    return d


@pytest.fixture()
def make_service(qdrant_store, backend, doc_store, docs_dir, tmp_path):
    """Build an IndexingService over the fakes; keyword args override config."""

    def _make(
        *,
        chunk_size: int = 10,
        chunk_overlap: int = 0,
        embedding_batch_size: int = 20,
        upsert_batch_size: int = 10,
        retry_attempts: int = 1,
        embedder: EmbeddingGenerator | None = None,
    ) -> IndexingService:
        return IndexingService(
            loader=ContentLoader(base_path=str(docs_dir), data_dir=str(tmp_path / "data")),
            embedder=embedder or EmbeddingGenerator(backend),
            vector_store=qdrant_store,
            document_store=doc_store,
            chunking=ChunkingConfig(chunk_size=chunk_size, chunk_overlap=chunk_overlap, sentence_window=0),
            config=IndexingConfig(
                embedding_batch_size=embedding_batch_size,
                upsert_batch_size=upsert_batch_size,
                embedding_dimension=DIM,
                collection_name="test_chunks",
                retry_attempts=retry_attempts,
                retry_initial_wait=0,
                retry_max_wait=0,
            ),
        )

    return _make
