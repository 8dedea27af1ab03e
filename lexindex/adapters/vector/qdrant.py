from __future__ import annotations

import logging
import re
import uuid
from typing import Any, Dict, List, Optional

import httpx

from lexindex.adapters.vector.base import VectorStore
from lexindex.core.errors import EmbeddingDimensionMismatch, VectorBackendError
from lexindex.core.models import IndexPoint, SearchHit

logger = logging.getLogger(__name__)

_NUMERIC_ID_RE = re.compile(r"^[0-9]+$")
_MAX_NUMERIC_ID = 2**64 - 1
# Fixed namespace: changing it would re-key every point already stored.
POINT_ID_NAMESPACE = uuid.UUID("6f1c52a4-3c1e-5b8a-9d59-2f8e3d4b7a10")

_DISTANCES = {
    "cosine": "Cosine",
    "dot": "Dot",
    "euclid": "Euclid",
    "euclidean": "Euclid",
    "manhattan": "Manhattan",
}


def point_key(point_id: str) -> int | str:
    """Map a point id to a Qdrant point key.

    Qdrant only accepts unsigned integers or UUIDs. Numeric strings keep their
    integer value; anything else becomes a UUIDv5 of the id (deterministic,
    collision-resistant for practical purposes).

    Pipeline ids are always "<document_id>-<chunk_index>", so they always take
    the UUID branch, even for numeric document ids. The numeric branch
    only serves callers writing raw numeric ids, where "7" and "007" would
    share a key.
    """
    if _NUMERIC_ID_RE.match(point_id):
        value = int(point_id)
        if value <= _MAX_NUMERIC_ID:
            return value
    return str(uuid.uuid5(POINT_ID_NAMESPACE, point_id))


def normalize_distance(distance: str) -> str:
    try:
        return _DISTANCES[(distance or "cosine").strip().lower()]
    except KeyError:
        raise ValueError(f"Unsupported distance metric: {distance!r}") from None


def _meta_filter_to_qdrant_filter(meta_filter: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Convert simple {key: value} filters into Qdrant REST filter schema."""
    if not meta_filter:
        return None
    must = []
    for k, v in meta_filter.items():
        if v is None:
            continue
        # Qdrant match supports strings, numbers, bools
        must.append({"key": k, "match": {"value": v}})
    return {"must": must} if must else None


def _existing_dim(info: Dict[str, Any]) -> Optional[int]:
    config = info.get("config")
    params = config.get("params") if isinstance(config, dict) else None
    vectors = params.get("vectors") if isinstance(params, dict) else None
    # Possible shapes:
    # 1) {"size": 768, "distance": "Cosine"}
    # 2) {"default": {"size": 768, ...}} (named vectors)
    if isinstance(vectors, dict) and "size" in vectors:
        return int(vectors["size"])
    if isinstance(vectors, dict) and isinstance(vectors.get("default"), dict) and "size" in vectors["default"]:
        return int(vectors["default"]["size"])
    return None


class QdrantVectorStore(VectorStore):
    """Qdrant over its REST API; owns a single named collection."""

    def __init__(
        self,
        url: str,
        collection: str,
        *,
        api_key: str | None = None,
        upsert_batch_size: int = 10,
        timeout: float = 20.0,
        client: httpx.Client | None = None,
    ):
        self.collection = collection
        self.url = url.rstrip("/")
        self.upsert_batch_size = max(1, upsert_batch_size)
        headers = {"api-key": api_key} if api_key else None
        self._client = client or httpx.Client(base_url=self.url, timeout=timeout, headers=headers)

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, *, action: str, ok_statuses: tuple[int, ...] = (), **kwargs) -> httpx.Response:
        try:
            r = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise VectorBackendError(f"Qdrant {action} failed: {e}", {"collection": self.collection}) from e
        if r.status_code in ok_statuses:
            return r
        if r.is_error:
            raise VectorBackendError(
                f"Qdrant {action} failed with HTTP {r.status_code}",
                {"collection": self.collection, "body": r.text[:300]},
            )
        return r

    def _result(self, r: httpx.Response, *, action: str) -> Any:
        """The `result` member of a successful Qdrant response."""
        try:
            data = r.json()
        except ValueError as e:
            raise VectorBackendError(
                f"Qdrant {action} returned invalid JSON",
                {"collection": self.collection, "body": r.text[:300]},
            ) from e
        if not isinstance(data, dict):
            raise VectorBackendError(
                f"Qdrant {action} returned {type(data).__name__}, expected an object",
                {"collection": self.collection},
            )
        return data.get("result")

    def healthy(self) -> bool:
        try:
            return self._client.get("/collections").status_code == 200
        except httpx.HTTPError:
            return False

    def ensure_collection(self, dim: int, distance: str = "Cosine") -> None:
        """Create the collection if absent; no-op when it already exists.

        Existence is checked by name. An existing collection with a different
        vector size is an operator error and is reported, never recreated.
        """
        path = f"/collections/{self.collection}"
        r = self._request("GET", path, action="get collection", ok_statuses=(404,))
        if r.status_code == 200:
            info = self._result(r, action="get collection")
            if not isinstance(info, dict):
                raise VectorBackendError("Qdrant get collection returned no collection info", {"collection": self.collection})
            existing = _existing_dim(info)
            if existing is not None and existing != dim:
                raise EmbeddingDimensionMismatch(expected=existing, actual=dim, details={"collection": self.collection})
            return

        body = {"vectors": {"size": dim, "distance": normalize_distance(distance)}}
        r = self._request("PUT", path, action="create collection", ok_statuses=(409,), json=body)
        if r.status_code == 409:
            # created concurrently by another process
            return
        logger.info("Created Qdrant collection '%s' (dim=%d, distance=%s)", self.collection, dim, body["vectors"]["distance"])

        # keyword index keeps filtered search/delete by document cheap
        self._request(
            "PUT",
            f"{path}/index",
            action="create payload index",
            params={"wait": "true"},
            json={"field_name": "document_id", "field_schema": "keyword"},
        )

    def upsert(self, points: List[IndexPoint]) -> None:
        for i in range(0, len(points), self.upsert_batch_size):
            batch = points[i : i + self.upsert_batch_size]
            body = {
                "points": [
                    {"id": point_key(p.id), "vector": p.vector, "payload": p.payload.model_dump()}
                    for p in batch
                ]
            }
            self._request(
                "PUT",
                f"/collections/{self.collection}/points",
                action="upsert",
                params={"wait": "true"},
                json=body,
            )

    @staticmethod
    def _normalize_hit(hit: Dict[str, Any]) -> SearchHit:
        payload = hit.get("payload")
        if not isinstance(payload, dict):
            payload = {}
        return SearchHit(
            text=payload.get("text") or "",
            score=float(hit.get("score") or 0.0),
            document_id=str(payload.get("document_id") or ""),
            chunk_index=int(payload.get("chunk_index") or 0),
            title=payload.get("title") or "",
        )

    def search(self, vector: List[float], top_k: int, filter: Optional[Dict[str, Any]] = None) -> List[SearchHit]:
        if top_k <= 0:
            return []
        body: Dict[str, Any] = {"vector": vector, "limit": top_k, "with_payload": True}
        qfilter = _meta_filter_to_qdrant_filter(filter or {})
        if qfilter:
            body["filter"] = qfilter

        r = self._request("POST", f"/collections/{self.collection}/points/search", action="search", json=body)
        raw = self._result(r, action="search")
        if not isinstance(raw, list) or not all(isinstance(h, dict) for h in raw):
            raise VectorBackendError("Qdrant search returned a malformed result list", {"collection": self.collection})
        try:
            hits = [self._normalize_hit(h) for h in raw]
        except (TypeError, ValueError) as e:
            raise VectorBackendError(f"Qdrant search returned a malformed hit: {e}", {"collection": self.collection}) from e

        # The filter is enforced server-side; re-check so a misbehaving backend
        # can never leak another document's chunks into a scoped search.
        doc_id = (filter or {}).get("document_id")
        if doc_id is not None:
            hits = [h for h in hits if h.document_id == doc_id]
        hits.sort(key=lambda h: h.score, reverse=True)
        return hits[:top_k]

    def delete_by_document(self, document_id: str) -> None:
        """Delete all points whose payload `document_id` matches; idempotent."""
        body = {"filter": {"must": [{"key": "document_id", "match": {"value": document_id}}]}}
        r = self._request(
            "POST",
            f"/collections/{self.collection}/points/delete",
            action="delete",
            ok_statuses=(404,),
            params={"wait": "true"},
            json=body,
        )
        if r.status_code == 404:
            logger.debug("Collection '%s' missing; nothing to delete for %s", self.collection, document_id)
