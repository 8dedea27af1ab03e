from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from lexindex.api.deps import get_indexing, to_http_error
from lexindex.core.errors import IndexingError
from lexindex.core.models import SearchFilter
from lexindex.services.indexing_service import IndexingService

router = APIRouter(prefix="/search", tags=["search"])


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    k: int = Field(default=5, ge=1, le=100)
    document_id: str | None = None


@router.post("")
def search(req: SearchRequest, indexing: IndexingService = Depends(get_indexing)):
    flt = SearchFilter(document_id=req.document_id) if req.document_id else None
    try:
        hits = indexing.similarity_search(req.query, req.k, flt)
    except IndexingError as e:
        raise to_http_error("Search failed", e)
    return {"results": [h.model_dump() for h in hits]}
