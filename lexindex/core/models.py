from enum import Enum

from pydantic import BaseModel, Field


class DocumentStatus(str, Enum):
    PENDING = "Pending"
    INDEXING = "Indexing"
    INDEXED = "Indexed"
    ERROR = "Error"


class Document(BaseModel):
    # Owned by the document store; the pipeline reads locator/title and writes status.
    doc_id: str
    title: str
    source_locator: str
    status: DocumentStatus = DocumentStatus.PENDING


class Chunk(BaseModel):
    text: str
    index: int
    # Offsets of the raw window in the whitespace-normalized source text.
    # `text` is that window stripped, so the span may include one leading
    # or trailing space that `text` does not.
    start_char: int
    end_char: int


class PointPayload(BaseModel):
    text: str
    document_id: str
    chunk_index: int
    title: str


class IndexPoint(BaseModel):
    id: str
    vector: list[float]
    payload: PointPayload

    @staticmethod
    def make_id(document_id: str, chunk_index: int) -> str:
        return f"{document_id}-{chunk_index}"


class SearchHit(BaseModel):
    text: str
    score: float
    document_id: str
    chunk_index: int
    title: str = ""


class SearchFilter(BaseModel):
    document_id: str | None = Field(default=None, min_length=1)
