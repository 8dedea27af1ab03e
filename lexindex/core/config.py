from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings


class ChunkingConfig(BaseModel):
    """Options for `chunk_service.chunk_text`."""

    chunk_size: int = Field(default=1000, gt=0)
    chunk_overlap: int = Field(default=200, ge=0)
    # how far (chars) around the tentative end we look for a sentence break
    sentence_window: int = Field(default=100, ge=0)
    max_chunks_per_document: int = Field(default=1000, gt=0)

    @model_validator(mode="after")
    def _overlap_below_size(self) -> "ChunkingConfig":
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than chunk_size ({self.chunk_size})"
            )
        return self


class IndexingConfig(BaseModel):
    """Options for `IndexingService`."""

    embedding_batch_size: int = Field(default=20, gt=0)
    upsert_batch_size: int = Field(default=10, gt=0)
    embedding_dimension: int = Field(default=768, gt=0)
    collection_name: str = "knowledge_base"
    distance_metric: str = "Cosine"
    retry_attempts: int = Field(default=3, ge=1)
    retry_initial_wait: float = Field(default=1.0, ge=0)
    retry_max_wait: float = Field(default=20.0, ge=0)


class Settings(BaseSettings):
    APP_NAME: str = "LexIndex"
    ENV: str = "local"
    DATA_DIR: str = "./data"
    DB_PATH: str = "./data/lexindex.sqlite3"
    # bare file names in a locator are looked up here
    DOCUMENTS_BASE_PATH: str = "./documents"

    # vector db
    VECTOR_DB_URL: str = "http://localhost:6333"
    VECTOR_API_KEY: str | None = None
    VECTOR_COLLECTION: str = "knowledge_base"
    VECTOR_DISTANCE: str = "Cosine"  # Cosine|Dot|Euclid|Manhattan
    VECTOR_TIMEOUT: float = 20.0

    # embedding
    # Backends:
    # - ollama: uses Ollama /api/embed (local-first, no heavy python deps)
    # - openai: OpenAI embeddings; set OPENAI_BASE_URL for OpenRouter or other compatible APIs
    # - st: uses sentence-transformers (requires optional deps: pip install .[local_ml])
    EMBED_BACKEND: str = "ollama"  # ollama|openai|st
    EMBED_MODEL: str = "BAAI/bge-m3"  # used for st
    OLLAMA_BASE_URL: str = "http://localhost:11434"
    OLLAMA_EMBED_MODEL: str = "nomic-embed-text"
    OPENAI_API_KEY: str | None = None
    OPENAI_BASE_URL: str | None = None
    OPENAI_EMBED_MODEL: str = "text-embedding-3-small"
    EMBED_DIM: int = 768  # must match the chosen embedding model
    EMBED_MAX_CHARS: int = 8000
    EMBED_MAX_BATCH: int = 64

    # chunking
    CHUNK_SIZE: int = 1000
    CHUNK_OVERLAP: int = 200
    CHUNK_SENTENCE_WINDOW: int = 100
    MAX_CHUNKS_PER_DOCUMENT: int = 1000

    # pipeline batching
    EMBED_BATCH: int = 20
    UPSERT_BATCH: int = 10
    PDF_PAGE_WINDOW: int = 25
    HTTP_TIMEOUT: float = 120.0

    # retry on transient backend errors
    RETRY_ATTEMPTS: int = 3
    RETRY_INITIAL_WAIT: float = 1.0
    RETRY_MAX_WAIT: float = 20.0

    # CORS (for browser-based UIs)
    # Comma-separated list of allowed origins.
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    class Config:
        env_file = ".env"
        extra = "ignore"

    def chunking_config(self) -> ChunkingConfig:
        return ChunkingConfig(
            chunk_size=self.CHUNK_SIZE,
            chunk_overlap=self.CHUNK_OVERLAP,
            sentence_window=self.CHUNK_SENTENCE_WINDOW,
            max_chunks_per_document=self.MAX_CHUNKS_PER_DOCUMENT,
        )

    def indexing_config(self) -> IndexingConfig:
        return IndexingConfig(
            embedding_batch_size=self.EMBED_BATCH,
            upsert_batch_size=self.UPSERT_BATCH,
            embedding_dimension=self.EMBED_DIM,
            collection_name=self.VECTOR_COLLECTION,
            distance_metric=self.VECTOR_DISTANCE,
            retry_attempts=self.RETRY_ATTEMPTS,
            retry_initial_wait=self.RETRY_INITIAL_WAIT,
            retry_max_wait=self.RETRY_MAX_WAIT,
        )


def load_settings(**overrides) -> Settings:
    """Build the process settings once at startup (env + .env, then overrides)."""
    return Settings(**overrides)
