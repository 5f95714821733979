"""
Application configuration using Pydantic Settings.
All config is loaded from environment variables / .env file.
"""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    # ── App ──────────────────────────────────────────────
    APP_NAME: str = "gita-ai"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"  # comma-separated

    # ── Supabase ─────────────────────────────────────────
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_KEY: str = ""  # service_role key, required for inserts
    SUPABASE_TIMEOUT_SECONDS: int = 30

    # ── Vector Store ─────────────────────────────────────
    VECTOR_STORE_BACKEND: str = "supabase"  # supabase | memory
    VECTOR_TABLE: str = "gita_embeddings"
    VECTOR_MATCH_FUNCTION: str = "match_gita_embeddings"

    # ── LLM (Provider-Agnostic) ──────────────────────────
    LLM_PROVIDER: str = "openai"  # openai | gemini | groq
    LLM_MODEL: str = "gpt-4o-mini"
    LLM_API_KEY: str = ""
    LLM_TEMPERATURE: float = 0.7
    LLM_TIMEOUT_SECONDS: float = 60.0

    # ── Embedding ────────────────────────────────────────
    EMBEDDING_PROVIDER: str = "openai"  # openai | gemini
    EMBEDDING_MODEL: str = "text-embedding-3-small"
    EMBEDDING_DIMENSIONS: int = 1536
    EMBEDDING_BATCH_SIZE: int = 20
    EMBEDDING_TIMEOUT_SECONDS: float = 30.0

    # ── Chunking / Ingestion ─────────────────────────────
    CHUNK_SIZE: int = 2000
    CHUNK_OVERLAP: int = 200
    MIN_CHUNK_LENGTH: int = 40
    INGEST_MIN_TEXT_CHARS: int = 50
    INGEST_MAX_TEXT_CHARS: int = 120_000
    INGEST_MAX_PDF_BYTES: int = 50 * 1024 * 1024  # 50MB
    INGEST_SEGMENT_FAILURE_POLICY: str = "abort"  # abort | continue
    DEFAULT_SOURCE_NAME: str = "uploaded-text"

    # ── Retrieval ────────────────────────────────────────
    RAG_PRIMARY_THRESHOLD: float = 0.32
    RAG_PRIMARY_COUNT: int = 8
    RAG_FALLBACK_THRESHOLD: float = 0.30
    RAG_FALLBACK_COUNT: int = 8
    RAG_TOOL_THRESHOLD: float = 0.35  # lower threshold for better recall
    RAG_TOOL_DEFAULT_K: int = 5
    RAG_TOOL_MAX_K: int = 10

    # ── Agent ────────────────────────────────────────────
    AGENT_MAX_STEPS: int = 6  # Max model invocations per request

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance (singleton)."""
    return Settings()
