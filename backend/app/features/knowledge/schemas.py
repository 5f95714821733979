from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Optional


# ── Corpus data ──────────────────────────────────────────

class ChunkMetadata(BaseModel):
    chunk_index: int
    char_start: int
    char_end: int
    source: str
    segment_index: Optional[int] = None
    segment_total: Optional[int] = None

    model_config = ConfigDict(frozen=True)


class Chunk(BaseModel):
    """Offset-tagged slice of normalized source text, prepared for embedding."""
    content: str
    metadata: ChunkMetadata

    model_config = ConfigDict(frozen=True)


class StoredPassage(BaseModel):
    """Row persisted in the embeddings table."""
    content: str
    metadata: dict[str, Any]
    embedding: list[float]

    model_config = ConfigDict(frozen=True)


class RagMatch(BaseModel):
    """Read-only projection of a similarity search hit."""
    content: str
    metadata: Optional[dict[str, Any]] = None
    similarity: float


# ── Search tool payloads (model-facing) ──────────────────

class ToolPassage(BaseModel):
    ref: int
    source: str
    relevance: float
    text: str


class ToolSearchResult(BaseModel):
    passages: list[ToolPassage] = []
    retrieval_error: Optional[str] = Field(default=None, serialization_alias="retrievalError")

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# ── Ingestion API ────────────────────────────────────────

class IngestTextRequest(BaseModel):
    text: str = ""
    source_name: Optional[str] = Field(default=None, alias="sourceName")
    segment_index: Optional[int] = Field(default=None, alias="segmentIndex")
    segment_total: Optional[int] = Field(default=None, alias="segmentTotal")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("text", mode="before")
    @classmethod
    def non_string_text_is_missing(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""


class IngestResponse(BaseModel):
    success: bool = True
    chunks_processed: int = Field(serialization_alias="chunksProcessed")
    message: str


class DocumentIngestResponse(IngestResponse):
    segments_processed: int = Field(serialization_alias="segmentsProcessed")
    segment_total: int = Field(serialization_alias="segmentTotal")
    failed_segments: list[int] = Field(default_factory=list, serialization_alias="failedSegments")
