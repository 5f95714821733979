"""
Knowledge feature: ingestion pipeline (write path).

    raw text → chunk_text → embed_texts → VectorStore.write

One call is all-or-nothing: chunks are embedded in full before anything is
written, and the write is a single insert.
"""

import logging
from typing import Callable

from app.config import get_settings
from app.core.exceptions import IngestionError, TextTooLargeError, TextTooShortError
from app.features.knowledge.chunking import chunk_text
from app.features.knowledge.embedding import embed_texts
from app.features.knowledge.schemas import StoredPassage
from app.features.knowledge.vector_store import VectorStore, get_vector_store

logger = logging.getLogger(__name__)


def validate_ingest_text(text: str) -> None:
    """Reject text that is too short or too large for one ingestion call.

    Raises:
        TextTooShortError: Fewer than INGEST_MIN_TEXT_CHARS after stripping.
        TextTooLargeError: More than INGEST_MAX_TEXT_CHARS.
    """
    settings = get_settings()
    if len(text.strip()) < settings.INGEST_MIN_TEXT_CHARS:
        raise TextTooShortError(settings.INGEST_MIN_TEXT_CHARS)
    if len(text) > settings.INGEST_MAX_TEXT_CHARS:
        raise TextTooLargeError(settings.INGEST_MAX_TEXT_CHARS)


class IngestionService:
    """Chunks, embeds and stores raw text."""

    def __init__(
        self,
        store: VectorStore | None = None,
        embed_documents: Callable[[list[str]], list[list[float]]] | None = None,
    ):
        self._store = store
        self.embed_documents = embed_documents or embed_texts
        self.settings = get_settings()

    @property
    def store(self) -> VectorStore:
        if self._store is None:
            self._store = get_vector_store()
        return self._store

    def process_raw_text(
        self,
        text: str,
        source_name: str,
        segment_index: int | None = None,
        segment_total: int | None = None,
    ) -> int:
        """Ingest one piece of text.

        Returns:
            Number of chunks written (0 when every window was too short).

        Raises:
            IngestionError: If embedding or the write fails. No rows are
                written for this call in that case.
        """
        chunks = chunk_text(
            text,
            source=source_name,
            chunk_size=self.settings.CHUNK_SIZE,
            chunk_overlap=self.settings.CHUNK_OVERLAP,
            segment_index=segment_index,
            segment_total=segment_total,
            min_chunk_length=self.settings.MIN_CHUNK_LENGTH,
        )
        if not chunks:
            logger.info(f"No chunks produced for '{source_name}', nothing to store")
            return 0

        try:
            embeddings = self.embed_documents([chunk.content for chunk in chunks])
        except Exception as e:
            logger.error(f"❌ Embedding failed for '{source_name}': {e}")
            raise IngestionError(str(e), message="Embedding failed") from e

        if len(embeddings) != len(chunks):
            raise IngestionError(
                f"{len(embeddings)} embeddings for {len(chunks)} chunks",
                message="Mismatch between number of chunks and generated vectors",
            )

        rows = [
            StoredPassage(
                content=chunk.content,
                metadata=chunk.metadata.model_dump(exclude_none=True),
                embedding=vector,
            )
            for chunk, vector in zip(chunks, embeddings)
        ]

        try:
            written = self.store.write(rows)
        except IngestionError:
            raise
        except Exception as e:
            raise IngestionError(str(e), message="Supabase insert failed") from e

        segment = f" segment {segment_index}/{segment_total}" if segment_index is not None else ""
        logger.info(f"✅ '{source_name}'{segment} stored as {written} chunks")
        return written
