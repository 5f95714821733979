"""
Knowledge feature: Vector store gateway.

Translates chunk+embedding rows into persisted records and query vectors into
ranked matches. Storage and indexing live in Postgres (pgvector) behind the
`match_gita_embeddings` RPC:

    match_gita_embeddings(query_embedding vector, match_threshold float, match_count int)
        -> table(content text, metadata jsonb, similarity float)

Backends:
  - supabase: production, via the RPC above.
  - memory:   in-process cosine similarity, for local runs and tests.
"""

import logging
import math
import threading
from functools import lru_cache
from typing import Protocol

from supabase import Client

from app.config import get_settings
from app.core.exceptions import IngestionError, RetrievalError
from app.features.knowledge.schemas import RagMatch, StoredPassage

logger = logging.getLogger(__name__)


class VectorStore(Protocol):
    def write(self, rows: list[StoredPassage]) -> int: ...

    def search(self, query_vector: list[float], threshold: float, count: int) -> list[RagMatch]: ...


def _rank(matches: list[RagMatch], threshold: float) -> list[RagMatch]:
    kept = [m for m in matches if m.similarity >= threshold]
    return sorted(kept, key=lambda m: m.similarity, reverse=True)


class SupabaseVectorStore:
    """pgvector store reached through the Supabase client."""

    def __init__(self, db: Client, table: str | None = None, match_function: str | None = None):
        settings = get_settings()
        self.db = db
        self.table = table or settings.VECTOR_TABLE
        self.match_function = match_function or settings.VECTOR_MATCH_FUNCTION

    def write(self, rows: list[StoredPassage]) -> int:
        """Insert all rows in a single statement.

        Raises:
            IngestionError: If the insert fails. Nothing is written in that case.
        """
        if not rows:
            return 0

        payload = [row.model_dump() for row in rows]
        try:
            self.db.table(self.table).insert(payload).execute()
        except Exception as e:
            logger.error(f"❌ Insert of {len(rows)} rows into {self.table} failed: {e}")
            raise IngestionError(str(e), message="Supabase insert failed") from e

        logger.info(f"✅ Inserted {len(rows)} rows into {self.table}")
        return len(rows)

    def search(self, query_vector: list[float], threshold: float, count: int) -> list[RagMatch]:
        """Run the match RPC.

        Returns:
            Matches with similarity >= threshold, best first. Empty when
            nothing clears the bar.

        Raises:
            RetrievalError: If the RPC call fails.
        """
        try:
            result = self.db.rpc(
                self.match_function,
                {
                    "query_embedding": query_vector,
                    "match_threshold": threshold,
                    "match_count": count,
                },
            ).execute()
        except Exception as e:
            raise RetrievalError(str(e)) from e

        matches = [
            RagMatch(
                content=row["content"],
                metadata=row.get("metadata"),
                similarity=row["similarity"],
            )
            for row in (result.data or [])
        ]
        return _rank(matches, threshold)


def cosine_similarity(a: list[float], b: list[float]) -> float:
    if len(a) != len(b):
        raise ValueError(f"Vector dimensions differ: {len(a)} != {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class InMemoryVectorStore:
    """Brute-force cosine store with the same contract as the RPC."""

    def __init__(self):
        self._rows: list[StoredPassage] = []
        self._lock = threading.Lock()

    def write(self, rows: list[StoredPassage]) -> int:
        with self._lock:
            self._rows.extend(rows)
        return len(rows)

    def search(self, query_vector: list[float], threshold: float, count: int) -> list[RagMatch]:
        with self._lock:
            rows = list(self._rows)

        try:
            scored = [
                RagMatch(
                    content=row.content,
                    metadata=dict(row.metadata),
                    similarity=cosine_similarity(query_vector, row.embedding),
                )
                for row in rows
            ]
        except ValueError as e:
            raise RetrievalError(str(e)) from e
        return _rank(scored, threshold)[:count]

    def __len__(self) -> int:
        return len(self._rows)


@lru_cache
def get_vector_store() -> VectorStore:
    """Factory: pick the vector store backend from VECTOR_STORE_BACKEND.

    Raises:
        ValueError: If the backend name is unknown.
    """
    settings = get_settings()
    backend = settings.VECTOR_STORE_BACKEND.lower()

    if backend == "supabase":
        from app.core.database import get_supabase_admin_client

        logger.info("Using Supabase vector store")
        return SupabaseVectorStore(get_supabase_admin_client())

    if backend == "memory":
        logger.info("Using in-memory vector store (local dev mode)")
        return InMemoryVectorStore()

    raise ValueError(
        f"Invalid VECTOR_STORE_BACKEND: '{backend}'. Must be 'supabase' or 'memory'."
    )
