"""
Knowledge feature: Service layer for vector-based knowledge retrieval.

Two entry points:
  - retrieve(): context block for the first model step (primary search,
    concept-expansion fallback, citation formatting).
  - retrieve_for_tool(): passages for the model-invoked search tool.

Neither raises on embedding/store failures; the conversation loop must
always have something to feed the model.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Literal

from app.config import get_settings
from app.core.exceptions import RetrievalError
from app.features.knowledge.concepts import build_fallback_query
from app.features.knowledge.embedding import embed_text
from app.features.knowledge.schemas import RagMatch, ToolPassage, ToolSearchResult
from app.features.knowledge.vector_store import VectorStore, get_vector_store

logger = logging.getLogger(__name__)

SEARCH_TOOL_NAME = "search_gita_context"

NO_QUERY_CONTEXT = (
    f"No query provided. Wait for user input, then retrieve context using "
    f"{SEARCH_TOOL_NAME} tool before answering."
)
NO_MATCHES_CONTEXT = (
    f"No passages found. Use {SEARCH_TOOL_NAME} with related Gita concepts before answering."
)
RETRIEVAL_FAILED_CONTEXT = (
    f"Context retrieval failed. You MUST use the {SEARCH_TOOL_NAME} tool to find relevant "
    "passages. Do not fabricate quotes or verse numbers. The Gita has wisdom for every "
    "situation - search for related concepts."
)
TOOL_RETRIEVAL_ERROR = (
    "Context retrieval is temporarily unavailable. Do not fabricate quotes or verse numbers."
)
EMPTY_MATCHES_TEXT = "No direct source passages found."

DEFAULT_CONTEXT_SOURCE = "unknown-source"
DEFAULT_TOOL_SOURCE = "Bhagavad Gita"


# ── Tagged retrieval result ──────────────────────────────

@dataclass(frozen=True)
class ContextOk:
    context: str
    matches: list[RagMatch] = field(default_factory=list)
    used_fallback: bool = False


@dataclass(frozen=True)
class ContextDegraded:
    reason: Literal["no_query", "no_matches", "retrieval_failed"]
    context: str


ContextResult = ContextOk | ContextDegraded


def _source_of(match: RagMatch, default: str) -> str:
    source = (match.metadata or {}).get("source")
    return str(source) if source is not None else default


def format_rag_context(matches: list[RagMatch]) -> str:
    """Format matches as a numbered, citable list separated by blank lines."""
    if not matches:
        return EMPTY_MATCHES_TEXT

    entries = []
    for index, m in enumerate(matches, start=1):
        source = _source_of(m, DEFAULT_CONTEXT_SOURCE)
        score = f"{m.similarity:.3f}" if math.isfinite(m.similarity) else "n/a"
        entries.append(f"[{index}] source={source} similarity={score}\n{m.content}")
    return "\n\n".join(entries)


class RetrievalService:
    """Embeds queries and searches the vector store."""

    def __init__(
        self,
        store: VectorStore | None = None,
        embed_query: Callable[[str], list[float]] | None = None,
    ):
        self._store = store
        self.embed_query = embed_query or embed_text
        self.settings = get_settings()

    @property
    def store(self) -> VectorStore:
        if self._store is None:
            self._store = get_vector_store()
        return self._store

    def search(self, query: str, threshold: float, count: int) -> list[RagMatch]:
        """Embed `query` and search the store.

        Raises:
            RetrievalError: If embedding or the store call fails.
        """
        try:
            vector = self.embed_query(query)
        except Exception as e:
            raise RetrievalError(f"Embedding failed: {e}") from e
        try:
            return self.store.search(vector, threshold=threshold, count=count)
        except RetrievalError:
            raise
        except Exception as e:
            raise RetrievalError(f"Vector search failed: {e}") from e

    # ── Initial-turn context ─────────────────────────────

    def retrieve_context(self, query: str) -> ContextResult:
        """Build the context block for the first model step.

        Primary search on the raw query; on zero matches, a second search on
        concept-expanded terms at a threshold no higher than the primary one.
        """
        query = (query or "").strip()
        if not query:
            return ContextDegraded(reason="no_query", context=NO_QUERY_CONTEXT)

        s = self.settings
        try:
            matches = self.search(query, threshold=s.RAG_PRIMARY_THRESHOLD, count=s.RAG_PRIMARY_COUNT)
            used_fallback = False

            if not matches:
                fallback_query = build_fallback_query(query)
                logger.info(f"No primary matches, retrying with concepts: {fallback_query!r}")
                matches = self.search(
                    fallback_query,
                    threshold=min(s.RAG_FALLBACK_THRESHOLD, s.RAG_PRIMARY_THRESHOLD),
                    count=s.RAG_FALLBACK_COUNT,
                )
                used_fallback = True
        except RetrievalError as e:
            logger.error(f"[chat] initial RAG lookup failed: {e.detail}")
            return ContextDegraded(reason="retrieval_failed", context=RETRIEVAL_FAILED_CONTEXT)

        if not matches:
            return ContextDegraded(reason="no_matches", context=NO_MATCHES_CONTEXT)

        logger.info(f"Retrieved {len(matches)} passages (fallback={used_fallback})")
        return ContextOk(
            context=format_rag_context(matches),
            matches=matches,
            used_fallback=used_fallback,
        )

    def retrieve(self, query: str) -> str:
        return self.retrieve_context(query).context

    # ── Model-invoked search ─────────────────────────────

    def clamp_k(self, k: int | None) -> int:
        if k is None:
            return self.settings.RAG_TOOL_DEFAULT_K
        return max(1, min(self.settings.RAG_TOOL_MAX_K, int(k)))

    def retrieve_for_tool(self, query: str, k: int | None = None) -> ToolSearchResult:
        """Search for the model's own (refined) query. No concept expansion.

        Returns:
            Passages numbered from 1, or no passages plus `retrieval_error`
            when the lookup failed.
        """
        count = self.clamp_k(k)
        try:
            matches = self.search(query, threshold=self.settings.RAG_TOOL_THRESHOLD, count=count)
        except RetrievalError as e:
            logger.error(f"[chat] tool RAG lookup failed: {e.detail}")
            return ToolSearchResult(passages=[], retrieval_error=TOOL_RETRIEVAL_ERROR)

        return ToolSearchResult(passages=[
            ToolPassage(
                ref=i,
                source=_source_of(m, DEFAULT_TOOL_SOURCE),
                relevance=round(m.similarity, 3),
                text=m.content,
            )
            for i, m in enumerate(matches[:count], start=1)
        ])
