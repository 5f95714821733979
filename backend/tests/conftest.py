"""
Shared test fixtures: fake embedding model, fake vector store, scripted chat model.

Nothing here talks to Supabase or an LLM provider.
"""

import re
from typing import Any

import pytest
from langchain_core.embeddings import Embeddings
from langchain_core.language_models import BaseChatModel
from langchain_core.language_models.fake_chat_models import GenericFakeChatModel
from langchain_core.messages import AIMessage, BaseMessage
from langchain_core.outputs import ChatGeneration, ChatResult
from pydantic import Field

from app.core.exceptions import RetrievalError
from app.features.knowledge.schemas import RagMatch


VOCABULARY = ["duty", "action", "karma", "dharma", "perseverance", "wisdom", "krishna", "arjuna"]


class KeywordEmbeddings(Embeddings):
    """Bag-of-words over a tiny vocabulary, so cosine similarity is meaningful.

    Records every embed_documents batch.
    """

    def __init__(self, fail_on_batch: int | None = None):
        self.batches: list[list[str]] = []
        self.queries: list[str] = []
        self.fail_on_batch = fail_on_batch

    def _vector(self, text: str) -> list[float]:
        words = re.findall(r"[a-z]+", text.lower())
        # Last component keeps unrelated texts from being all-zero vectors
        return [float(words.count(w)) for w in VOCABULARY] + [0.1]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.batches.append(list(texts))
        if self.fail_on_batch is not None and len(self.batches) == self.fail_on_batch:
            raise RuntimeError("embedding service unavailable")
        return [self._vector(t) for t in texts]

    def embed_query(self, text: str) -> list[float]:
        self.queries.append(text)
        return self._vector(text)


class RecordingStore:
    """Vector store double: returns queued results and records every search."""

    def __init__(self, results: list[list[RagMatch]] | None = None, error: Exception | None = None):
        self.results = list(results or [])
        self.error = error
        self.searches: list[dict] = []
        self.written: list = []

    def write(self, rows) -> int:
        if self.error:
            raise self.error
        self.written.extend(rows)
        return len(rows)

    def search(self, query_vector, threshold, count) -> list[RagMatch]:
        self.searches.append({"vector": query_vector, "threshold": threshold, "count": count})
        if self.error:
            raise self.error
        return self.results.pop(0) if self.results else []


class ScriptedChatModel(BaseChatModel):
    """Chat model that replays a fixed list of responses, one per call."""

    responses: list[AIMessage]
    calls: int = 0
    seen: list[list[BaseMessage]] = Field(default_factory=list)
    bound_tools: list[Any] = Field(default_factory=list)

    @property
    def _llm_type(self) -> str:
        return "scripted"

    def _generate(self, messages, stop=None, run_manager=None, **kwargs) -> ChatResult:
        response = self.responses[min(self.calls, len(self.responses) - 1)]
        self.calls += 1
        self.seen.append(list(messages))
        return ChatResult(generations=[ChatGeneration(message=response.model_copy(deep=True))])

    def bind_tools(self, tools, **kwargs):
        self.bound_tools = list(tools)
        return self


class StreamingChatModel(GenericFakeChatModel):
    """Fake model that streams each response word by word."""

    def bind_tools(self, tools, **kwargs):
        return self


def search_call(query: str, k: int = 5, call_id: str = "call_1") -> AIMessage:
    return AIMessage(
        content="",
        tool_calls=[{"name": "search_gita_context", "args": {"query": query, "k": k}, "id": call_id}],
    )


def match(content: str, similarity: float, source: str | None = "Bhagavad Gita 2.47") -> RagMatch:
    return RagMatch(
        content=content,
        metadata={"source": source} if source is not None else None,
        similarity=similarity,
    )


@pytest.fixture
def keyword_embeddings():
    return KeywordEmbeddings()


@pytest.fixture
def recording_store():
    return RecordingStore


@pytest.fixture
def failing_store():
    return RecordingStore(error=RetrievalError("connection refused"))


@pytest.fixture
def scripted_model():
    return ScriptedChatModel


@pytest.fixture
def make_match():
    return match


@pytest.fixture
def make_search_call():
    return search_call


@pytest.fixture
def make_embeddings():
    return KeywordEmbeddings


@pytest.fixture
def streaming_model():
    return StreamingChatModel
