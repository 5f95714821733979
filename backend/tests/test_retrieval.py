"""
Unit tests for the retrieval orchestrator: initial-turn context and the search tool.
"""

import asyncio
import json

import pytest
from app.config import get_settings
from app.features.knowledge.service import (
    NO_MATCHES_CONTEXT,
    NO_QUERY_CONTEXT,
    RETRIEVAL_FAILED_CONTEXT,
    TOOL_RETRIEVAL_ERROR,
    ContextDegraded,
    ContextOk,
    RetrievalService,
    format_rag_context,
)
from app.features.knowledge.tools import create_search_tool


def _retriever(store, queries=None):
    def embed(text):
        if queries is not None:
            queries.append(text)
        return [1.0, 0.0]
    return RetrievalService(store=store, embed_query=embed)


# -- format_rag_context --

class TestFormatRagContext:
    def test_numbered_entries(self, make_match):
        text = format_rag_context([
            make_match("You have a right to action alone.", 0.812345),
            make_match("Be steadfast in yoga.", 0.5, source="Bhagavad Gita 2.48"),
        ])

        assert text == (
            "[1] source=Bhagavad Gita 2.47 similarity=0.812\n"
            "You have a right to action alone.\n\n"
            "[2] source=Bhagavad Gita 2.48 similarity=0.500\n"
            "Be steadfast in yoga."
        )

    def test_missing_source(self, make_match):
        text = format_rag_context([make_match("text", 0.4, source=None)])
        assert text.startswith("[1] source=unknown-source similarity=0.400")

    def test_no_matches(self):
        assert format_rag_context([]) == "No direct source passages found."


# -- retrieve_context / retrieve --

class TestRetrieveContext:
    def test_empty_query_skips_search(self, recording_store):
        store = recording_store()
        result = _retriever(store).retrieve_context("   ")

        assert result == ContextDegraded(reason="no_query", context=NO_QUERY_CONTEXT)
        assert store.searches == []

    def test_primary_hit(self, recording_store, make_match):
        store = recording_store([[make_match("Do your duty.", 0.7)]])
        queries = []
        result = _retriever(store, queries).retrieve_context("what is my duty?")

        assert isinstance(result, ContextOk)
        assert result.used_fallback is False
        assert "[1] source=Bhagavad Gita 2.47 similarity=0.700" in result.context
        assert queries == ["what is my duty?"]
        assert store.searches[0]["threshold"] == 0.32
        assert store.searches[0]["count"] == 8

    def test_fallback_uses_concepts(self, recording_store, make_match):
        store = recording_store([[], [make_match("Persevere.", 0.33)]])
        queries = []
        result = _retriever(store, queries).retrieve_context("I'm so frustrated with coding")

        assert isinstance(result, ContextOk)
        assert result.used_fallback is True
        assert len(store.searches) == 2
        assert "perseverance" in queries[1]
        assert "karma yoga" in queries[1]

    def test_frustrated_and_stuck_fallback(self, recording_store):
        store = recording_store([[], []])
        queries = []
        _retriever(store, queries).retrieve_context("I'm frustrated and stuck")

        fallback_query = queries[1]
        for term in ("perseverance", "resilience", "karma yoga", "dharma", "dealing with difficulties"):
            assert term in fallback_query
        assert store.searches[1]["threshold"] <= store.searches[0]["threshold"]

    def test_fallback_threshold_not_above_primary(self, recording_store, monkeypatch):
        monkeypatch.setattr(get_settings(), "RAG_FALLBACK_THRESHOLD", 0.9)
        store = recording_store([[], []])
        _retriever(store).retrieve_context("hello")

        primary, fallback = store.searches
        assert fallback["threshold"] <= primary["threshold"]

    def test_both_searches_empty(self, recording_store):
        store = recording_store([[], []])
        result = _retriever(store).retrieve_context("anything at all")

        assert result == ContextDegraded(reason="no_matches", context=NO_MATCHES_CONTEXT)

    def test_store_failure_degrades(self, failing_store):
        result = _retriever(failing_store).retrieve_context("what is dharma?")

        assert isinstance(result, ContextDegraded)
        assert result.reason == "retrieval_failed"
        assert result.context == RETRIEVAL_FAILED_CONTEXT

    def test_embedding_failure_degrades(self, recording_store):
        def broken(text):
            raise TimeoutError("embedding timed out")

        service = RetrievalService(store=recording_store(), embed_query=broken)
        assert service.retrieve("what is dharma?") == RETRIEVAL_FAILED_CONTEXT

    def test_unexpected_store_exception_degrades(self, recording_store):
        store = recording_store(error=KeyError("similarity"))
        assert _retriever(store).retrieve("what is karma?") == RETRIEVAL_FAILED_CONTEXT

    def test_retrieve_returns_context_text(self, recording_store, make_match):
        store = recording_store([[make_match("Act.", 0.6)]])
        assert _retriever(store).retrieve("action").startswith("[1] source=")


# -- retrieve_for_tool --

class TestRetrieveForTool:
    @pytest.mark.parametrize("k, expected", [(None, 5), (0, 1), (-3, 1), (3, 3), (10, 10), (50, 10)])
    def test_k_clamped(self, recording_store, k, expected):
        store = recording_store()
        _retriever(store).retrieve_for_tool("karma", k)

        assert store.searches[0]["count"] == expected

    def test_uses_tool_threshold_and_no_fallback(self, recording_store):
        store = recording_store()
        result = _retriever(store).retrieve_for_tool("karma", 5)

        assert result.passages == []
        assert len(store.searches) == 1
        assert store.searches[0]["threshold"] == 0.35

    def test_passages_numbered_from_one(self, recording_store, make_match):
        store = recording_store([[
            make_match("first", 0.87654),
            make_match("second", 0.5, source=None),
        ]])
        payload = _retriever(store).retrieve_for_tool("duty", 2).to_payload()

        assert payload == {"passages": [
            {"ref": 1, "source": "Bhagavad Gita 2.47", "relevance": 0.877, "text": "first"},
            {"ref": 2, "source": "Bhagavad Gita", "relevance": 0.5, "text": "second"},
        ]}

    def test_failure_reports_error(self, failing_store):
        payload = _retriever(failing_store).retrieve_for_tool("duty").to_payload()

        assert payload == {"passages": [], "retrievalError": TOOL_RETRIEVAL_ERROR}


# -- search tool --

class TestSearchTool:
    def test_tool_returns_json_payload(self, recording_store, make_match):
        store = recording_store([[make_match("Yoga is skill in action.", 0.6)]])
        search_tool = create_search_tool(_retriever(store))

        result = asyncio.run(search_tool.ainvoke({"query": "skill", "k": 2}))
        payload = json.loads(result)

        assert search_tool.name == "search_gita_context"
        assert payload["passages"][0]["text"] == "Yoga is skill in action."
        assert store.searches[0]["count"] == 2

    def test_tool_default_k(self, recording_store):
        store = recording_store()
        search_tool = create_search_tool(_retriever(store))

        asyncio.run(search_tool.ainvoke({"query": "skill"}))
        assert store.searches[0]["count"] == 5

    def test_tool_schema_declares_k_bounds(self, recording_store):
        search_tool = create_search_tool(_retriever(recording_store()))
        k_schema = search_tool.args_schema.model_json_schema()["properties"]["k"]

        assert k_schema["minimum"] == 1
        assert k_schema["maximum"] == 10
        assert k_schema["default"] == 5

    def test_out_of_range_k_still_clamped(self, recording_store):
        store = recording_store()
        search_tool = create_search_tool(_retriever(store))

        asyncio.run(search_tool.ainvoke({"query": "skill", "k": 50}))
        assert store.searches[0]["count"] == 10
