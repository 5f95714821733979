"""
API tests for the knowledge and chat routes.
Dependencies are overridden so nothing reaches Supabase or an LLM provider.
"""

import json

import pytest
from fastapi.testclient import TestClient
from langchain_core.messages import AIMessage

from app.core.dependencies import get_chat_model, get_ingestion_service, get_retrieval_service
from app.features.knowledge.ingestion import IngestionService
from app.features.knowledge.service import RetrievalService
from app.features.knowledge.vector_store import InMemoryVectorStore
from app.main import create_app


@pytest.fixture
def store():
    return InMemoryVectorStore()


@pytest.fixture
def client(store, keyword_embeddings, scripted_model):
    app = create_app()
    app.dependency_overrides[get_ingestion_service] = lambda: IngestionService(
        store=store, embed_documents=keyword_embeddings.embed_documents
    )
    app.dependency_overrides[get_retrieval_service] = lambda: RetrievalService(
        store=store, embed_query=keyword_embeddings.embed_query
    )
    app.dependency_overrides[get_chat_model] = lambda: scripted_model(
        responses=[AIMessage(content="Do your duty, O Arjuna.")]
    )
    return TestClient(app)


def _events(body: str) -> list[dict]:
    return [json.loads(line[len("data: "):]) for line in body.splitlines() if line.startswith("data: ")]


# -- /health --

class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


# -- /api/knowledge/upload-text --

class TestUploadText:
    def test_missing_text(self, client):
        response = client.post("/api/knowledge/upload-text", json={})

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "Text is too short or missing"

    @pytest.mark.parametrize("text", [5, None, ["a" * 60]])
    def test_non_string_text_treated_as_missing(self, client, store, text):
        response = client.post("/api/knowledge/upload-text", json={"text": text})

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "Text is too short or missing"
        assert len(store) == 0

    def test_too_short(self, client, store):
        response = client.post("/api/knowledge/upload-text", json={"text": "too short"})

        assert response.status_code == 400
        assert len(store) == 0

    def test_too_large(self, client, store):
        response = client.post("/api/knowledge/upload-text", json={"text": "x" * 120_001})

        assert response.status_code == 413
        assert len(store) == 0

    def test_success(self, client, store):
        text = "Perform your duty without attachment to the fruits of action, O Arjuna."
        response = client.post(
            "/api/knowledge/upload-text",
            json={"text": text, "sourceName": "Gita 2.47", "segmentIndex": 0, "segmentTotal": 1},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["chunksProcessed"] == 1
        assert "Gita 2.47" in body["message"]
        assert len(store) == 1

    def test_default_source_name(self, client, store, keyword_embeddings):
        client.post("/api/knowledge/upload-text", json={"text": "dharma " * 20, "sourceName": "  "})

        matches = store.search(keyword_embeddings.embed_query("dharma"), threshold=0.0, count=1)
        assert matches[0].metadata["source"] == "uploaded-text"


# -- /api/knowledge/upload-pdf --

class TestUploadPdf:
    def test_non_pdf_rejected(self, client):
        response = client.post(
            "/api/knowledge/upload-pdf",
            files={"file": ("notes.txt", b"plain text", "text/plain")},
        )
        assert response.status_code == 415

    def test_unreadable_pdf_reports_error_body(self, client, store):
        response = client.post(
            "/api/knowledge/upload-pdf",
            files={"file": ("gita.pdf", b"not a pdf at all", "application/pdf")},
        )

        assert response.status_code == 500
        assert response.json()["detail"]["type"] == "IngestionError"
        assert len(store) == 0

    def test_pdf_type_without_extension_not_rejected(self, client):
        response = client.post(
            "/api/knowledge/upload-pdf",
            files={"file": ("gita-scan", b"not a pdf at all", "application/pdf")},
        )

        assert response.status_code != 415
        assert response.json()["detail"]["type"] == "IngestionError"


# -- /api/chat --

class TestChat:
    def test_streams_answer(self, client):
        response = client.post(
            "/api/chat",
            json={"messages": [{"role": "user", "content": "What is my duty?"}]},
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = _events(response.text)
        assert events[0] == {"type": "message", "content": "Do your duty, O Arjuna."}
        assert events[-1]["type"] == "done"

    def test_uses_ingested_passages(self, client, scripted_model):
        client.post(
            "/api/knowledge/upload-text",
            json={"text": "Karma yoga is the path of selfless action and duty.", "sourceName": "Gita 3"},
        )
        llm = scripted_model(responses=[AIMessage(content="ok")])
        client.app.dependency_overrides[get_chat_model] = lambda: llm

        client.post("/api/chat", json={"messages": [{"role": "user", "content": "karma and duty"}]})

        assert "source=Gita 3" in llm.seen[0][0].content

    def test_stream_error_event(self, client):
        class BrokenModel:
            def bind_tools(self, tools, **kwargs):
                raise RuntimeError("provider down")

        client.app.dependency_overrides[get_chat_model] = lambda: BrokenModel()

        response = client.post("/api/chat", json={"messages": [{"role": "user", "content": "hi"}]})

        assert _events(response.text)[-1] == {"type": "error", "content": "Failed to process chat request"}
