"""
FastAPI dependency injection functions.
"""

from langchain_core.language_models import BaseChatModel

from app.core.llm_provider import create_llm
from app.features.knowledge.ingestion import IngestionService
from app.features.knowledge.service import RetrievalService


def get_ingestion_service() -> IngestionService:
    """Dependency: ingestion pipeline bound to the configured vector store."""
    return IngestionService()


def get_retrieval_service() -> RetrievalService:
    """Dependency: retrieval orchestrator bound to the configured vector store."""
    return RetrievalService()


def get_chat_model() -> BaseChatModel:
    """Dependency: streaming chat model for the configured provider."""
    return create_llm()
