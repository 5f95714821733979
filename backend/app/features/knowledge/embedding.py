"""
Knowledge feature: Embedding utility functions.
Wraps the LLM provider's embedding model for use across the app.
"""

import logging

from langchain_core.embeddings import Embeddings

from app.config import get_settings
from app.core.llm_provider import create_embeddings

logger = logging.getLogger(__name__)

# Singleton embedding model (lazy init)
_embeddings_model: Embeddings | None = None


def get_embeddings_model() -> Embeddings:
    """Get or create the shared embeddings model instance."""
    global _embeddings_model
    if _embeddings_model is None:
        _embeddings_model = create_embeddings()
    return _embeddings_model


def embed_text(text: str, model: Embeddings | None = None) -> list[float]:
    """Generate the embedding vector for a single query string.

    Queries are never batched with corpus text.

    Args:
        text: The text to embed.
        model: Embedding model override (defaults to the shared instance).

    Returns:
        A list of floats, truncated to EMBEDDING_DIMENSIONS.
    """
    settings = get_settings()
    model = model or get_embeddings_model()
    vector = model.embed_query(text)
    return vector[:settings.EMBEDDING_DIMENSIONS]


def embed_texts(
    texts: list[str],
    model: Embeddings | None = None,
    batch_size: int | None = None,
) -> list[list[float]]:
    """Generate embedding vectors for many texts, one request per batch.

    Batches run sequentially and results keep the input order. Any failing
    batch aborts the whole call, so a document is never half embedded.

    Args:
        texts: List of text strings to embed.
        model: Embedding model override (defaults to the shared instance).
        batch_size: Texts per request (defaults to EMBEDDING_BATCH_SIZE).

    Returns:
        List of embedding vectors, `result[i]` belongs to `texts[i]`.
    """
    settings = get_settings()
    model = model or get_embeddings_model()
    batch_size = batch_size or settings.EMBEDDING_BATCH_SIZE
    dim = settings.EMBEDDING_DIMENSIONS

    all_vectors: list[list[float]] = []
    total_batches = (len(texts) + batch_size - 1) // batch_size
    for i in range(0, len(texts), batch_size):
        batch = texts[i:i + batch_size]
        logger.debug(f"Embedding batch {i // batch_size + 1}/{total_batches} ({len(batch)} texts)")
        vectors = model.embed_documents(batch)
        if len(vectors) != len(batch):
            raise ValueError(
                f"Embedding model returned {len(vectors)} vectors for {len(batch)} texts"
            )
        all_vectors.extend(v[:dim] for v in vectors)

    return all_vectors
