"""
Custom exception classes for unified error handling.

Taxonomy:
  - InputError: malformed / oversized / too-short input, rejected immediately.
  - RetrievalError: embedding or store call failed during a search. Never
    crosses the retrieval boundary; degraded into a sentinel instead.
  - IngestionError: embedding or store write failed while ingesting.
    Hard failure for the request, the caller must retry the whole batch.
"""

from fastapi import HTTPException


class AppBaseError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message: str, detail: str | None = None):
        self.message = message
        self.detail = detail
        super().__init__(message)


class InputError(AppBaseError):
    """Raised when caller-supplied input is rejected before any work starts."""


class TextTooShortError(InputError):
    def __init__(self, min_chars: int):
        super().__init__(
            message="Text is too short or missing",
            detail=f"Provide at least {min_chars} non-whitespace characters.",
        )


class TextTooLargeError(InputError):
    def __init__(self, max_chars: int):
        super().__init__(
            message=f"Text too large for one request. Max {max_chars:,} chars.",
            detail="Split the document into segments and send them with segmentIndex/segmentTotal.",
        )


class UnsupportedDocumentError(InputError):
    """Raised when an uploaded file is not a document type we can extract."""
    def __init__(self, content_type: str | None):
        super().__init__(
            message="Only PDFs",
            detail=f"Unsupported content type: {content_type or 'unknown'}",
        )


class RetrievalError(AppBaseError):
    """Raised by the embedder or vector store during a search."""
    def __init__(self, original_error: str):
        super().__init__(message="RAG lookup failed", detail=original_error)


class IngestionError(AppBaseError):
    """Raised when chunks could not be embedded or persisted."""
    def __init__(self, original_error: str, message: str = "Ingestion failed"):
        super().__init__(message=message, detail=original_error)


# ── Utility: convert to HTTPException ────────────────────

def app_error_to_http(error: AppBaseError, status_code: int = 400) -> HTTPException:
    """Convert an AppBaseError to an HTTPException with consistent JSON body."""
    return HTTPException(
        status_code=status_code,
        detail={
            "error": error.message,
            "detail": error.detail,
            "type": type(error).__name__,
        },
    )
