"""
Document pipeline: PDF → plain text → segments → ingestion.

Text extraction is delegated to a LangChain loader. Large documents are sent
through the ingestion service in segments no bigger than one ingestion call
accepts; each segment is its own atomic write, so a document is only
eventually complete. What happens when a segment fails is governed by
INGEST_SEGMENT_FAILURE_POLICY (abort | continue).
"""

import logging
import os
import tempfile
from dataclasses import dataclass, field

from langchain_community.document_loaders import PyPDFLoader
from langchain_core.documents import Document
from langchain_text_splitters import RecursiveCharacterTextSplitter

from app.config import get_settings
from app.core.exceptions import IngestionError, UnsupportedDocumentError
from app.features.knowledge.ingestion import IngestionService

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
SEGMENT_POLICIES = {"abort", "continue"}


@dataclass
class DocumentIngestResult:
    chunks_processed: int = 0
    segments_processed: int = 0
    segment_total: int = 0
    failed_segments: list[int] = field(default_factory=list)


def extract_text_from_bytes(
    file_bytes: bytes,
    filename: str,
    content_type: str | None = PDF_CONTENT_TYPE,
) -> list[Document]:
    """
    Extract text from PDF bytes using Langchain loaders.
    Use temp files since loaders require file paths.

    Raises:
        UnsupportedDocumentError: If `content_type` is not a PDF.
        IngestionError: If the loader cannot read the file (corrupt, encrypted).
    """
    if content_type != PDF_CONTENT_TYPE:
        raise UnsupportedDocumentError(content_type)

    with tempfile.NamedTemporaryFile(delete=False, suffix=".pdf") as temp_file:
        temp_file.write(file_bytes)
        temp_path = temp_file.name

    try:
        loader = PyPDFLoader(temp_path)
        docs = loader.load()
    except Exception as e:
        logger.error(f"Error extracting text from {filename}: {e}")
        raise IngestionError(str(e), message="Text extraction failed") from e
    finally:
        if os.path.exists(temp_path):
            os.remove(temp_path)

    return docs


def split_into_segments(text: str, max_chars: int) -> list[str]:
    """Cut text into pieces of at most `max_chars`, paragraph breaks first."""
    text_splitter = RecursiveCharacterTextSplitter(
        chunk_size=max_chars,
        chunk_overlap=0,
        separators=["\n\n", "\n", " ", ""],
    )
    return [s for s in text_splitter.split_text(text) if s.strip()]


def process_document_pipeline(
    file_bytes: bytes,
    filename: str,
    source_name: str | None = None,
    service: IngestionService | None = None,
    content_type: str | None = PDF_CONTENT_TYPE,
) -> DocumentIngestResult:
    """
    Process an uploaded document:
    1. Extract text (page by page).
    2. Split into ingestion-sized segments.
    3. Ingest each segment (chunk → embed → store), stamped with its index.

    Raises:
        UnsupportedDocumentError: If `content_type` is not a PDF.
        IngestionError: If the PDF cannot be read, no text was extracted,
            or a segment failed under the `abort` policy.
    """
    settings = get_settings()
    policy = settings.INGEST_SEGMENT_FAILURE_POLICY.lower()
    if policy not in SEGMENT_POLICIES:
        raise ValueError(f"Invalid INGEST_SEGMENT_FAILURE_POLICY: '{policy}'")

    service = service or IngestionService()
    source_name = source_name or filename
    logger.info(f"🚀 Starting document pipeline for {filename}")

    raw_docs = extract_text_from_bytes(file_bytes, filename, content_type)
    full_text = "\n\n".join(doc.page_content for doc in raw_docs)
    if not full_text.strip():
        raise IngestionError(
            f"'{filename}' produced no extractable text",
            message="No text could be extracted from the document.",
        )

    segments = split_into_segments(full_text, settings.INGEST_MAX_TEXT_CHARS)
    result = DocumentIngestResult(segment_total=len(segments))
    logger.info(f"✅ Extracted {len(raw_docs)} pages into {len(segments)} segments.")

    for index, segment in enumerate(segments):
        try:
            result.chunks_processed += service.process_raw_text(
                segment,
                source_name=source_name,
                segment_index=index,
                segment_total=len(segments),
            )
            result.segments_processed += 1
        except IngestionError as e:
            logger.error(f"❌ Segment {index + 1}/{len(segments)} of {filename} failed: {e.detail}")
            if policy == "abort":
                raise IngestionError(
                    f"Segment {index} failed after {result.segments_processed} of "
                    f"{len(segments)} segments were stored: {e.detail}",
                    message=e.message,
                ) from e
            result.failed_segments.append(index)

    logger.info(f"🎉 Document pipeline finished for {filename}: {result.chunks_processed} chunks")
    return result
