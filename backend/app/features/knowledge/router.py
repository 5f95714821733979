import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool

from app.background.document_tasks import PDF_CONTENT_TYPE, process_document_pipeline
from app.config import get_settings
from app.core.dependencies import get_ingestion_service
from app.core.exceptions import (
    IngestionError,
    InputError,
    TextTooLargeError,
    UnsupportedDocumentError,
    app_error_to_http,
)
from app.features.knowledge.ingestion import IngestionService, validate_ingest_text
from app.features.knowledge.schemas import DocumentIngestResponse, IngestResponse, IngestTextRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Knowledge Base"])


@router.post("/upload-text", response_model=IngestResponse)
async def upload_text(
    data: IngestTextRequest,
    service: IngestionService = Depends(get_ingestion_service),
):
    """
    Store one text segment in the knowledge base.
    - Rejects text shorter than 50 chars (400) or longer than 120,000 chars (413).
    - Large documents are sent as several segments (segmentIndex / segmentTotal).
    """
    settings = get_settings()
    source_name = (data.source_name or "").strip() or settings.DEFAULT_SOURCE_NAME

    try:
        validate_ingest_text(data.text)
    except TextTooLargeError as e:
        raise app_error_to_http(e, status_code=413)
    except InputError as e:
        raise app_error_to_http(e, status_code=400)

    try:
        chunks_processed = await run_in_threadpool(
            service.process_raw_text,
            data.text,
            source_name,
            data.segment_index,
            data.segment_total,
        )
    except IngestionError as e:
        logger.error(f"[embed] Error: {e.message}: {e.detail}")
        raise app_error_to_http(e, status_code=500)

    return IngestResponse(
        chunks_processed=chunks_processed,
        message=f'"{source_name}" segment stored as {chunks_processed} searchable chunks',
    )


@router.post("/upload-pdf", response_model=DocumentIngestResponse)
async def upload_pdf(
    file: UploadFile = File(...),
    source_name: str | None = Form(None, alias="sourceName"),
    service: IngestionService = Depends(get_ingestion_service),
):
    """
    Extract text from a PDF and store it in the knowledge base, segment by segment.
    """
    settings = get_settings()
    if file.content_type != PDF_CONTENT_TYPE:
        raise app_error_to_http(UnsupportedDocumentError(file.content_type), status_code=415)

    file_bytes = await file.read()
    if len(file_bytes) > settings.INGEST_MAX_PDF_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {settings.INGEST_MAX_PDF_BYTES // (1024 * 1024)}MB.",
        )

    filename = file.filename or "document.pdf"
    source = (source_name or "").strip() or filename
    logger.info(f"[upload] Received {filename} ({len(file_bytes)} bytes)")

    try:
        result = await run_in_threadpool(
            process_document_pipeline, file_bytes, filename, source, service, file.content_type
        )
    except UnsupportedDocumentError as e:
        raise app_error_to_http(e, status_code=415)
    except IngestionError as e:
        logger.error(f"[upload] Error: {e.message}: {e.detail}")
        raise app_error_to_http(e, status_code=500)

    return DocumentIngestResponse(
        chunks_processed=result.chunks_processed,
        segments_processed=result.segments_processed,
        segment_total=result.segment_total,
        failed_segments=result.failed_segments,
        message=f'Processed "{filename}" into {result.chunks_processed} searchable chunks',
    )
