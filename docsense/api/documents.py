"""
Document endpoints.

POST   /documents              — Upload and ingest one or more files
GET    /documents              — Browse completed documents (paginated)
GET    /documents/{id}         — Full document record
GET    /documents/{id}/content — Raw file, inline
DELETE /documents/{id}         — Remove from index, disk and store
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import FileResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..core.config import get_settings
from ..core.dependencies import (
    get_document_store,
    get_ingestion_pipeline,
    get_storage_dep,
    get_vector_index,
)
from ..core.errors import IntakeError
from ..core.storage import FileStore
from ..services.documents import DocumentStore, clamp_pagination, total_pages
from ..services.ingestion import IngestionPipeline, UploadedFile
from ..services.search import preview_url
from ..services.vector_index import VectorIndex

logger = logging.getLogger(__name__)

documents_router = APIRouter(prefix="/documents", tags=["documents"])

GENERIC_CONTENT_TYPE = "application/octet-stream"


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class DocumentOut(CamelModel):
    id: str
    original_file_name: str
    stored_file_name: str
    file_path: str
    mime_type: str
    file_size: int
    doc_type: Optional[str] = None
    classification_confidence: Optional[float] = None
    better_name: Optional[str] = None
    extracted_data_json: Optional[str] = None
    description: Optional[str] = None
    processing_status: str
    error_message: Optional[str] = None
    embedded_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class BrowseItem(CamelModel):
    doc_id: str
    better_name: str
    doc_type: str
    mime_type: str
    preview_url: str
    created_at: datetime


class Pagination(CamelModel):
    page: int
    page_size: int
    total_count: int
    total_pages: int


class BrowseResponse(CamelModel):
    results: list[BrowseItem]
    pagination: Pagination


@documents_router.post("")
async def upload_documents(
    files: Optional[list[UploadFile]] = File(None),
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline),
):
    """Ingest files one at a time. Each file's outcome is reported on its own."""
    settings = get_settings()
    if not files:
        raise IntakeError("No files uploaded")
    if len(files) > settings.max_files_per_batch:
        raise IntakeError(
            f"Too many files ({len(files)}). Maximum per batch is {settings.max_files_per_batch}."
        )

    uploads = []
    for file in files:
        content_type = file.content_type
        if content_type == GENERIC_CONTENT_TYPE:
            content_type = None  # let the store guess from the extension
        uploads.append(UploadedFile(
            filename=file.filename or "",
            content=await file.read(),
            content_type=content_type,
        ))

    outcomes = await pipeline.ingest_batch(uploads)

    documents = []
    for outcome in outcomes:
        item = {
            "docId": outcome.doc_id,
            "originalFileName": outcome.original_file_name,
            "status": outcome.status,
        }
        if outcome.error:
            item["error"] = outcome.error
        documents.append(item)

    logger.info(
        "Batch upload: %d file(s), %d completed",
        len(outcomes), sum(1 for o in outcomes if o.status == "Completed"),
    )
    return {"documents": documents}


@documents_router.get("", response_model=BrowseResponse)
async def browse_documents(
    page: int = 1,
    page_size: int = Query(default=0, alias="pageSize"),
    store: DocumentStore = Depends(get_document_store),
):
    """Completed documents, newest first."""
    settings = get_settings()
    page, page_size = clamp_pagination(
        page, page_size,
        default_page_size=settings.browse_default_page_size,
        max_page_size=settings.browse_max_page_size,
    )
    docs, total_count = await store.list_completed(page, page_size)

    return BrowseResponse(
        results=[
            BrowseItem(
                doc_id=d.id,
                better_name=d.better_name or d.original_file_name,
                doc_type=d.doc_type or "",
                mime_type=d.mime_type,
                preview_url=preview_url(d.id),
                created_at=d.created_at,
            )
            for d in docs
        ],
        pagination=Pagination(
            page=page,
            page_size=page_size,
            total_count=total_count,
            total_pages=total_pages(total_count, page_size),
        ),
    )


@documents_router.get("/{document_id}", response_model=DocumentOut)
async def get_document(
    document_id: str,
    store: DocumentStore = Depends(get_document_store),
):
    doc = await store.get(document_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Document not found")
    return DocumentOut.model_validate(doc)


@documents_router.get("/{document_id}/content")
async def get_document_content(
    document_id: str,
    store: DocumentStore = Depends(get_document_store),
    files: FileStore = Depends(get_storage_dep),
):
    """Serve the stored file inline so images and PDFs render in the browser."""
    doc = await store.get(document_id)
    if not doc or not await files.exists(doc.file_path):
        raise HTTPException(status_code=404, detail="Document not found")

    return FileResponse(
        doc.file_path,
        media_type=doc.mime_type or GENERIC_CONTENT_TYPE,
        filename=doc.stored_file_name or doc.original_file_name,
        content_disposition_type="inline",
    )


@documents_router.delete("/{document_id}")
async def delete_document(
    document_id: str,
    store: DocumentStore = Depends(get_document_store),
    files: FileStore = Depends(get_storage_dep),
    index: VectorIndex = Depends(get_vector_index),
):
    """Delete from the vector index, then disk (best effort), then the store."""
    doc = await store.get(document_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Document not found")

    await index.delete([document_id])

    if doc.file_path:
        try:
            await files.delete(doc.file_path)
        except OSError as e:
            # Continue with the row delete even if the file can't be removed
            logger.warning("Failed to delete file %s for document %s: %s", doc.file_path, document_id, e)

    if not await store.delete(document_id):
        raise HTTPException(status_code=404, detail="Document not found")

    logger.info("Document deleted: %s", document_id)
    return {"success": True}
