"""
Document ingestion pipeline.

One uploaded file goes Stored → Classified → Renamed → Extracted → Embedded →
Completed. Any stage can fail the document instead: the row is marked Failed
with the error text as the final write, already-written fields stay as they are,
and nothing is retried.

Cancellation is not a failure. A cancelled run leaves the row in Processing.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..core.errors import IntakeError, StageError
from ..core.storage import FileStore, slugify
from ..models.base import new_uuid, utcnow
from ..models.document import Document, DocType, ProcessingStatus
from . import realtime
from .classification import classify_and_name
from .documents import DocumentStore
from .extraction import extract
from .llm import EmbeddingIntent, Oracle
from .vector_index import VectorIndex

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp", ".bmp", ".tiff", ".heic"}
ALLOWED_DOC_EXTENSIONS = {".pdf"}
ALLOWED_EXTENSIONS = ALLOWED_IMAGE_EXTENSIONS | ALLOWED_DOC_EXTENSIONS


@dataclass
class UploadedFile:
    filename: str
    content: bytes
    content_type: Optional[str] = None


@dataclass
class IngestOutcome:
    doc_id: Optional[str]
    original_file_name: str
    status: str
    error: Optional[str] = None


def build_final_file_name(
    doc_type: DocType,
    created_at: datetime,
    better_name: str,
    document_id: str,
    ext: str,
) -> str:
    """{docType}-{yyyymmdd}-{slug}-{shortId}{ext}"""
    short_id = document_id.replace("-", "")[:8]
    return f"{doc_type.value}-{created_at:%Y%m%d}-{slugify(better_name)}-{short_id}{ext}"


def build_canonical_text(
    better_name: str, doc_type: DocType, description: str, extracted_data_json: str
) -> str:
    """Text the document's index vector is computed from."""
    return (
        f"{better_name}\n"
        f"DocType: {doc_type.value}\n"
        f"Description: {description}\n"
        f"ExtractedData: {extracted_data_json}"
    )


class IngestionPipeline:
    def __init__(
        self,
        store: DocumentStore,
        files: FileStore,
        oracle: Oracle,
        index: VectorIndex,
        max_upload_bytes: Optional[int] = None,
    ):
        self.store = store
        self.files = files
        self.oracle = oracle
        self.index = index
        self.max_upload_bytes = max_upload_bytes

    def validate(self, upload: UploadedFile) -> None:
        """Reject bad uploads before any row or file exists."""
        if not upload.filename:
            raise IntakeError("Missing file name")
        if not upload.content:
            raise IntakeError(f"Empty file: {upload.filename}")
        if self.max_upload_bytes and len(upload.content) > self.max_upload_bytes:
            raise IntakeError(
                f"File too large: {upload.filename} "
                f"(max {self.max_upload_bytes // (1024 * 1024)}MB)"
            )
        ext = Path(upload.filename).suffix.lower()
        if ext and ext not in ALLOWED_EXTENSIONS:
            raise IntakeError(
                f"File type '{ext}' not allowed. "
                f"Supported: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
            )

    async def ingest(self, upload: UploadedFile) -> Document:
        """Run one file through every stage. Raises StageError after marking Failed."""
        self.validate(upload)

        doc_id = new_uuid()
        now = utcnow()

        try:
            stored = await self.files.save(
                upload.content, doc_id, upload.filename, upload.content_type
            )
        except OSError as e:
            logger.error("Storing %s failed: %s", upload.filename, e)
            raise StageError(None, "store", f"Failed to store file: {e}") from e

        document = Document(
            id=doc_id,
            original_file_name=upload.filename,
            stored_file_name=stored.stored_file_name,
            file_path=stored.file_path,
            mime_type=stored.mime_type,
            file_size=stored.file_size,
            processing_status=ProcessingStatus.PROCESSING.value,
            created_at=now,
            updated_at=now,
        )
        try:
            await self.store.insert(document)
        except Exception:
            # No row to point at the file; don't leave it orphaned
            await self.files.delete(stored.file_path)
            raise
        await realtime.document_processing(doc_id, ProcessingStatus.PROCESSING.value)

        stage = "classification"
        try:
            file_bytes = await self.files.read(stored.file_path)

            classification = await classify_and_name(
                self.oracle, file_bytes, stored.mime_type, upload.filename
            )
            doc_type = classification.doc_type

            stage = "rename"
            final_name = build_final_file_name(
                doc_type, now, classification.better_name, doc_id,
                Path(stored.stored_file_name).suffix,
            )
            stored_name, file_path = await self.files.rename(stored.file_path, final_name)
            await self.store.update_classification(
                doc_id, stored_name, file_path,
                doc_type.value, classification.confidence, classification.better_name,
            )
            document.stored_file_name = stored_name
            document.file_path = file_path
            document.doc_type = doc_type.value
            document.classification_confidence = classification.confidence
            document.better_name = classification.better_name

            stage = "extraction"
            extraction = await extract(self.oracle, doc_type, file_bytes, stored.mime_type)
            await self.store.update_extraction(
                doc_id, extraction.extracted_data_json, extraction.description
            )
            document.extracted_data_json = extraction.extracted_data_json
            document.description = extraction.description

            stage = "embedding"
            canonical_text = build_canonical_text(
                classification.better_name, doc_type,
                extraction.description, extraction.extracted_data_json,
            )
            embedding = await self.oracle.embed(canonical_text, EmbeddingIntent.DOCUMENT)

            stage = "indexing"
            await self.index.upsert(
                doc_id,
                embedding,
                canonical_text,
                {
                    "docType": doc_type.value,
                    "betterName": classification.better_name,
                    "filePath": file_path,
                    "mimeType": stored.mime_type,
                    "fileSize": stored.file_size,
                    "createdAt": now,
                },
            )

            embedded_at = utcnow()
            await self.store.mark_completed(doc_id, embedded_at)
            document.embedded_at = embedded_at
            document.processing_status = ProcessingStatus.COMPLETED.value

        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error("Ingestion of %s failed at %s: %s", doc_id, stage, message)
            await self.store.mark_failed(doc_id, message)
            await realtime.document_processing(doc_id, ProcessingStatus.FAILED.value, message)
            raise StageError(doc_id, stage, message) from e

        await realtime.document_processing(doc_id, ProcessingStatus.COMPLETED.value)
        logger.info(
            "Document ingested: %s → %s (%s)",
            upload.filename, document.stored_file_name, document.doc_type,
        )
        return document

    async def ingest_batch(self, uploads: list[UploadedFile]) -> list[IngestOutcome]:
        """Ingest files one at a time. One file's failure never stops the rest."""
        outcomes: list[IngestOutcome] = []
        for upload in uploads:
            try:
                document = await self.ingest(upload)
                outcomes.append(IngestOutcome(
                    doc_id=document.id,
                    original_file_name=document.original_file_name,
                    status=document.processing_status,
                ))
            except IntakeError as e:
                logger.warning("Rejected upload %s: %s", upload.filename, e)
                outcomes.append(IngestOutcome(
                    doc_id=None,
                    original_file_name=upload.filename,
                    status=ProcessingStatus.FAILED.value,
                    error=str(e),
                ))
            except StageError as e:
                outcomes.append(IngestOutcome(
                    doc_id=e.document_id,
                    original_file_name=upload.filename,
                    status=ProcessingStatus.FAILED.value,
                    error=e.message,
                ))
            except Exception as e:
                logger.exception("Error ingesting file %s", upload.filename)
                outcomes.append(IngestOutcome(
                    doc_id=None,
                    original_file_name=upload.filename,
                    status=ProcessingStatus.FAILED.value,
                    error=str(e) or type(e).__name__,
                ))
        return outcomes
