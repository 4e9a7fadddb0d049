"""
Document store — durable record of one row per uploaded file.

Every staged update opens its own session and commits, so the progress of a
pipeline run is visible (and survives a crash) stage by stage.
"""

import logging
import math
from datetime import datetime
from typing import Optional

from sqlalchemy import select, func, update, delete as sql_delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.database import get_session_factory
from ..models.base import utcnow
from ..models.document import Document, ProcessingStatus

logger = logging.getLogger(__name__)


class DocumentStore:
    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        self._session_factory = session_factory or get_session_factory()

    async def insert(self, document: Document) -> Document:
        async with self._session_factory() as session:
            session.add(document)
            await session.commit()
        return document

    async def update_classification(
        self,
        document_id: str,
        stored_file_name: str,
        file_path: str,
        doc_type: str,
        confidence: float,
        better_name: str,
    ) -> None:
        await self._update(
            document_id,
            stored_file_name=stored_file_name,
            file_path=file_path,
            doc_type=doc_type,
            classification_confidence=confidence,
            better_name=better_name,
        )

    async def update_extraction(
        self, document_id: str, extracted_data_json: str, description: str
    ) -> None:
        await self._update(
            document_id,
            extracted_data_json=extracted_data_json,
            description=description,
        )

    async def mark_completed(self, document_id: str, embedded_at: datetime) -> None:
        await self._update(
            document_id,
            embedded_at=embedded_at,
            processing_status=ProcessingStatus.COMPLETED.value,
        )

    async def mark_failed(self, document_id: str, error_message: str) -> None:
        await self._update(
            document_id,
            processing_status=ProcessingStatus.FAILED.value,
            error_message=error_message,
        )

    async def get(self, document_id: str) -> Optional[Document]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Document).where(Document.id == document_id)
            )
            return result.scalar_one_or_none()

    async def get_many(self, document_ids: list[str]) -> list[Document]:
        if not document_ids:
            return []
        async with self._session_factory() as session:
            result = await session.execute(
                select(Document).where(Document.id.in_(document_ids))
            )
            return list(result.scalars().all())

    async def list_completed(self, page: int, page_size: int) -> tuple[list[Document], int]:
        """Completed documents only, newest first. Returns (page rows, total count)."""
        completed = Document.processing_status == ProcessingStatus.COMPLETED.value
        async with self._session_factory() as session:
            total = await session.scalar(
                select(func.count()).select_from(Document).where(completed)
            )
            result = await session.execute(
                select(Document)
                .where(completed)
                .order_by(Document.created_at.desc())
                .limit(page_size)
                .offset((page - 1) * page_size)
            )
            return list(result.scalars().all()), int(total or 0)

    async def delete(self, document_id: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                sql_delete(Document).where(Document.id == document_id)
            )
            await session.commit()
            return result.rowcount > 0

    async def _update(self, document_id: str, **values) -> None:
        values["updated_at"] = utcnow()
        async with self._session_factory() as session:
            await session.execute(
                update(Document).where(Document.id == document_id).values(**values)
            )
            await session.commit()


def clamp_pagination(
    page: Optional[int],
    page_size: Optional[int],
    default_page_size: int = 50,
    max_page_size: int = 100,
) -> tuple[int, int]:
    """Clamp browse parameters into valid ranges."""
    page = page if page and page >= 1 else 1
    if not page_size or page_size < 1:
        page_size = default_page_size
    page_size = min(page_size, max_page_size)
    return page, page_size


def total_pages(total_count: int, page_size: int) -> int:
    return math.ceil(total_count / page_size) if page_size > 0 else 0
