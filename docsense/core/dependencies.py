"""
FastAPI dependencies. Injected into route handlers.
Tests swap any of these out through app.dependency_overrides.
"""

from functools import lru_cache

from fastapi import Depends

from .config import get_settings
from .flags import get_flags
from .storage import FileStore, get_storage as _get_storage
from ..services.documents import DocumentStore
from ..services.ingestion import IngestionPipeline
from ..services.llm import GeminiOracle, Oracle
from ..services.reranker import Reranker
from ..services.search import SearchService
from ..services.vector_index import ChromaIndex, VectorIndex


def get_document_store() -> DocumentStore:
    return DocumentStore()


def get_storage_dep() -> FileStore:
    """Returns the active storage backend."""
    return _get_storage()


@lru_cache
def get_oracle() -> Oracle:
    return GeminiOracle()


@lru_cache
def get_vector_index() -> VectorIndex:
    return ChromaIndex()


@lru_cache(maxsize=8)
def _reranker_for(oracle: Oracle) -> Reranker:
    # One reranker (and one semaphore) per oracle, shared by every search
    settings = get_settings()
    flags = get_flags()
    return Reranker(
        oracle,
        concurrency=settings.rerank_concurrency,
        tie_break_threshold=settings.tie_break_threshold,
        use_tie_break=flags.use_tie_break,
    )


def get_reranker(oracle: Oracle = Depends(get_oracle)) -> Reranker:
    return _reranker_for(oracle)


def get_ingestion_pipeline(
    store: DocumentStore = Depends(get_document_store),
    files: FileStore = Depends(get_storage_dep),
    oracle: Oracle = Depends(get_oracle),
    index: VectorIndex = Depends(get_vector_index),
) -> IngestionPipeline:
    settings = get_settings()
    return IngestionPipeline(
        store, files, oracle, index,
        max_upload_bytes=settings.max_upload_size_mb * 1024 * 1024,
    )


def get_search_service(
    store: DocumentStore = Depends(get_document_store),
    oracle: Oracle = Depends(get_oracle),
    index: VectorIndex = Depends(get_vector_index),
    reranker: Reranker = Depends(get_reranker),
) -> SearchService:
    return SearchService(
        oracle, index, store, reranker,
        default_top_k=get_settings().default_top_k,
        filter_by_doc_type=get_flags().filter_by_doc_type,
    )


async def close_vector_index() -> None:
    # Only close an index that was actually created
    if get_vector_index.cache_info().currsize:
        index = get_vector_index()
        if isinstance(index, ChromaIndex):
            await index.close()
        get_vector_index.cache_clear()
