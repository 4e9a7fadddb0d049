"""
Semantic search endpoint.

POST /search — expand, retrieve, rerank
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..core.dependencies import get_search_service
from ..services.search import SearchService

logger = logging.getLogger(__name__)

search_router = APIRouter(tags=["search"])


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SearchRequest(CamelModel):
    query: str = ""
    top_k: Optional[int] = None
    doc_type: Optional[str] = None
    offset: int = 0


class SearchResultOut(CamelModel):
    doc_id: str
    better_name: str
    doc_type: str
    similarity: float
    rerank: float
    preview_url: str
    mime_type: str


class SearchResponse(CamelModel):
    results: list[SearchResultOut]
    english_query: str
    expanded_query: str
    doc_type: Optional[str] = None


@search_router.post("/search", response_model=SearchResponse)
async def search(
    body: SearchRequest,
    service: SearchService = Depends(get_search_service),
):
    if not body.query or not body.query.strip():
        raise HTTPException(status_code=400, detail="Query is required")

    outcome = await service.search(
        body.query.strip(),
        top_k=body.top_k,
        doc_type=body.doc_type,
        offset=max(0, body.offset),
    )

    return SearchResponse(
        results=[
            SearchResultOut(
                doc_id=h.doc_id,
                better_name=h.better_name,
                doc_type=h.doc_type,
                similarity=h.similarity,
                rerank=h.rerank,
                preview_url=h.preview_url,
                mime_type=h.mime_type,
            )
            for h in outcome.results
        ],
        english_query=outcome.english_query,
        expanded_query=outcome.expanded_query,
        doc_type=outcome.doc_type,
    )
