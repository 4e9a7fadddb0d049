"""
Search orchestrator: expansion → retrieval → reranking → result assembly.

Retrieval failures surface to the caller. Scoring and tie-break failures are
absorbed inside the reranker.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from ..models.document import Document
from .documents import DocumentStore
from .llm import Oracle
from .query_expansion import expand_query
from .reranker import Candidate, Reranker
from .retrieval import retrieve
from .vector_index import VectorIndex

logger = logging.getLogger(__name__)


@dataclass
class SearchHit:
    doc_id: str
    better_name: str
    doc_type: str
    similarity: float
    rerank: float
    preview_url: str
    mime_type: str


@dataclass
class SearchOutcome:
    english_query: str
    expanded_query: str
    doc_type: Optional[str]
    results: list[SearchHit] = field(default_factory=list)


def preview_url(document_id: str) -> str:
    return f"/documents/{document_id}/content"


class SearchService:
    def __init__(
        self,
        oracle: Oracle,
        index: VectorIndex,
        store: DocumentStore,
        reranker: Reranker,
        default_top_k: int = 50,
        filter_by_doc_type: bool = False,
    ):
        self.oracle = oracle
        self.index = index
        self.store = store
        self.reranker = reranker
        self.default_top_k = default_top_k
        self.filter_by_doc_type = filter_by_doc_type

    async def search(
        self,
        query: str,
        top_k: Optional[int] = None,
        doc_type: Optional[str] = None,
        offset: int = 0,
    ) -> SearchOutcome:
        top_k = top_k if top_k and top_k > 0 else self.default_top_k

        # 1) Query expansion
        expansion = await expand_query(self.oracle, query, doc_type)

        # 2) Embedding + vector search
        hits = await retrieve(
            self.oracle, self.index, self.store,
            expansion.expanded_english_query, top_k, offset,
        )
        outcome = SearchOutcome(
            english_query=expansion.english_query,
            expanded_query=expansion.expanded_english_query,
            doc_type=expansion.doc_type,
        )
        if self.filter_by_doc_type and expansion.doc_type:
            # Drop off-type hits before they cost a scoring call
            wanted = expansion.doc_type.lower()
            hits = [h for h in hits if (h.document.doc_type or "").lower() == wanted]
        if not hits:
            return outcome

        # 3) Rerank against the literal user query
        documents: dict[str, Document] = {h.document.id: h.document for h in hits}
        ranked = await self.reranker.rerank(
            query,
            [
                Candidate(
                    id=h.document.id,
                    similarity=h.similarity,
                    extracted_data_json=h.document.extracted_data_json,
                )
                for h in hits
            ],
        )

        # 4) Assemble
        for scored in ranked:
            document = documents[scored.id]
            outcome.results.append(SearchHit(
                doc_id=document.id,
                better_name=document.better_name or document.original_file_name,
                doc_type=document.doc_type or "",
                similarity=scored.similarity,
                rerank=scored.rerank_score,
                preview_url=preview_url(document.id),
                mime_type=document.mime_type,
            ))

        logger.info(
            "Search %r → %d result(s) (docType=%s)",
            query, len(outcome.results), expansion.doc_type,
        )
        return outcome
