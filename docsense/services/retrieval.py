"""
Retrieval — query-intent embedding + nearest-neighbor lookup.
"""

import logging
from dataclasses import dataclass

from ..models.document import Document
from .documents import DocumentStore
from .llm import EmbeddingIntent, Oracle
from .vector_index import VectorIndex

logger = logging.getLogger(__name__)


@dataclass
class RetrievedHit:
    document: Document
    similarity: float


async def retrieve(
    oracle: Oracle,
    index: VectorIndex,
    store: DocumentStore,
    expanded_query: str,
    top_k: int,
    offset: int = 0,
) -> list[RetrievedHit]:
    """
    Over-fetch top_k + offset neighbors (the index has no server-side offset),
    drop the first `offset`, and keep only hits that resolve to a stored document.
    """
    offset = max(0, offset)
    embedding = await oracle.embed(expanded_query, EmbeddingIntent.QUERY)
    result = await index.query(embedding, top_k + offset)

    pairs = list(zip(result.ids, result.distances))[offset:]
    if not pairs:
        return []

    documents = await store.get_many([doc_id for doc_id, _ in pairs])
    by_id = {d.id: d for d in documents}

    hits = []
    for doc_id, distance in pairs:
        document = by_id.get(doc_id)
        if document is None:
            logger.warning("Index hit %s has no stored document; skipping", doc_id)
            continue
        hits.append(RetrievedHit(document=document, similarity=1.0 - distance))
    return hits
