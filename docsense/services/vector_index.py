"""
Vector index client (Chroma v2 REST). Direct HTTP calls, keyed by document id.

The collection is resolved by name on first use (get_or_create, cosine space)
and its id cached for the lifetime of the client.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

import httpx

from ..core.config import get_settings
from ..core.errors import OracleUnavailable

logger = logging.getLogger(__name__)


@dataclass
class QueryResult:
    """Parallel arrays of neighbor ids and distances, nearest first."""
    ids: list[str] = field(default_factory=list)
    distances: list[float] = field(default_factory=list)


class VectorIndex(ABC):
    @abstractmethod
    async def upsert(
        self,
        id: str,
        embedding: list[float],
        document: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> None:
        ...

    @abstractmethod
    async def query(
        self,
        embedding: list[float],
        n_results: int,
        contains: Optional[str] = None,
    ) -> QueryResult:
        ...

    @abstractmethod
    async def delete(self, ids: list[str]) -> None:
        ...


class ChromaIndex(VectorIndex):
    def __init__(
        self,
        base_url: Optional[str] = None,
        tenant: Optional[str] = None,
        database: Optional[str] = None,
        collection: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.chroma_base_url).rstrip("/")
        self.tenant = tenant or settings.chroma_tenant
        self.database = database or settings.chroma_database
        self.collection = collection or settings.chroma_collection
        self._client = client
        self._owns_client = client is None
        self._collection_id: Optional[str] = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(30, connect=10))
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    @property
    def _db_path(self) -> str:
        return f"/api/v2/tenants/{self.tenant}/databases/{self.database}"

    async def _send(self, path: str, body: dict) -> Any:
        url = f"{self.base_url}{path}"
        try:
            resp = await self._http().post(url, json=body)
        except httpx.HTTPError as e:
            logger.error("Chroma request failed (%s): %s", path, e)
            raise OracleUnavailable(f"Vector index unreachable: {e}") from e

        if resp.status_code >= 400:
            logger.error("Chroma request failed %d: %s", resp.status_code, resp.text[:500])
            raise OracleUnavailable(f"Vector index request failed: {resp.status_code}: {resp.text[:200]}")

        if not resp.content:
            return None
        return resp.json()

    async def _collection_path(self) -> str:
        if self._collection_id is None:
            data = await self._send(
                f"{self._db_path}/collections",
                {
                    "name": self.collection,
                    "get_or_create": True,
                    "metadata": {"hnsw:space": "cosine"},
                },
            )
            self._collection_id = data["id"]
            logger.info("Chroma collection resolved: %s → %s", self.collection, self._collection_id)
        return f"{self._db_path}/collections/{self._collection_id}"

    async def upsert(
        self,
        id: str,
        embedding: list[float],
        document: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> None:
        body: dict[str, Any] = {
            "ids": [id],
            "embeddings": [embedding],
            "metadatas": [_clean_metadata(metadata or {})],
        }
        if document:
            body["documents"] = [document]

        path = await self._collection_path()
        await self._send(f"{path}/upsert", body)
        logger.info("Upserted vector for %s", id)

    async def query(
        self,
        embedding: list[float],
        n_results: int,
        contains: Optional[str] = None,
    ) -> QueryResult:
        body: dict[str, Any] = {
            "query_embeddings": [embedding],
            "n_results": max(1, n_results),
            "include": ["distances"],
        }
        if contains and contains.strip():
            body["where_document"] = {"$contains": contains}

        path = await self._collection_path()
        data = await self._send(f"{path}/query", body) or {}

        ids = data.get("ids") or [[]]
        distances = data.get("distances") or [[]]
        return QueryResult(
            ids=list(ids[0]) if ids else [],
            distances=[float(d) for d in distances[0]] if distances else [],
        )

    async def delete(self, ids: list[str]) -> None:
        ids = [i for i in ids or [] if i]
        if not ids:
            return
        path = await self._collection_path()
        await self._send(f"{path}/delete", {"ids": ids})
        logger.info("Deleted %d vector(s)", len(ids))


def _clean_metadata(metadata: dict) -> dict:
    """Chroma metadata values must be scalars; drop None, stringify dates."""
    cleaned = {}
    for key, value in metadata.items():
        if value is None:
            continue
        if isinstance(value, datetime):
            value = value.isoformat()
        elif not isinstance(value, (str, int, float, bool)):
            value = str(value)
        cleaned[key] = value
    return cleaned
