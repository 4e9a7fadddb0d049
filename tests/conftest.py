"""
Shared fixtures: a scripted oracle, an in-memory vector index, and a
SQLite-backed document store living in tmp_path.
"""

import asyncio
import math
import re
from typing import Callable, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docsense.core.database import build_engine, create_tables
from docsense.core.storage import LocalStorage
from docsense.models.base import new_uuid, utcnow
from docsense.models.document import Document, ProcessingStatus
from docsense.services.documents import DocumentStore
from docsense.services.ingestion import IngestionPipeline
from docsense.services.llm import EmbeddingIntent, Oracle, normalize
from docsense.services.vector_index import QueryResult, VectorIndex


RECEIPT_EXTRACTION = '{"storeName": "Rema 1000", "total": 120.5, "currency": "NOK"}'

DEFAULT_RESPONSES = {
    "classification": '{"docType": "Receipt", "confidence": 0.93}',
    "filename": '```json\n{"betterName": "Rema 1000 receipt"}\n```',
    "extraction": RECEIPT_EXTRACTION,
    "description": '{"description": "Grocery receipt from Rema 1000"}',
    "expansion": '{"englishQuery": "grocery receipt", "expandedEnglishQuery": "grocery store receipt purchase", "docType": ""}',
    "rerank": '{"relevancy": 0.5}',
    "tie_break": "[]",
}


def prompt_kind(prompt: str) -> str:
    if prompt.startswith("Classify this image/document"):
        return "classification"
    if "suggest a short descriptive filename" in prompt:
        return "filename"
    if prompt.startswith("Extract structured information") or "description of this image" in prompt:
        return "extraction"
    if "description of what this document is about" in prompt:
        return "description"
    if prompt.startswith("You are a query expander"):
        return "expansion"
    if prompt.startswith("You are a reranker"):
        return "rerank"
    if prompt.startswith("Tie-break ranking"):
        return "tie_break"
    raise AssertionError(f"Unexpected prompt: {prompt[:80]!r}")


def rerank_doc_id(prompt: str) -> str:
    return re.search(r'"docId": "([^"]+)"', prompt).group(1)


def letter_vector(text: str) -> list[float]:
    counts = [0.0] * 26
    for ch in text.lower():
        if "a" <= ch <= "z":
            counts[ord(ch) - ord("a")] += 1
    if not any(counts):
        counts[0] = 1.0
    return normalize(counts)


class FakeOracle(Oracle):
    """
    Answers by prompt kind. A response may be a string, an exception instance
    (raised), or a callable taking the prompt.
    """

    def __init__(
        self,
        responses: Optional[dict] = None,
        embedder: Optional[Callable[[str, EmbeddingIntent], list[float]]] = None,
        delay: float = 0.0,
        block_on: tuple = (),
    ):
        self.responses = {**DEFAULT_RESPONSES, **(responses or {})}
        self.embedder = embedder or (lambda text, intent: letter_vector(text))
        self.delay = delay
        self.block_on = block_on
        self.calls: list[str] = []
        self.prompts: list[str] = []
        self.embed_calls: list[tuple[str, EmbeddingIntent]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def generate(self, prompt, image=None, mime_type=None):
        kind = prompt_kind(prompt)
        self.calls.append(kind)
        self.prompts.append(prompt)

        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if kind in self.block_on:
                await asyncio.Event().wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            response = self.responses[kind]
            if isinstance(response, Exception):
                raise response
            if callable(response):
                return response(prompt)
            return response
        finally:
            self.in_flight -= 1

    async def embed(self, text, intent):
        self.embed_calls.append((text, intent))
        return self.embedder(text, intent)


class FakeVectorIndex(VectorIndex):
    """Cosine nearest-neighbor over a dict, keyed by id."""

    def __init__(self):
        self.vectors: dict[str, list[float]] = {}
        self.documents: dict[str, Optional[str]] = {}
        self.metadatas: dict[str, dict] = {}
        self.delete_error: Optional[Exception] = None
        self.query_error: Optional[Exception] = None

    async def upsert(self, id, embedding, document=None, metadata=None):
        self.vectors[id] = list(embedding)
        self.documents[id] = document
        self.metadatas[id] = dict(metadata or {})

    async def query(self, embedding, n_results, contains=None):
        if self.query_error:
            raise self.query_error
        scored = sorted(
            (1.0 - _cosine(embedding, vector), doc_id)
            for doc_id, vector in self.vectors.items()
        )[:n_results]
        return QueryResult(
            ids=[doc_id for _, doc_id in scored],
            distances=[distance for distance, _ in scored],
        )

    async def delete(self, ids):
        if self.delete_error:
            raise self.delete_error
        for doc_id in ids:
            self.vectors.pop(doc_id, None)
            self.documents.pop(doc_id, None)
            self.metadatas.pop(doc_id, None)


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(y * y for y in b))
    return dot / (na * nb) if na and nb else 0.0


def make_document(**overrides) -> Document:
    """A Completed document row with every field populated."""
    now = overrides.pop("created_at", None) or utcnow()
    doc_id = overrides.pop("id", None) or new_uuid()
    values = dict(
        id=doc_id,
        original_file_name="scan.jpg",
        stored_file_name=f"Receipt-{now:%Y%m%d}-scan-{doc_id[:8]}.jpg",
        file_path=f"/tmp/{doc_id}.jpg",
        mime_type="image/jpeg",
        file_size=10,
        doc_type="Receipt",
        classification_confidence=0.9,
        better_name="scan",
        extracted_data_json='{"total": 1}',
        description="A scan",
        processing_status=ProcessingStatus.COMPLETED.value,
        embedded_at=now,
        created_at=now,
        updated_at=now,
    )
    values.update(overrides)
    return Document(**values)


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'db' / 'docsense.db'}")
    await create_tables(engine)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def store(session_factory) -> DocumentStore:
    return DocumentStore(session_factory)


@pytest.fixture
def files(tmp_path) -> LocalStorage:
    return LocalStorage(str(tmp_path / "files"))


@pytest.fixture
def oracle() -> FakeOracle:
    return FakeOracle()


@pytest.fixture
def index() -> FakeVectorIndex:
    return FakeVectorIndex()


@pytest.fixture
def pipeline(store, files, oracle, index) -> IngestionPipeline:
    return IngestionPipeline(store, files, oracle, index, max_upload_bytes=1024 * 1024)
