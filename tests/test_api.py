"""
HTTP-level tests. Dependencies are swapped for the in-memory fakes.
"""

from pathlib import Path

import httpx
import pytest
import pytest_asyncio

from docsense.core.dependencies import (
    get_document_store,
    get_oracle,
    get_storage_dep,
    get_vector_index,
)
from docsense.core.errors import OracleUnavailable
from docsense.factory import create_app

from .conftest import make_document


@pytest_asyncio.fixture
async def client(store, files, oracle, index):
    app = create_app()
    app.dependency_overrides[get_document_store] = lambda: store
    app.dependency_overrides[get_storage_dep] = lambda: files
    app.dependency_overrides[get_oracle] = lambda: oracle
    app.dependency_overrides[get_vector_index] = lambda: index

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def upload(client, *names):
    files = [("files", (name, b"\xff\xd8image-bytes", "image/jpeg")) for name in names]
    return await client.post("/documents", files=files)


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "service": "docsense"}


async def test_upload_and_fetch(client):
    resp = await upload(client, "IMG_0042.jpg")
    assert resp.status_code == 200
    [item] = resp.json()["documents"]
    assert item["status"] == "Completed"
    assert item["originalFileName"] == "IMG_0042.jpg"
    assert "error" not in item

    resp = await client.get(f"/documents/{item['docId']}")
    assert resp.status_code == 200
    body = resp.json()
    assert body["id"] == item["docId"]
    assert body["docType"] == "Receipt"
    assert body["betterName"] == "Rema 1000 receipt"
    assert body["processingStatus"] == "Completed"
    assert body["embeddedAt"] is not None


async def test_upload_mixed_batch(client):
    resp = await client.post("/documents", files=[
        ("files", ("a.jpg", b"img", "image/jpeg")),
        ("files", ("notes.txt", b"text", "text/plain")),
    ])
    assert resp.status_code == 200
    good, bad = resp.json()["documents"]
    assert good["status"] == "Completed"
    assert bad == {
        "docId": None,
        "originalFileName": "notes.txt",
        "status": "Failed",
        "error": bad["error"],
    }
    assert "not allowed" in bad["error"]


async def test_upload_without_files(client):
    resp = await client.post("/documents")
    assert resp.status_code == 400


async def test_upload_too_many_files(client, monkeypatch):
    from docsense.core.config import get_settings

    monkeypatch.setattr(get_settings(), "max_files_per_batch", 1)
    resp = await upload(client, "a.jpg", "b.jpg")
    assert resp.status_code == 400
    assert "Too many files" in resp.json()["detail"]


async def test_browse_clamps_page_size(client, store):
    for i in range(3):
        await store.insert(make_document(better_name=f"doc {i}"))
    await store.insert(make_document(processing_status="Failed"))

    resp = await client.get("/documents", params={"page": 0, "pageSize": 500})
    assert resp.status_code == 200
    body = resp.json()
    assert body["pagination"] == {"page": 1, "pageSize": 100, "totalCount": 3, "totalPages": 1}
    assert len(body["results"]) == 3
    first = body["results"][0]
    assert set(first) == {"docId", "betterName", "docType", "mimeType", "previewUrl", "createdAt"}
    assert first["previewUrl"] == f"/documents/{first['docId']}/content"


async def test_browse_default_page_size(client):
    resp = await client.get("/documents")
    assert resp.json()["pagination"]["pageSize"] == 50


async def test_get_unknown_document(client):
    assert (await client.get("/documents/nope")).status_code == 404
    assert (await client.get("/documents/nope/content")).status_code == 404
    assert (await client.delete("/documents/nope")).status_code == 404


async def test_content_is_served_inline(client):
    [item] = (await upload(client, "IMG_1.jpg")).json()["documents"]

    resp = await client.get(f"/documents/{item['docId']}/content")
    assert resp.status_code == 200
    assert resp.content == b"\xff\xd8image-bytes"
    assert resp.headers["content-type"].startswith("image/jpeg")
    assert resp.headers["content-disposition"].startswith("inline")


async def test_content_missing_file_is_404(client, store):
    doc = make_document(file_path="/definitely/not/here.jpg")
    await store.insert(doc)
    assert (await client.get(f"/documents/{doc.id}/content")).status_code == 404


async def test_delete_removes_everything(client, store, index):
    [item] = (await upload(client, "IMG_1.jpg")).json()["documents"]
    doc_id = item["docId"]
    file_path = (await store.get(doc_id)).file_path

    resp = await client.delete(f"/documents/{doc_id}")
    assert resp.status_code == 200
    assert resp.json() == {"success": True}
    assert await store.get(doc_id) is None
    assert doc_id not in index.vectors
    assert not Path(file_path).exists()


async def test_delete_stops_when_index_fails(client, store, index):
    [item] = (await upload(client, "IMG_1.jpg")).json()["documents"]
    index.delete_error = OracleUnavailable("index down")

    resp = await client.delete(f"/documents/{item['docId']}")
    assert resp.status_code == 503
    assert await store.get(item["docId"]) is not None


async def test_search(client, store, index):
    [item] = (await upload(client, "IMG_1.jpg")).json()["documents"]

    resp = await client.post("/search", json={"query": "rema receipt", "topK": 5})
    assert resp.status_code == 200
    body = resp.json()
    assert body["englishQuery"] == "grocery receipt"
    assert body["expandedQuery"] == "grocery store receipt purchase"
    assert body["docType"] is None
    [hit] = body["results"]
    assert hit["docId"] == item["docId"]
    assert hit["betterName"] == "Rema 1000 receipt"
    assert hit["rerank"] == pytest.approx(0.5)
    assert set(hit) == {"docId", "betterName", "docType", "similarity", "rerank", "previewUrl", "mimeType"}


@pytest.mark.parametrize("payload", [{"query": ""}, {"query": "   "}, {}])
async def test_search_requires_query(client, payload):
    resp = await client.post("/search", json=payload)
    assert resp.status_code == 400


async def test_search_oracle_down_is_503(client, oracle):
    oracle.responses["expansion"] = OracleUnavailable("quota exhausted")
    resp = await client.post("/search", json={"query": "anything"})
    assert resp.status_code == 503
    assert "quota exhausted" in resp.json()["detail"]
