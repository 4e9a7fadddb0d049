"""
Tests for the document store and browse pagination.
"""

from datetime import timedelta

import pytest

from docsense.models.base import utcnow
from docsense.services.documents import clamp_pagination, total_pages

from .conftest import make_document


@pytest.mark.parametrize(
    "page, page_size, expected",
    [
        (1, 50, (1, 50)),
        (0, 10, (1, 10)),
        (-3, 10, (1, 10)),
        (2, 0, (2, 50)),
        (2, -1, (2, 50)),
        (None, None, (1, 50)),
        (1, 500, (1, 100)),
        (4, 100, (4, 100)),
    ],
)
def test_clamp_pagination(page, page_size, expected):
    assert clamp_pagination(page, page_size) == expected


def test_total_pages():
    assert total_pages(0, 50) == 0
    assert total_pages(50, 50) == 1
    assert total_pages(51, 50) == 2


async def test_list_completed_newest_first(store):
    now = utcnow()
    old = make_document(better_name="old", created_at=now - timedelta(days=2))
    new = make_document(better_name="new", created_at=now)
    failed = make_document(better_name="failed", processing_status="Failed", created_at=now)
    processing = make_document(better_name="busy", processing_status="Processing", created_at=now)
    for doc in (old, new, failed, processing):
        await store.insert(doc)

    docs, total = await store.list_completed(1, 50)
    assert [d.better_name for d in docs] == ["new", "old"]
    assert total == 2

    docs, total = await store.list_completed(2, 1)
    assert [d.better_name for d in docs] == ["old"]
    assert total == 2


async def test_staged_updates(store):
    doc = make_document(
        processing_status="Processing", doc_type=None, better_name=None,
        extracted_data_json=None, description=None, embedded_at=None,
    )
    await store.insert(doc)

    await store.update_classification(doc.id, "new.jpg", "/x/new.jpg", "Invoice", 0.8, "ACME invoice")
    row = await store.get(doc.id)
    assert (row.doc_type, row.better_name, row.stored_file_name) == ("Invoice", "ACME invoice", "new.jpg")
    assert row.processing_status == "Processing"

    await store.update_extraction(doc.id, '{"total": 3}', "An invoice")
    await store.mark_failed(doc.id, "embedding failed")
    row = await store.get(doc.id)
    assert row.extracted_data_json == '{"total": 3}'
    assert row.processing_status == "Failed"
    assert row.error_message == "embedding failed"


async def test_get_many_and_delete(store):
    a, b = make_document(), make_document()
    await store.insert(a)
    await store.insert(b)

    assert {d.id for d in await store.get_many([a.id, b.id, "missing"])} == {a.id, b.id}
    assert await store.get_many([]) == []

    assert await store.delete(a.id) is True
    assert await store.delete(a.id) is False
    assert await store.get(a.id) is None
