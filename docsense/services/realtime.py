"""
Realtime notifications. Thin wrapper around core.redis.
"""

from ..core import redis as _redis

DOCUMENTS_CHANNEL = "documents"


async def document_processing(doc_id: str, status: str, error: str = None):
    data = {"document_id": doc_id, "status": status}
    if error:
        data["error"] = error
    await _redis.publish(DOCUMENTS_CHANNEL, "document.processing", data)
