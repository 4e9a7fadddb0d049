"""
All database models. Imported here so Base.metadata sees them for create_all().
"""

from .base import TimestampedBase
from .document import Document, DocType, ProcessingStatus

__all__ = [
    "TimestampedBase",
    "Document", "DocType", "ProcessingStatus",
]
