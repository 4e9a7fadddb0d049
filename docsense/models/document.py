"""
Documents — one row per uploaded file.
Fields are filled stage by stage by the ingestion pipeline; readers must
tolerate rows where later stages have not run yet.
"""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Text, BigInteger, Float, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from .base import TimestampedBase


class ProcessingStatus(str, enum.Enum):
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"


class DocType(str, enum.Enum):
    INVOICE = "Invoice"
    RECEIPT = "Receipt"
    FLIGHT_TICKET = "FlightTicket"
    ORDER_CONFIRMATION = "OrderConfirmation"
    OTHER = "Other"


class Document(TimestampedBase):
    __tablename__ = "documents"

    original_file_name: Mapped[str] = mapped_column(String, nullable=False)
    stored_file_name: Mapped[str] = mapped_column(String, nullable=False)
    file_path: Mapped[str] = mapped_column(Text, nullable=False)
    mime_type: Mapped[str] = mapped_column(String, nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    # Classification stage
    doc_type: Mapped[Optional[str]] = mapped_column(String, nullable=True, index=True)
    classification_confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    better_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    # Extraction stage
    extracted_data_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    processing_status: Mapped[str] = mapped_column(
        String, nullable=False, default=ProcessingStatus.PROCESSING.value, index=True
    )  # Processing, Completed, Failed
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    embedded_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
