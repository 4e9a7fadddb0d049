"""
Classification & naming. Two concurrent oracle calls over the same file bytes:
one for the document type, one for a descriptive filename stem.
A failed or unparseable answer from either call aborts the document.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..core.errors import ParseError
from ..core.tasks import gather_all
from ..models.document import DocType
from .llm import Oracle, as_float, parse_json_response
from .prompts import CLASSIFICATION_PROMPT, build_filename_prompt

logger = logging.getLogger(__name__)

DEFAULT_BETTER_NAME = "document"

_DOC_TYPE_ALIASES = {
    "invoice": DocType.INVOICE,
    "receipt": DocType.RECEIPT,
    "flight ticket": DocType.FLIGHT_TICKET,
    "flight_ticket": DocType.FLIGHT_TICKET,
    "flightticket": DocType.FLIGHT_TICKET,
    "ticket": DocType.FLIGHT_TICKET,
    "order confirmation": DocType.ORDER_CONFIRMATION,
    "order_confirmation": DocType.ORDER_CONFIRMATION,
    "orderconfirmation": DocType.ORDER_CONFIRMATION,
}


@dataclass
class Classification:
    doc_type: DocType
    confidence: float
    better_name: str


def normalize_doc_type(value: Optional[str]) -> DocType:
    """Map free-text oracle output onto the canonical enum. Unknown → Other."""
    key = (value or "").strip().lower()
    return _DOC_TYPE_ALIASES.get(key, DocType.OTHER)


def parse_classification(text: str) -> tuple[DocType, float]:
    data = parse_json_response(text)
    if not isinstance(data, dict):
        raise ParseError(f"Unparseable classification response: {text[:200]!r}")

    raw_type = data.get("docType") or data.get("type") or "Other"
    confidence = min(1.0, max(0.0, as_float(data.get("confidence"))))
    return normalize_doc_type(str(raw_type)), confidence


def parse_better_name(text: str) -> str:
    data = parse_json_response(text)
    if not isinstance(data, dict):
        raise ParseError(f"Unparseable filename response: {text[:200]!r}")

    if data.get("betterName"):
        return str(data["betterName"])
    if data.get("alternativeFilename"):
        # Older prompt variant returned a full filename; keep only the stem
        return Path(str(data["alternativeFilename"])).stem or DEFAULT_BETTER_NAME
    return DEFAULT_BETTER_NAME


async def classify_and_name(
    oracle: Oracle,
    file_bytes: bytes,
    mime_type: str,
    original_file_name: str,
) -> Classification:
    """Fan out both oracle calls, join, then parse. Either failure propagates."""
    classification_text, filename_text = await gather_all(
        oracle.generate(CLASSIFICATION_PROMPT, file_bytes, mime_type),
        oracle.generate(build_filename_prompt(original_file_name), file_bytes, mime_type),
    )

    doc_type, confidence = parse_classification(classification_text)
    better_name = parse_better_name(filename_text)

    logger.info(
        "Classified %s as %s (%.2f) → %r",
        original_file_name, doc_type.value, confidence, better_name,
    )
    return Classification(doc_type=doc_type, confidence=confidence, better_name=better_name)
