"""
Prompt builders for the oracle. Every prompt asks for JSON only.
"""

import json

from ..models.document import DocType

# ── Ingestion ─────────────────────────────────────────────────────────

CLASSIFICATION_PROMPT = """Classify this image/document into one of these categories (exact string values):
- Invoice
- Receipt
- Flight Ticket
- Order Confirmation
- Other

Respond with JSON only in this format:
{
  "docType": "<one of the categories above>",
  "confidence": <number between 0 and 1>
}

Return JSON only."""

DESCRIPTION_PROMPT = """Provide a detailed description of what this document is about. Focus on the key information, purpose, and context. Be specific and informative.

Respond with JSON only in this format:
{
  "description": "<detailed description of the document>"
}

Return JSON only."""

_CURRENCY_FIELD = (
    '- currency (string, ISO 4217 currency code like "USD", "EUR", "NOK", etc. '
    "If not explicitly stated, make a best guess based on location indicators, "
    "language, or other context clues)"
)

_EXTRACTION_HEADER = (
    "Extract structured information from this {kind} image and return it as valid JSON only. "
    "Do not include any explanation or markdown formatting, just the JSON object.\n\n"
    "Extract the following fields:\n"
)

_EXTRACTION_FIELDS = {
    DocType.INVOICE: [
        "- invoiceNumber (string)",
        "- invoiceDate (string, ISO 8601 format)",
        "- dueDate (string, ISO 8601 format, if available)",
        "- bankAccountNumber (string, if available)",
        "- cid (string, organization number, if available)",
        "- vendorName (string)",
        "- customerName (string, if available)",
        _CURRENCY_FIELD,
        "- lineItems (array of objects with: description, quantity (number, if available), unitPrice (number), total (number))",
        "- subtotal (number)",
        "- tax (number, if available)",
        "- total (number)",
    ],
    DocType.FLIGHT_TICKET: [
        "- travelingFrom (string, departure city/airport)",
        "- travelingTo (string, destination city/airport)",
        "- departureDate (string, ISO 8601 format)",
        "- departureTime (string, time format)",
        "- arrivalDate (string, ISO 8601 format, if available)",
        "- arrivalTime (string, time format, if available)",
        "- flightNumber (string, if available)",
        "- passengerName (string, if available)",
        "- bookingReference (string, if available)",
    ],
    DocType.RECEIPT: [
        "- storeName (string)",
        "- transactionDate (string, ISO 8601 format)",
        "- transactionTime (string, time format, if available)",
        _CURRENCY_FIELD,
        "- items (array of objects with: name, price (number), quantity (number, if available))",
        "- subtotal (number, if available)",
        "- tax (number, if available)",
        "- total (number)",
        "- paymentMethod (string, if available)",
    ],
    DocType.ORDER_CONFIRMATION: [
        "- orderNumber (string)",
        "- orderDate (string, ISO 8601 format)",
        _CURRENCY_FIELD,
        "- items (array of objects with: name, quantity (number), price (number))",
        "- subtotal (number)",
        "- tax (number, if available)",
        "- shipping (number, if available)",
        "- total (number)",
    ],
}

_EXTRACTION_KIND = {
    DocType.INVOICE: "invoice",
    DocType.FLIGHT_TICKET: "flight ticket",
    DocType.RECEIPT: "receipt",
    DocType.ORDER_CONFIRMATION: "order confirmation",
}

_GENERIC_EXTRACTION_PROMPT = """Provide a detailed description of this image and return it as valid JSON only. Do not include any explanation or markdown formatting, just the JSON object.

Extract the following fields:
- description (string, detailed description of the image content)

Return JSON only."""


def build_filename_prompt(original_file_name: str) -> str:
    return f"""Based on the content of this image/document, suggest a short descriptive filename stem (no extension). Include discriminative info such as vendor/store, destination, order number, etc. The original filename is: {original_file_name}.

Respond with JSON only in this format:
{{
  "betterName": "<concise English filename stem without extension>"
}}

Return JSON only."""


def build_extraction_prompt(doc_type: DocType) -> str:
    """Structured-extraction prompt for a doc type. Other gets a generic description."""
    fields = _EXTRACTION_FIELDS.get(doc_type)
    if not fields:
        return _GENERIC_EXTRACTION_PROMPT
    header = _EXTRACTION_HEADER.format(kind=_EXTRACTION_KIND[doc_type])
    return header + "\n".join(fields) + "\n\nReturn JSON only."


# ── Search ────────────────────────────────────────────────────────────

def build_expansion_prompt(query: str) -> str:
    return f"""You are a query expander. Given a user query, translate to English if needed, and produce a short expanded English variant. Also, assign a document type if evident: Invoice, Receipt, Flight Ticket, Order Confirmation, or leave empty if unknown.

Respond with JSON only:
{{
  "englishQuery": "<English translation>",
  "expandedEnglishQuery": "<Expanded English query>",
  "docType": "Invoice|Receipt|Flight Ticket|Order Confirmation|Other|"
}}
Leave docType as an empty string if the query does not hint at a document type.

Return JSON only.
UserQuery: {query}"""


def build_rerank_prompt(query: str, document_id: str, extracted_data_json: str) -> str:
    return f"""You are a reranker. Given a user query and a document's extracted structured data, return a single relevancy score between 0 and 1.

Respond with JSON only in this format:
{{ "docId": "{document_id}", "relevancy": <number 0..1> }}

UserQuery: {query}

ExtractedDataJson: {extracted_data_json}

Return JSON only."""


def build_tie_break_prompt(query: str, candidates: list[dict]) -> str:
    return f"""Tie-break ranking. Given a user query and a list of candidates with extractedData, return an ordered list of docIds from most to least relevant. Respond with JSON array only, e.g., ["id1","id2"].

UserQuery: {query}

Candidates: {json.dumps(candidates, ensure_ascii=False)}"""
