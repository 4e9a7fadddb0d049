"""
Query expansion — translate a free-form query to English, expand it, and infer
an implicit document-type filter. Unparseable answers degrade to the raw query.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..models.document import DocType
from .classification import normalize_doc_type
from .llm import Oracle, parse_json_response
from .prompts import build_expansion_prompt

logger = logging.getLogger(__name__)


@dataclass
class ExpandedQuery:
    english_query: str
    expanded_english_query: str
    doc_type: Optional[str] = None


def _inferred_doc_type(value) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return None
    doc_type = normalize_doc_type(value)
    # "Other" from the oracle is not a useful filter
    return None if doc_type == DocType.OTHER else doc_type.value


async def expand_query(
    oracle: Oracle, query: str, doc_type: Optional[str] = None
) -> ExpandedQuery:
    """
    Returns {englishQuery, expandedEnglishQuery, docType}.
    A caller-supplied doc_type always wins over the inferred one.
    Oracle transport errors propagate; parse errors do not.
    """
    explicit = None
    if doc_type and doc_type.strip():
        explicit = _inferred_doc_type(doc_type) or doc_type.strip()
    text = await oracle.generate(build_expansion_prompt(query))
    logger.info("Query expansion response: %s", text)

    data = parse_json_response(text)
    if not isinstance(data, dict):
        logger.warning("Query expansion not parseable; using raw query")
        return ExpandedQuery(query, query, explicit)

    english = data.get("englishQuery")
    english = english if isinstance(english, str) and english.strip() else query
    expanded = data.get("expandedEnglishQuery")
    expanded = expanded if isinstance(expanded, str) and expanded.strip() else english

    return ExpandedQuery(
        english_query=english,
        expanded_english_query=expanded,
        doc_type=explicit or _inferred_doc_type(data.get("docType")),
    )
