"""
Structured extraction + free-text description, run concurrently.
"""

import logging
from dataclasses import dataclass

from ..core.tasks import gather_all
from ..models.document import DocType
from .llm import Oracle, parse_json_response
from .prompts import DESCRIPTION_PROMPT, build_extraction_prompt

logger = logging.getLogger(__name__)


@dataclass
class Extraction:
    extracted_data_json: str
    description: str


def parse_description(text: str) -> str:
    """Best-effort: an unparseable description becomes an empty string."""
    data = parse_json_response(text)
    if isinstance(data, dict) and data.get("description") is not None:
        return str(data["description"])
    logger.warning("Description response not parseable; storing empty description")
    return ""


async def extract(
    oracle: Oracle,
    doc_type: DocType,
    file_bytes: bytes,
    mime_type: str,
) -> Extraction:
    extracted_text, description_text = await gather_all(
        oracle.generate(build_extraction_prompt(doc_type), file_bytes, mime_type),
        oracle.generate(DESCRIPTION_PROMPT, file_bytes, mime_type),
    )

    # Extracted data is kept as the oracle returned it (fences already stripped)
    return Extraction(
        extracted_data_json=(extracted_text or "").strip(),
        description=parse_description(description_text),
    )
