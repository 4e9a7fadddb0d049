"""
Error taxonomy shared by the pipeline, the search path and the API layer.
"""

from typing import Optional


class IntakeError(ValueError):
    """Bad or missing upload. Raised before a Document row exists."""


class ParseError(ValueError):
    """Oracle output could not be parsed into the expected shape."""


class OracleUnavailable(RuntimeError):
    """Network/auth failure talking to the oracle or the vector index."""


class StageError(RuntimeError):
    """
    A pipeline stage failed for one document.
    The row is already marked Failed when this is raised.
    """

    def __init__(self, document_id: Optional[str], stage: str, message: str):
        super().__init__(message)
        self.document_id = document_id
        self.stage = stage
        self.message = message
