"""
Error taxonomy for the knowledge assistant.

Every error carries the HTTP status it maps to when it is raised before
the first byte of a response has been sent.
"""


class AssistantError(Exception):
    """Base class for failures surfaced to the caller."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InputInvalidError(AssistantError):
    """Empty or over-length question, rejected before any collaborator call."""

    status_code = 400


class RetrievalUnavailableError(AssistantError):
    """Embedding or vector search failed or timed out."""

    status_code = 503


class GenerationFailedError(AssistantError):
    """The generation model failed to produce an answer."""

    status_code = 502
