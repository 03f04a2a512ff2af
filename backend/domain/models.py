"""
Domain models - HTTP request and response shapes.
Following SOLID: Single Responsibility Principle - each model has one clear purpose.
"""
from typing import List, Optional, Literal
from pydantic import BaseModel, Field

from rag.models import Source, SupplementaryDocument

DEFAULT_DOCUMENT_NAME = "Uploaded Document"


def supplementary_document(content: Optional[str], name: Optional[str]) -> Optional[SupplementaryDocument]:
    """Blank content means no document; a blank name falls back to the default."""
    if not content or not content.strip():
        return None
    return SupplementaryDocument(
        content=content,
        name=(name or "").strip() or DEFAULT_DOCUMENT_NAME
    )


class DocumentPayload(BaseModel):
    """Document attached to a question (pasted text or extracted PDF text)."""
    content: str
    name: str = DEFAULT_DOCUMENT_NAME

    def to_document(self) -> Optional[SupplementaryDocument]:
        return supplementary_document(self.content, self.name)


class AskRequest(BaseModel):
    """Answer-a-question request."""
    query: str
    mode: Literal["sync", "streaming"] = "sync"
    supplementary_document: Optional[DocumentPayload] = None

    def to_document(self) -> Optional[SupplementaryDocument]:
        if self.supplementary_document is None:
            return None
        return self.supplementary_document.to_document()


class ChatRequest(BaseModel):
    """Legacy chat widget request."""
    message: str
    documentContent: Optional[str] = None
    documentName: Optional[str] = None

    def to_document(self) -> Optional[SupplementaryDocument]:
        return supplementary_document(self.documentContent, self.documentName)


class AskResponse(BaseModel):
    """Synchronous answer with citations."""
    answer: str
    sources: List[Source] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Error payload for failures before a response is committed."""
    error: str
