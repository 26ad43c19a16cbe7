"""Pydantic models for API request/response schemas."""

from pydantic import BaseModel, Field


# ── Request models ───────────────────────────────────────────────────


class ChatRequest(BaseModel):
    """A chat message about the résumé owner.

    Length and emptiness are checked by the defense pipeline so that
    rejections are logged as security events.
    """

    message: str


class SearchRequest(BaseModel):
    """Raw similarity search over the résumé chunks."""

    query: str
    top_k: int = Field(default=5, ge=1, le=20)


class DocumentIn(BaseModel):
    """A single document to chunk, embed and index."""

    text: str = Field(..., min_length=1)
    category: str | None = None
    title: str | None = None
    source: str | None = None


class AddDocumentsRequest(BaseModel):
    documents: list[DocumentIn] = Field(..., min_length=1, max_length=100)


# ── Response models ──────────────────────────────────────────────────


class ChatResponse(BaseModel):
    response: str


class SearchResult(BaseModel):
    """A chunk returned by similarity search."""

    id: str
    text: str
    score: float
    metadata: dict = Field(default_factory=dict)


class SearchResponse(BaseModel):
    results: list[SearchResult]


class AddDocumentResponse(BaseModel):
    """Chunk IDs created for the submitted document(s)."""

    success: bool
    documents: int
    chunk_ids: list[str]


class HealthResponse(BaseModel):
    """System health status."""

    status: str
    timestamp: str
    service: str
