"""Document endpoints — add résumé content to the vector index."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from src.api.deps import get_defense, get_rag_engine
from src.api.guard import guard_api
from src.api.models import AddDocumentResponse, AddDocumentsRequest, DocumentIn
from src.generation.rag_engine import RAGEngine
from src.security.defense import Defense

logger = logging.getLogger(__name__)

router = APIRouter(tags=["documents"])


@router.post("/add-document", response_model=AddDocumentResponse)
def add_document(
    request: Request,
    doc: DocumentIn,
    engine: RAGEngine = Depends(get_rag_engine),
    defense: Defense = Depends(get_defense),
):
    """Chunk, embed and index one document."""
    guard_api(request, defense)
    try:
        ids = engine.add_document(doc.text, doc.model_dump(exclude={"text"}, exclude_none=True))
    except Exception:
        logger.exception("Failed to add document")
        raise HTTPException(status_code=500, detail="Failed to add document")
    return AddDocumentResponse(success=True, documents=1, chunk_ids=ids)


@router.post("/add-documents", response_model=AddDocumentResponse)
def add_documents(
    request: Request,
    req: AddDocumentsRequest,
    engine: RAGEngine = Depends(get_rag_engine),
    defense: Defense = Depends(get_defense),
):
    """Chunk, embed and index a batch of documents."""
    guard_api(request, defense)
    try:
        ids = engine.add_documents([d.model_dump(exclude_none=True) for d in req.documents])
    except Exception:
        logger.exception("Failed to add %d documents", len(req.documents))
        raise HTTPException(status_code=500, detail="Failed to add documents")
    return AddDocumentResponse(success=True, documents=len(req.documents), chunk_ids=ids)
