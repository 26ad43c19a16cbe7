"""Search endpoint — raw similarity search over the résumé chunks."""

import logging

from fastapi import APIRouter, Depends, Request

from src.api.deps import get_defense, get_rag_engine
from src.api.guard import guard_api
from src.api.models import SearchRequest, SearchResponse, SearchResult
from src.generation.rag_engine import RAGEngine
from src.security.defense import Defense

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/search", tags=["search"])


@router.post("", response_model=SearchResponse)
def search(
    request: Request,
    req: SearchRequest,
    engine: RAGEngine = Depends(get_rag_engine),
    defense: Defense = Depends(get_defense),
):
    """Return the chunks most similar to the query, without generation."""
    ctx = guard_api(request, defense, text=req.query)
    results = engine.search(query=ctx.message, top_k=req.top_k)

    return SearchResponse(
        results=[
            SearchResult(id=r.chunk_id, text=r.text, score=r.score, metadata=r.metadata)
            for r in results
        ]
    )
