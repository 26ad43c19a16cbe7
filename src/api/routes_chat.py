"""Chat endpoint — résumé Q&A behind the full defense pipeline."""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from src.api.deps import get_defense, get_rag_engine
from src.api.guard import guard_chat
from src.api.models import ChatRequest, ChatResponse
from src.generation.llm_backend_base import LLMQuotaError
from src.generation.rag_engine import QUOTA_FALLBACK, RAGEngine
from src.security.defense import Defense

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])

CHAT_ERROR_MESSAGE = (
    "I apologize, but I encountered an error processing your request. Please try again."
)


@router.post("/chat", response_model=ChatResponse)
def chat(
    request: Request,
    req: ChatRequest,
    engine: RAGEngine = Depends(get_rag_engine),
    defense: Defense = Depends(get_defense),
):
    """Answer a question about the résumé owner."""
    ctx = guard_chat(request, req.message, defense)

    try:
        response = engine.query(question=ctx.message, session_key=ctx.client_key)
    except LLMQuotaError as e:
        logger.warning("LLM quota exhausted for %s: %s", ctx.client_key, e)
        if defense.config.escalate_on_upstream_quota:
            defense.escalate(ctx.ip, f"Upstream quota error: {e}", ctx.user_agent)
        return ChatResponse(response=QUOTA_FALLBACK)
    except Exception:
        logger.exception("Chat request from %s failed", ctx.client_key)
        return JSONResponse(status_code=500, content={"error": CHAT_ERROR_MESSAGE})

    return ChatResponse(response=response.answer)
