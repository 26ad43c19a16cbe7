"""Generation module — LLM backends and RAG orchestration."""

from src.generation.groq_backend import GroqBackend
from src.generation.llm_backend_base import (
    GenerationConfig,
    GenerationResult,
    LLMBackend,
    LLMQuotaError,
)
from src.generation.memory import ConversationMemory
from src.generation.ollama_backend import OllamaBackend
from src.generation.rag_engine import RAGEngine, RAGResponse

__all__ = [
    "ConversationMemory",
    "GenerationConfig",
    "GenerationResult",
    "GroqBackend",
    "LLMBackend",
    "LLMQuotaError",
    "OllamaBackend",
    "RAGEngine",
    "RAGResponse",
]
