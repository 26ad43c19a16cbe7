"""FastAPI dependency injection — shared component singletons.

Lazily initializes heavy components (embedding model, LLM backend, vector
store, RAG engine) and the defense pipeline once, then provides them via
FastAPI Depends().
"""

import logging

from src.config import Config, get_config
from src.generation.groq_backend import GroqBackend
from src.generation.llm_backend_base import GenerationConfig, LLMBackend
from src.generation.memory import ConversationMemory
from src.generation.ollama_backend import OllamaBackend
from src.generation.rag_engine import RAGEngine
from src.ingestion.embeddings import EmbeddingGenerator
from src.retrieval.vector_retriever import VectorRetriever
from src.security.defense import Defense, build_defense
from src.storage.chroma_store import ChromaStore

logger = logging.getLogger(__name__)

# ── Singletons (populated by init_components) ───────────────────────

_config: Config | None = None
_rag_engine: RAGEngine | None = None
_defense: Defense | None = None


def _build_llm(config: Config) -> LLMBackend:
    llm: LLMBackend
    if config.llm_backend == "groq" and config.groq_api_key:
        llm = GroqBackend(api_key=config.groq_api_key, model=config.llm_model)
        logger.info("LLM backend: Groq (model=%s)", llm.model)
    else:
        llm = OllamaBackend(host=config.ollama_host, model=config.llm_model)
        if config.llm_backend == "groq":
            logger.warning(
                "LLM_BACKEND=groq but GROQ_API_KEY is empty — "
                "falling back to Ollama at %s",
                config.ollama_host,
            )
        else:
            logger.info("LLM backend: Ollama at %s", config.ollama_host)
    return llm


def _contact_lines(config: Config) -> list[str]:
    lines = []
    if config.contact_email:
        lines.append(f"Email: {config.contact_email}")
    if config.contact_linkedin:
        lines.append(f"LinkedIn: {config.contact_linkedin}")
    return lines


def init_components(config: Config | None = None) -> None:
    """Initialize all heavy components. Call once at startup."""
    global _config, _rag_engine, _defense

    _config = config or get_config()
    _defense = build_defense(_config.security)

    chroma = ChromaStore(_config.chroma_db_path)
    embed_gen = EmbeddingGenerator(_config.embedding_model)
    retriever = VectorRetriever(chroma_store=chroma, embedding_generator=embed_gen)

    memory = ConversationMemory()
    _defense.janitor.register("conversations", memory.sweep)

    _rag_engine = RAGEngine(
        retriever,
        _build_llm(_config),
        config=GenerationConfig(model=_config.llm_model),
        memory=memory,
        owner_name=_config.owner_name,
        contact_lines=_contact_lines(_config),
    )
    logger.info("All components initialized (%d chunks indexed)", chroma.count())


def is_initialized() -> bool:
    """Check if components have been initialized (or mocked for testing)."""
    return _rag_engine is not None and _defense is not None


def get_rag_engine() -> RAGEngine:
    assert _rag_engine is not None, "Components not initialized — call init_components()"
    return _rag_engine


def get_defense() -> Defense:
    assert _defense is not None, "Components not initialized — call init_components()"
    return _defense
